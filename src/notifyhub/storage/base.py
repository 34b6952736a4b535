"""
Base Storage

Base class for PostgreSQL storage with connection pooling.
"""
import asyncpg
import asyncio
import logging
import os
import time
from typing import Optional, Any

logger = logging.getLogger("notifyhub.storage")


class BaseStorage:
    """Base storage class with PostgreSQL connection pool"""

    max_connect_attempts = 3
    connect_retry_delay = 1

    def __init__(self, postgres_dsn: str = "postgresql://postgres@localhost/autolab"):
        """
        Initialize base storage.

        Args:
            postgres_dsn: PostgreSQL connection DSN
        """
        self.pg_pool: Optional[asyncpg.Pool] = None
        self.pg_dsn = postgres_dsn
        self.process_id = os.getpid()
        self._initialized = False

    async def init(self):
        """Connect to PostgreSQL"""
        if self._initialized:
            return

        start_time = time.time()
        try:
            await self._init_postgres()
            self._initialized = True
        except Exception as e:
            logger.error(f"Failed to initialize {type(self).__name__}: {e}")
            raise

        duration_ms = round((time.time() - start_time) * 1000, 2)
        logger.info(f"{type(self).__name__} initialized in {duration_ms}ms")

    async def _init_postgres(self):
        """Create the connection pool, retrying on failure"""
        current_pid = os.getpid()

        # A forked worker cannot reuse the parent's pool
        if self.pg_pool is not None and self.process_id != current_pid:
            logger.info(f"New process detected (old: {self.process_id}, new: {current_pid}), creating new pool")
            self.pg_pool = None
        self.process_id = current_pid

        for attempt in range(1, self.max_connect_attempts + 1):
            try:
                self.pg_pool = await asyncpg.create_pool(
                    self.pg_dsn,
                    min_size=1,
                    max_size=5,
                    command_timeout=30
                )
                async with self.pg_pool.acquire() as conn:
                    await conn.fetchval("SELECT 1")

                logger.debug(f"PostgreSQL connected (attempt {attempt}/{self.max_connect_attempts})")
                return

            except (OSError, asyncpg.PostgresError) as e:
                logger.error(
                    f"PostgreSQL connection failed (attempt {attempt}/{self.max_connect_attempts}): {e}"
                )
                if attempt < self.max_connect_attempts:
                    await asyncio.sleep(self.connect_retry_delay)

        raise ConnectionError("Failed to connect to PostgreSQL after all retries")

    async def close(self):
        """Close database connections"""
        if self.pg_pool:
            await self.pg_pool.close()
            self.pg_pool = None
            self._initialized = False
            logger.info(f"{type(self).__name__} closed")

    async def execute(self, query: str, *args) -> str:
        """Execute a query and return status"""
        async with self.pg_pool.acquire() as conn:
            return await conn.execute(query, *args)

    async def fetch(self, query: str, *args) -> list:
        """Fetch multiple rows"""
        async with self.pg_pool.acquire() as conn:
            return await conn.fetch(query, *args)

    async def fetchrow(self, query: str, *args) -> Optional[asyncpg.Record]:
        """Fetch single row"""
        async with self.pg_pool.acquire() as conn:
            return await conn.fetchrow(query, *args)

    async def fetchval(self, query: str, *args) -> Any:
        """Fetch single value"""
        async with self.pg_pool.acquire() as conn:
            return await conn.fetchval(query, *args)
