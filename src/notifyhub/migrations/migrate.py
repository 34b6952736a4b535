"""
Database Migration Runner

Applies the notification hub SQL migrations in file-name order.

Usage: python -m notifyhub.migrations.migrate
"""
import asyncio
import asyncpg
import sys
from pathlib import Path

from notifyhub.config import Config


async def run_migrations():
    """Run all SQL migrations in order"""
    migrations_dir = Path(__file__).parent
    dsn = Config.get_postgres_dsn()

    print(f"Connecting to {Config.DB_HOST}:{Config.DB_PORT}/{Config.DB_NAME}...")

    try:
        conn = await asyncpg.connect(dsn)
    except (OSError, asyncpg.PostgresError) as e:
        print(f"Connection failed: {e}")
        sys.exit(1)

    failed = 0
    try:
        for sql_file in sorted(migrations_dir.glob("*.sql")):
            print(f"Running migration: {sql_file.name}")
            try:
                await conn.execute(sql_file.read_text())
                print(f"  ✓ {sql_file.name} completed")
            except asyncpg.PostgresError as e:
                failed += 1
                print(f"  ✗ Error in {sql_file.name}: {e}")
    finally:
        await conn.close()

    if failed:
        print(f"\n{failed} migration(s) failed")
        sys.exit(1)
    print("\nMigrations complete!")


if __name__ == "__main__":
    asyncio.run(run_migrations())
