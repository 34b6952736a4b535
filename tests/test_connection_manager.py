"""
Unit Tests for the WebSocket Connection Manager
"""
import pytest

from notifyhub.services.connection_manager import ConnectionManager


class FakeSocket:
    def __init__(self, fail=False):
        self.fail = fail
        self.accepted = False
        self.messages = []

    async def accept(self):
        self.accepted = True

    async def send_json(self, data):
        if self.fail:
            raise RuntimeError("broken pipe")
        self.messages.append(data)


@pytest.fixture
def manager():
    manager = ConnectionManager()
    manager.presence = []

    async def listener(user_id, is_online):
        manager.presence.append((user_id, is_online))

    manager.add_presence_listener(listener)
    return manager


class TestConnectionManager:

    @pytest.mark.asyncio
    async def test_presence_changes_on_first_and_last_socket(self, manager):
        tab1, tab2 = FakeSocket(), FakeSocket()

        await manager.connect(7, tab1)
        await manager.connect(7, tab2)
        assert tab1.accepted and tab2.accepted
        assert manager.presence == [(7, True)]

        await manager.disconnect(7, tab1)
        assert manager.is_connected(7)
        await manager.disconnect(7, tab2)

        assert not manager.is_connected(7)
        assert manager.presence == [(7, True), (7, False)]

    @pytest.mark.asyncio
    async def test_send_reaches_every_socket(self, manager):
        tab1, tab2 = FakeSocket(), FakeSocket()
        await manager.connect(7, tab1)
        await manager.connect(7, tab2)

        sent = await manager.send_to_user(7, "notification.created", {"notification_id": 1})

        assert sent == 2
        assert tab1.messages[0]["event"] == "notification.created"
        assert tab2.messages[0]["data"] == {"notification_id": 1}

    @pytest.mark.asyncio
    async def test_failing_socket_is_dropped(self, manager):
        good, bad = FakeSocket(), FakeSocket(fail=True)
        await manager.connect(7, good)
        await manager.connect(7, bad)

        assert await manager.send_to_user(7, "notification.created", {}) == 1
        assert await manager.send_to_user(7, "notification.created", {}) == 1
        assert len(good.messages) == 2

    @pytest.mark.asyncio
    async def test_send_to_offline_user(self, manager):
        assert await manager.send_to_user(99, "notification.created", {}) == 0
        assert manager.connected_users() == []

    @pytest.mark.asyncio
    async def test_failing_listener_does_not_block_connect(self):
        manager = ConnectionManager()

        async def broken(user_id, is_online):
            raise RuntimeError("listener down")

        manager.add_presence_listener(broken)
        await manager.connect(7, FakeSocket())

        assert manager.is_connected(7)
