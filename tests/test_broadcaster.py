import asyncio

from app.realtime.broadcaster import PresenceBroadcaster, PresenceConnection, board_topic
from fakes import FakeWebSocket


def _connection(fail: bool = False) -> PresenceConnection:
    return PresenceConnection(FakeWebSocket(fail=fail), token="token")


def test_publish_reaches_topic_and_global_once_per_connection() -> None:
    broadcaster = PresenceBroadcaster(global_fanout=True)
    member = _connection()
    outsider = _connection()

    async def scenario() -> int:
        await broadcaster.register(member)
        await broadcaster.register(outsider)
        await broadcaster.subscribe(member, board_topic("board-1"))
        return await broadcaster.publish(board_topic("board-1"), "lock:released", {"boardId": "board-1"})

    delivered = asyncio.run(scenario())

    assert delivered == 2
    assert member.websocket.sent == [{"event": "lock:released", "data": {"boardId": "board-1"}}]
    assert outsider.websocket.sent == [{"event": "lock:released", "data": {"boardId": "board-1"}}]


def test_publish_without_global_fanout_only_reaches_topic() -> None:
    broadcaster = PresenceBroadcaster(global_fanout=False)
    member = _connection()
    outsider = _connection()

    async def scenario() -> int:
        await broadcaster.register(member)
        await broadcaster.register(outsider)
        await broadcaster.subscribe(member, board_topic("board-1"))
        return await broadcaster.publish(board_topic("board-1"), "lock:released", {"boardId": "board-1"})

    assert asyncio.run(scenario()) == 1
    assert member.websocket.events() == ["lock:released"]
    assert outsider.websocket.sent == []


def test_unsubscribe_and_unregister_clean_up_topics() -> None:
    broadcaster = PresenceBroadcaster()
    connection = _connection()

    async def scenario() -> None:
        await broadcaster.register(connection)
        await broadcaster.subscribe(connection, board_topic("board-1"))
        await broadcaster.subscribe(connection, board_topic("board-2"))
        await broadcaster.unsubscribe(connection, board_topic("board-1"))
        assert broadcaster.subscribers(board_topic("board-1")) == set()
        assert broadcaster.subscribers(board_topic("board-2")) == {connection.id}
        await broadcaster.unregister(connection)

    asyncio.run(scenario())

    assert broadcaster.subscribers(board_topic("board-2")) == set()
    assert broadcaster.connection_count == 0


def test_failed_send_drops_connection() -> None:
    broadcaster = PresenceBroadcaster()
    healthy = _connection()
    broken = _connection(fail=True)

    async def scenario() -> int:
        await broadcaster.register(healthy)
        await broadcaster.register(broken)
        return await broadcaster.publish(board_topic("board-1"), "lock:released", {"boardId": "board-1"})

    assert asyncio.run(scenario()) == 1
    assert broadcaster.connection_count == 1
    assert healthy.websocket.events() == ["lock:released"]
