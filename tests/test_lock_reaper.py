import asyncio

from app.realtime.broadcaster import PresenceBroadcaster, PresenceConnection
from app.realtime.gateway import PresenceGateway
from app.services.board_locks import BoardLockService
from app.services.lock_reaper import BoardLockReaper
from fakes import FakeWebSocket


def test_run_once_expires_stale_locks_and_broadcasts(lock_service: BoardLockService, clock) -> None:
    gateway = PresenceGateway(lock_service=lock_service, broadcaster=PresenceBroadcaster())
    viewer = PresenceConnection(FakeWebSocket())
    reaper = BoardLockReaper(gateway=gateway, interval_seconds=30, ttl_seconds=60)

    lock_service.lock_board("abandoned", "alice")
    clock.advance(50)
    lock_service.lock_board("active", "bob")
    clock.advance(20)

    async def scenario() -> list[str]:
        await gateway.connect(viewer)
        return await reaper.run_once()

    expired = asyncio.run(scenario())

    assert expired == ["abandoned"]
    assert viewer.websocket.sent == [{"event": "lock:released", "data": {"boardId": "abandoned"}}]
    assert lock_service.is_board_locked("active") is True


def test_background_loop_runs_and_stops(lock_service: BoardLockService, clock) -> None:
    gateway = PresenceGateway(lock_service=lock_service, broadcaster=PresenceBroadcaster())
    reaper = BoardLockReaper(gateway=gateway, interval_seconds=0.01, ttl_seconds=60)
    lock_service.lock_board("abandoned", "alice")
    clock.advance(120)

    async def scenario() -> None:
        reaper.start()
        assert reaper.running is True
        for _ in range(200):
            if not lock_service.is_board_locked("abandoned"):
                break
            await asyncio.sleep(0.01)
        await reaper.stop()

    asyncio.run(scenario())

    assert reaper.running is False
    assert lock_service.is_board_locked("abandoned") is False


def test_failing_iteration_does_not_stop_loop() -> None:
    calls: list[int] = []

    class FlakyLockService:
        def cleanup_expired_locks(self, ttl_seconds: int | None = None) -> list[str]:
            calls.append(ttl_seconds)
            if len(calls) == 1:
                raise RuntimeError("storage hiccup")
            return []

    gateway = PresenceGateway(lock_service=FlakyLockService(), broadcaster=PresenceBroadcaster())
    reaper = BoardLockReaper(gateway=gateway, interval_seconds=0.01, ttl_seconds=45)

    async def scenario() -> None:
        reaper.start()
        for _ in range(200):
            if len(calls) >= 2:
                break
            await asyncio.sleep(0.01)
        await reaper.stop()

    asyncio.run(scenario())

    assert len(calls) >= 2
    assert calls[0] == 45
