import asyncio
import logging

from starlette.concurrency import run_in_threadpool

from app.realtime.gateway import PresenceGateway

logger = logging.getLogger(__name__)


class BoardLockReaper:
    def __init__(self, gateway: PresenceGateway, interval_seconds: float = 30, ttl_seconds: int = 60) -> None:
        self.gateway = gateway
        self.interval_seconds = interval_seconds
        self.ttl_seconds = ttl_seconds
        self._task: asyncio.Task | None = None

    @property
    def running(self) -> bool:
        return self._task is not None and not self._task.done()

    async def run_once(self) -> list[str]:
        board_ids = await run_in_threadpool(self.gateway.lock_service.cleanup_expired_locks, self.ttl_seconds)
        for board_id in board_ids:
            await self.gateway.announce_released(board_id)
        logger.info("lock_reaper_run_completed ttl_seconds=%s expired=%s", self.ttl_seconds, len(board_ids))
        return board_ids

    async def _run_forever(self) -> None:
        while True:
            await asyncio.sleep(self.interval_seconds)
            try:
                await self.run_once()
            except Exception:
                logger.exception("lock_reaper_run_failed")

    def start(self) -> None:
        if self.running:
            return
        self._task = asyncio.create_task(self._run_forever())
        logger.info(
            "lock_reaper_started interval_seconds=%s ttl_seconds=%s",
            self.interval_seconds,
            self.ttl_seconds,
        )

    async def stop(self) -> None:
        if self._task is None:
            return
        self._task.cancel()
        try:
            await self._task
        except asyncio.CancelledError:
            pass
        self._task = None
        logger.info("lock_reaper_stopped")
