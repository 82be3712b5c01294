import logging

from fastapi import FastAPI

from app.api.presence import router as presence_router
from app.api.routes import router as api_router
from app.core.db import SessionLocal, init_db
from app.core.settings import settings
from app.realtime.broadcaster import PresenceBroadcaster
from app.realtime.gateway import PresenceGateway
from app.services.board_locks import BoardLockService
from app.services.lock_reaper import BoardLockReaper

logging.basicConfig(
    level=logging.INFO,
    format="%(asctime)s %(levelname)s [%(name)s] %(message)s",
)
logger = logging.getLogger(__name__)


app = FastAPI(
    title="Board Presence",
    version="0.1.0",
)

app.include_router(api_router)
app.include_router(presence_router)


@app.on_event("startup")
async def on_startup() -> None:
    init_db()
    lock_service = BoardLockService(
        session_factory=SessionLocal,
        ttl_seconds=settings.board_lock_ttl_seconds,
    )
    broadcaster = PresenceBroadcaster(global_fanout=settings.presence_global_fanout)
    gateway = PresenceGateway(lock_service=lock_service, broadcaster=broadcaster)
    reaper = BoardLockReaper(
        gateway=gateway,
        interval_seconds=settings.board_lock_cleanup_interval_seconds,
        ttl_seconds=settings.board_lock_ttl_seconds,
    )
    reaper.start()

    app.state.lock_service = lock_service
    app.state.presence_gateway = gateway
    app.state.lock_reaper = reaper
    logger.info(
        "startup_completed env=%s database_url=%s lock_ttl_seconds=%s cleanup_interval_seconds=%s",
        settings.app_env,
        settings.database_url,
        settings.board_lock_ttl_seconds,
        settings.board_lock_cleanup_interval_seconds,
    )


@app.on_event("shutdown")
async def on_shutdown() -> None:
    await app.state.lock_reaper.stop()
    logger.info("shutdown_completed")


@app.get("/health")
def health() -> dict[str, str]:
    payload = {"status": "ok", "env": settings.app_env}
    logger.info("health_requested env=%s", settings.app_env)
    return payload
