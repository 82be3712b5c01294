from collections.abc import Callable
from datetime import datetime, timedelta
import logging

from sqlalchemy.orm import Session, sessionmaker

from app.cruds.board_locks import (
    LockAttempt,
    delete_board_locks_for_user,
    delete_expired_board_locks,
    get_board_lock,
    release_board_lock,
    try_acquire_board_lock,
)
from app.schemas.board_lock import BoardLockState

logger = logging.getLogger(__name__)


class BoardLockService:
    """Keeps at most one editor per board.

    Every operation runs in its own short-lived session, so one instance can be
    shared by the HTTP routes, the WebSocket gateway and the expiry reaper.
    Conflicts and ownership violations come back as ``False``; storage errors
    propagate as ``SQLAlchemyError``.
    """

    def __init__(
        self,
        session_factory: sessionmaker[Session],
        ttl_seconds: int = 60,
        clock: Callable[[], datetime] = datetime.utcnow,
    ) -> None:
        self._session_factory = session_factory
        self.ttl_seconds = ttl_seconds
        self._clock = clock
        logger.info("board_lock_service_init ttl_seconds=%s", ttl_seconds)

    def acquire_board_lock(self, board_id: str, user_id: str) -> LockAttempt:
        if not user_id:
            logger.info("service_acquire_board_lock board_id=%s attempt=%s reason=missing_identity", board_id, "conflict")
            return "conflict"

        with self._session_factory() as db:
            attempt = try_acquire_board_lock(db, board_id=board_id, user_id=user_id, now=self._clock())
        logger.info("service_acquire_board_lock board_id=%s user_id=%s attempt=%s", board_id, user_id, attempt)
        return attempt

    def lock_board(self, board_id: str, user_id: str) -> bool:
        return self.acquire_board_lock(board_id, user_id) != "conflict"

    def unlock_board(self, board_id: str, user_id: str) -> bool:
        with self._session_factory() as db:
            released = release_board_lock(db, board_id=board_id, user_id=user_id)
        logger.info("service_unlock_board board_id=%s user_id=%s released=%s", board_id, user_id, released)
        return released

    def get_board_lock(self, board_id: str) -> BoardLockState | None:
        with self._session_factory() as db:
            record = get_board_lock(db, board_id=board_id)
            return BoardLockState.model_validate(record) if record is not None else None

    def is_board_locked(self, board_id: str) -> bool:
        return self.get_board_lock(board_id) is not None

    def cleanup_expired_locks(self, ttl_seconds: int | None = None) -> list[str]:
        ttl = self.ttl_seconds if ttl_seconds is None else ttl_seconds
        locked_before = self._clock() - timedelta(seconds=ttl)
        with self._session_factory() as db:
            board_ids = delete_expired_board_locks(db, locked_before=locked_before)
        logger.info("service_cleanup_expired_locks ttl_seconds=%s expired=%s", ttl, len(board_ids))
        return board_ids

    def unlock_all_by_user(self, user_id: str) -> list[str]:
        if not user_id:
            logger.info("service_unlock_all_by_user released=%s reason=missing_identity", 0)
            return []

        with self._session_factory() as db:
            board_ids = delete_board_locks_for_user(db, user_id=user_id)
        logger.info("service_unlock_all_by_user user_id=%s released=%s", user_id, len(board_ids))
        return board_ids


__all__ = ["BoardLockService"]
