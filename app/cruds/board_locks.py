from datetime import datetime
import logging
from typing import Literal

from sqlalchemy import delete, select, update
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from app.models.board_lock import BoardLock

logger = logging.getLogger(__name__)

LockAttempt = Literal["acquired", "renewed", "conflict"]


def get_board_lock(db: Session, board_id: str) -> BoardLock | None:
    query = select(BoardLock).where(BoardLock.board_id == board_id)
    record = db.execute(query).scalar_one_or_none()
    logger.info("crud_get_board_lock board_id=%s found=%s", board_id, record is not None)
    return record


def try_acquire_board_lock(db: Session, board_id: str, user_id: str, now: datetime) -> LockAttempt:
    renewal = (
        update(BoardLock)
        .where(BoardLock.board_id == board_id, BoardLock.user_id == user_id)
        .values(locked_at=now)
        .execution_options(synchronize_session=False)
    )
    if db.execute(renewal).rowcount:
        db.commit()
        logger.info("crud_try_acquire_board_lock board_id=%s user_id=%s attempt=%s", board_id, user_id, "renewed")
        return "renewed"

    db.add(BoardLock(board_id=board_id, user_id=user_id, locked_at=now))
    try:
        db.commit()
    except IntegrityError:
        # Another writer inserted the row first; the unique constraint decided.
        db.rollback()
        holder = get_board_lock(db, board_id=board_id)
        attempt: LockAttempt = "renewed" if holder is not None and holder.user_id == user_id else "conflict"
        logger.info(
            "crud_try_acquire_board_lock board_id=%s user_id=%s attempt=%s reason=%s",
            board_id,
            user_id,
            attempt,
            "concurrent_same_holder" if attempt == "renewed" else "active_lock",
        )
        return attempt

    logger.info("crud_try_acquire_board_lock board_id=%s user_id=%s attempt=%s", board_id, user_id, "acquired")
    return "acquired"


def release_board_lock(db: Session, board_id: str, user_id: str) -> bool:
    record = get_board_lock(db, board_id=board_id)
    if record is None:
        logger.info("crud_release_board_lock board_id=%s user_id=%s released=%s reason=missing", board_id, user_id, True)
        return True

    if record.user_id != user_id:
        logger.info(
            "crud_release_board_lock board_id=%s user_id=%s released=%s reason=not_owner holder=%s",
            board_id,
            user_id,
            False,
            record.user_id,
        )
        return False

    query = (
        delete(BoardLock)
        .where(BoardLock.board_id == board_id, BoardLock.user_id == user_id)
        .execution_options(synchronize_session=False)
    )
    db.execute(query)
    db.commit()
    logger.info("crud_release_board_lock board_id=%s user_id=%s released=%s", board_id, user_id, True)
    return True


def delete_board_locks_for_user(db: Session, user_id: str) -> list[str]:
    query = (
        delete(BoardLock)
        .where(BoardLock.user_id == user_id)
        .returning(BoardLock.board_id)
        .execution_options(synchronize_session=False)
    )
    board_ids = list(db.execute(query).scalars().all())
    db.commit()
    logger.info("crud_delete_board_locks_for_user user_id=%s deleted=%s", user_id, len(board_ids))
    return board_ids


def delete_expired_board_locks(db: Session, locked_before: datetime) -> list[str]:
    query = (
        delete(BoardLock)
        .where(BoardLock.locked_at < locked_before)
        .returning(BoardLock.board_id)
        .execution_options(synchronize_session=False)
    )
    board_ids = list(db.execute(query).scalars().all())
    db.commit()
    logger.info(
        "crud_delete_expired_board_locks locked_before=%s deleted=%s",
        locked_before.isoformat(),
        len(board_ids),
    )
    return board_ids

