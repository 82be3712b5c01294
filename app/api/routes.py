import logging

from fastapi import APIRouter, BackgroundTasks, Depends, HTTPException, Path, Response, status
from sqlalchemy.exc import SQLAlchemyError

from app.api.deps import get_lock_service, get_presence_gateway
from app.core.auth import get_current_user_id
from app.realtime.gateway import PresenceGateway
from app.schemas.board_lock import BoardLockStatusResponse, LockBoardResponse
from app.services.board_locks import BoardLockService

router = APIRouter(prefix="/boards", tags=["board-locks"])
logger = logging.getLogger(__name__)


@router.post(
    "/{board_id}/lock",
    response_model=LockBoardResponse,
    responses={
        409: {"description": "Board is already locked by another user"},
        503: {"description": "Lock storage unavailable"},
    },
)
def lock_board(
    background_tasks: BackgroundTasks,
    board_id: str = Path(min_length=1, max_length=64),
    user_id: str = Depends(get_current_user_id),
    lock_service: BoardLockService = Depends(get_lock_service),
    gateway: PresenceGateway = Depends(get_presence_gateway),
) -> LockBoardResponse:
    outcome = "unknown"
    try:
        acquired = lock_service.lock_board(board_id, user_id)
        if not acquired:
            outcome = "conflict"
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="Board is already locked by another user",
            )
        background_tasks.add_task(gateway.announce_granted, board_id, user_id)
        outcome = "locked"
        return LockBoardResponse(success=True)
    except SQLAlchemyError as exc:
        outcome = "storage_error"
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Lock storage unavailable",
        ) from exc
    finally:
        logger.info("route_lock_board board_id=%s user_id=%s outcome=%s", board_id, user_id, outcome)


@router.delete(
    "/{board_id}/unlock",
    status_code=status.HTTP_204_NO_CONTENT,
    response_class=Response,
    responses={
        409: {"description": "Board is locked by another user"},
        503: {"description": "Lock storage unavailable"},
    },
)
def unlock_board(
    background_tasks: BackgroundTasks,
    board_id: str = Path(min_length=1, max_length=64),
    user_id: str = Depends(get_current_user_id),
    lock_service: BoardLockService = Depends(get_lock_service),
    gateway: PresenceGateway = Depends(get_presence_gateway),
) -> Response:
    outcome = "unknown"
    try:
        released = lock_service.unlock_board(board_id, user_id)
        if not released:
            outcome = "not_owner"
            raise HTTPException(
                status_code=status.HTTP_409_CONFLICT,
                detail="You cannot unlock a board locked by another user",
            )
        background_tasks.add_task(gateway.announce_released, board_id)
        outcome = "unlocked"
        return Response(status_code=status.HTTP_204_NO_CONTENT)
    except SQLAlchemyError as exc:
        outcome = "storage_error"
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Lock storage unavailable",
        ) from exc
    finally:
        logger.info("route_unlock_board board_id=%s user_id=%s outcome=%s", board_id, user_id, outcome)


@router.get(
    "/{board_id}/lock-status",
    response_model=BoardLockStatusResponse,
    responses={
        200: {
            "description": "Current lock state of the board",
            "content": {
                "application/json": {
                    "examples": {
                        "locked": {
                            "value": {
                                "locked": True,
                                "locked_by": "3f2c9a1e-user",
                                "locked_at": "2026-01-01T12:00:00",
                            }
                        },
                        "unlocked": {"value": {"locked": False, "locked_by": None, "locked_at": None}},
                    }
                }
            },
        },
    },
)
def get_lock_status(
    board_id: str = Path(min_length=1, max_length=64),
    user_id: str = Depends(get_current_user_id),
    lock_service: BoardLockService = Depends(get_lock_service),
) -> BoardLockStatusResponse:
    outcome = "unknown"
    try:
        lock = lock_service.get_board_lock(board_id)
        if lock is None:
            outcome = "unlocked"
            return BoardLockStatusResponse(locked=False)
        outcome = "locked"
        return BoardLockStatusResponse(locked=True, locked_by=lock.user_id, locked_at=lock.locked_at)
    except SQLAlchemyError as exc:
        outcome = "storage_error"
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Lock storage unavailable",
        ) from exc
    finally:
        logger.info("route_get_lock_status board_id=%s user_id=%s outcome=%s", board_id, user_id, outcome)
