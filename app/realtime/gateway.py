from collections.abc import Callable
import logging
from typing import Any

import anyio
from pydantic import ValidationError
from sqlalchemy.exc import SQLAlchemyError
from starlette.concurrency import run_in_threadpool

from app.core.tokens import extract_user_id
from app.realtime.broadcaster import PresenceBroadcaster, PresenceConnection, board_topic
from app.schemas.presence import InboundMessage
from app.services.board_locks import BoardLockService

logger = logging.getLogger(__name__)

LOCK_GRANTED = "lock:granted"
LOCK_DENIED = "lock:denied"
LOCK_RELEASED = "lock:released"


class PresenceGateway:
    def __init__(
        self,
        lock_service: BoardLockService,
        broadcaster: PresenceBroadcaster,
        identify: Callable[[str | None], str] = extract_user_id,
    ) -> None:
        self.lock_service = lock_service
        self.broadcaster = broadcaster
        self._identify = identify

    def _resolve_user_id(self, connection: PresenceConnection) -> str:
        user_id = self._identify(connection.token)
        if user_id:
            connection.user_id = user_id
        return user_id

    async def announce_granted(self, board_id: str, user_id: str) -> int:
        return await self.broadcaster.publish(board_topic(board_id), LOCK_GRANTED, {"boardId": board_id, "userId": user_id})

    async def announce_released(self, board_id: str) -> int:
        return await self.broadcaster.publish(board_topic(board_id), LOCK_RELEASED, {"boardId": board_id})

    async def connect(self, connection: PresenceConnection) -> None:
        await self.broadcaster.register(connection)

    async def handle_join(self, connection: PresenceConnection, board_id: str) -> None:
        await self.broadcaster.subscribe(connection, board_topic(board_id))

    async def handle_leave(self, connection: PresenceConnection, board_id: str) -> None:
        await self.broadcaster.unsubscribe(connection, board_topic(board_id))

    async def handle_lock_request(self, connection: PresenceConnection, board_id: str) -> bool:
        user_id = self._resolve_user_id(connection)
        acquired = await run_in_threadpool(self.lock_service.lock_board, board_id, user_id)
        logger.info(
            "gateway_lock_request connection_id=%s board_id=%s user_id=%s acquired=%s",
            connection.id,
            board_id,
            user_id,
            acquired,
        )
        if acquired:
            await self.announce_granted(board_id, user_id)
        else:
            await self.broadcaster.send(connection, LOCK_DENIED, {"boardId": board_id})
        return acquired

    async def handle_unlock(self, connection: PresenceConnection, board_id: str) -> bool:
        user_id = self._resolve_user_id(connection)
        released = await run_in_threadpool(self.lock_service.unlock_board, board_id, user_id)
        logger.info(
            "gateway_unlock connection_id=%s board_id=%s user_id=%s released=%s",
            connection.id,
            board_id,
            user_id,
            released,
        )
        if released:
            await self.announce_released(board_id)
        return released

    async def handle_heartbeat(self, connection: PresenceConnection, board_id: str) -> bool:
        user_id = self._resolve_user_id(connection)
        try:
            attempt = await run_in_threadpool(self.lock_service.acquire_board_lock, board_id, user_id)
        except SQLAlchemyError:
            logger.exception("gateway_heartbeat_failed connection_id=%s board_id=%s", connection.id, board_id)
            return False
        logger.info(
            "gateway_heartbeat connection_id=%s board_id=%s user_id=%s attempt=%s",
            connection.id,
            board_id,
            user_id,
            attempt,
        )
        # The lock lapsed and this heartbeat took it again; viewers saw the release.
        if attempt == "acquired":
            await self.announce_granted(board_id, user_id)
        return attempt != "conflict"

    async def handle_disconnect(self, connection: PresenceConnection) -> list[str]:
        # Locks are deleted before the releases go out; finish both even if the
        # socket task is being cancelled.
        with anyio.CancelScope(shield=True):
            return await self._release_connection(connection)

    async def _release_connection(self, connection: PresenceConnection) -> list[str]:
        await self.broadcaster.unregister(connection)
        user_id = connection.user_id or self._identify(connection.token)
        if not user_id:
            logger.info("gateway_disconnect connection_id=%s released=%s reason=anonymous", connection.id, 0)
            return []

        board_ids = await run_in_threadpool(self.lock_service.unlock_all_by_user, user_id)
        for board_id in board_ids:
            await self.announce_released(board_id)
        logger.info(
            "gateway_disconnect connection_id=%s user_id=%s released=%s",
            connection.id,
            user_id,
            len(board_ids),
        )
        return board_ids

    async def dispatch(self, connection: PresenceConnection, raw: Any) -> None:
        try:
            message = InboundMessage.model_validate(raw)
        except ValidationError as exc:
            logger.info(
                "gateway_message_ignored connection_id=%s reason=invalid_message errors=%s",
                connection.id,
                exc.error_count(),
            )
            return

        board_id = message.data.board_id
        if message.event == "join":
            await self.handle_join(connection, board_id)
        elif message.event == "leave":
            await self.handle_leave(connection, board_id)
        elif message.event == "lock:request":
            await self.handle_lock_request(connection, board_id)
        elif message.event == "unlock":
            await self.handle_unlock(connection, board_id)
        elif message.event == "heartbeat":
            await self.handle_heartbeat(connection, board_id)
