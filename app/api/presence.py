import json
import logging

from fastapi import APIRouter, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.exc import SQLAlchemyError

from app.realtime.broadcaster import PresenceConnection
from app.realtime.gateway import PresenceGateway

router = APIRouter(tags=["presence"])
logger = logging.getLogger(__name__)

MAX_MESSAGE_SIZE = 4096


@router.websocket("/ws/boards")
async def boards_presence(
    websocket: WebSocket,
    token: str | None = Query(default=None, description="Access token"),
) -> None:
    gateway: PresenceGateway = websocket.app.state.presence_gateway
    await websocket.accept()
    connection = PresenceConnection(websocket, token=token)
    await gateway.connect(connection)
    logger.info(
        "presence_socket_connected connection_id=%s token_provided=%s connections=%s",
        connection.id,
        bool(token),
        gateway.broadcaster.connection_count,
    )

    close_code: int | None = None
    outcome = "client_disconnect"
    try:
        while True:
            frame = await websocket.receive()
            if frame["type"] == "websocket.disconnect":
                raise WebSocketDisconnect(frame.get("code", status.WS_1000_NORMAL_CLOSURE))
            data = frame.get("text")
            if data is None:
                logger.info("presence_message_ignored connection_id=%s reason=binary_frame", connection.id)
                continue
            if len(data) > MAX_MESSAGE_SIZE:
                logger.info(
                    "presence_message_ignored connection_id=%s reason=too_large size=%s",
                    connection.id,
                    len(data),
                )
                continue
            try:
                message = json.loads(data)
            except json.JSONDecodeError:
                logger.info("presence_message_ignored connection_id=%s reason=invalid_json", connection.id)
                continue
            await gateway.dispatch(connection, message)
    except WebSocketDisconnect:
        pass
    except SQLAlchemyError:
        outcome = "storage_error"
        close_code = status.WS_1011_INTERNAL_ERROR
        logger.exception("presence_socket_storage_error connection_id=%s", connection.id)
    finally:
        try:
            await gateway.handle_disconnect(connection)
        except SQLAlchemyError:
            logger.exception("presence_disconnect_cleanup_failed connection_id=%s", connection.id)
        if close_code is not None:
            await websocket.close(code=close_code)
        logger.info("presence_socket_closed connection_id=%s outcome=%s", connection.id, outcome)
