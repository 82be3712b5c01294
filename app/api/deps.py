from fastapi import Request

from app.realtime.gateway import PresenceGateway
from app.services.board_locks import BoardLockService


def get_lock_service(request: Request) -> BoardLockService:
    return request.app.state.lock_service


def get_presence_gateway(request: Request) -> PresenceGateway:
    return request.app.state.presence_gateway
