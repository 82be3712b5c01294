from typing import Literal

from pydantic import BaseModel, ConfigDict, Field

InboundEvent = Literal["join", "leave", "lock:request", "unlock", "heartbeat"]


class BoardPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    board_id: str = Field(alias="boardId", min_length=1, max_length=64)


class InboundMessage(BaseModel):
    event: InboundEvent
    data: BoardPayload
