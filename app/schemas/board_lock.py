from datetime import datetime

from pydantic import BaseModel, ConfigDict


class BoardLockState(BaseModel):
    model_config = ConfigDict(from_attributes=True)

    board_id: str
    user_id: str
    locked_at: datetime


class LockBoardResponse(BaseModel):
    success: bool


class BoardLockStatusResponse(BaseModel):
    locked: bool
    locked_by: str | None = None
    locked_at: datetime | None = None
