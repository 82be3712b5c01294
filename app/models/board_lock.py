from datetime import datetime
from uuid import uuid4

from sqlalchemy import DateTime, String
from sqlalchemy.orm import Mapped, mapped_column

from app.core.db import Base


def _new_lock_id() -> str:
    return uuid4().hex


class BoardLock(Base):
    __tablename__ = "board_locks"

    id: Mapped[str] = mapped_column(String(32), primary_key=True, default=_new_lock_id)
    board_id: Mapped[str] = mapped_column(String(64), unique=True, index=True)
    user_id: Mapped[str] = mapped_column(String(64), index=True)
    locked_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
