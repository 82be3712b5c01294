from collections.abc import Callable, Generator
from datetime import datetime, timedelta
import time

import jwt
import pytest
from sqlalchemy import delete

from app.core.db import SessionLocal, init_db
from app.core.settings import settings
from app.models.board_lock import BoardLock
from app.services.board_locks import BoardLockService


class FakeClock:
    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2026, 1, 1, 12, 0, 0)

    def __call__(self) -> datetime:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now = self.now + timedelta(seconds=seconds)


@pytest.fixture(autouse=True)
def clean_tables() -> Generator[None, None, None]:
    init_db()
    with SessionLocal() as db:
        db.execute(delete(BoardLock))
        db.commit()
    yield
    with SessionLocal() as db:
        db.execute(delete(BoardLock))
        db.commit()


@pytest.fixture
def clock() -> FakeClock:
    return FakeClock()


@pytest.fixture
def lock_service(clock: FakeClock) -> BoardLockService:
    return BoardLockService(session_factory=SessionLocal, ttl_seconds=60, clock=clock)


@pytest.fixture
def make_token() -> Callable[..., str]:
    def _make_token(
        user_id: str,
        token_type: str = "access",
        expires_in: int = 300,
        secret: str | None = None,
    ) -> str:
        now = int(time.time())
        payload = {"sub": user_id, "type": token_type, "iat": now, "exp": now + expires_in}
        return jwt.encode(payload, secret or settings.jwt_secret, algorithm=settings.jwt_algorithm)

    return _make_token
