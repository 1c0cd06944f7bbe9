"""Module: deps."""

import uuid
from typing import Generator

from fastapi import Header, HTTPException
from sqlalchemy.orm import Session

from vetmed.core.errors import Unauthorized
from vetmed.db.session import SessionLocal
from vetmed.scheduling.clock import SystemClock

_clock = SystemClock()


# Dependency provider: one DB session per request lifecycle.
def get_db() -> Generator[Session, None, None]:
    db = SessionLocal()
    try:
        yield db
    finally:
        db.close()


# Source of "now"; tests override this with a FixedClock.
def get_clock():
    return _clock


def get_current_user_id(x_user_id: str | None = Header(default=None)) -> uuid.UUID:
    if not x_user_id:
        raise Unauthorized("Missing X-User-Id header")
    try:
        return uuid.UUID(x_user_id)
    except ValueError:
        raise Unauthorized("Invalid X-User-Id header")


def parse_uuid(value: str, field_name: str = "id") -> uuid.UUID:
    try:
        return uuid.UUID(value)
    except ValueError:
        raise HTTPException(status_code=400, detail=f"Invalid {field_name} (must be UUID)")
