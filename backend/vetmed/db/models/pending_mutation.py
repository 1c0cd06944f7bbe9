"""Module: pending_mutation."""

import uuid
from datetime import datetime

from sqlalchemy import DateTime, Integer, JSON, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from vetmed.db.base import Base
from vetmed.scheduling.clock import utcnow


# Server-side offline queue entry; keyed by the same idempotency key the command carries.
class PendingMutation(Base):
    __tablename__ = "pending_mutations"

    idempotency_key: Mapped[str] = mapped_column(String, primary_key=True)
    mutation_type: Mapped[str] = mapped_column(String, nullable=False)
    payload: Mapped[dict] = mapped_column(JSON, nullable=False)
    household_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=True, index=True)
    user_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=False)

    retries: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    max_retries: Mapped[int] = mapped_column(Integer, nullable=False, default=3)
    last_error: Mapped[str] = mapped_column(String, nullable=True)
    next_attempt_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
    status: Mapped[str] = mapped_column(String, nullable=False, default="queued")  # queued, failed

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
