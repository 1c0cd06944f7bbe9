"""Module: administration."""

import uuid
from datetime import datetime

from sqlalchemy import Boolean, DateTime, ForeignKey, JSON, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from vetmed.db.base import Base
from vetmed.scheduling.clock import utcnow


# Append-only record of one dose event. idempotency_key is the at-most-once guard.
class Administration(Base):
    __tablename__ = "administrations"

    administration_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )

    # Core relationships
    household_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("households.household_id"),
        nullable=False,
        index=True,
    )
    animal_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("animals.animal_id"),
        nullable=False,
        index=True,
    )
    regimen_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("regimens.regimen_id"),
        nullable=False,
        index=True,
    )
    caregiver_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id"),
        nullable=False,
    )

    # Timing; scheduled_for is null for PRN doses.
    scheduled_for: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True, index=True)
    recorded_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)

    status: Mapped[str] = mapped_column(String, nullable=False)  # ON_TIME, LATE, VERY_LATE, MISSED, PRN

    idempotency_key: Mapped[str] = mapped_column(String, nullable=False, unique=True)

    # Source tracking
    inventory_source_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("inventory_items.item_id"),
        nullable=True,
    )
    inventory_override: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    # Administration details
    dose: Mapped[str] = mapped_column(String, nullable=True)
    site: Mapped[str] = mapped_column(String, nullable=True)
    notes: Mapped[str] = mapped_column(String, nullable=True)
    condition_tags: Mapped[list] = mapped_column(JSON, nullable=False, default=list)

    # Co-signing
    requires_cosign: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    cosign_state: Mapped[str] = mapped_column(String, nullable=False, default="NOT_REQUIRED")
    cosign_user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id"),
        nullable=True,
    )
    cosigned_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)

    # Audit
    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    deleted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
    deleted_by: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), nullable=True)
    delete_reason: Mapped[str] = mapped_column(String, nullable=True)
