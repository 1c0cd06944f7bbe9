"""Module: regimen."""

import uuid
from datetime import date, datetime

from sqlalchemy import Boolean, Date, DateTime, ForeignKey, Integer, JSON, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from vetmed.db.base import Base
from vetmed.scheduling.clock import utcnow


# A medication plan for one animal. times_local is interpreted in the animal's zone.
class Regimen(Base):
    __tablename__ = "regimens"

    regimen_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    animal_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("animals.animal_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    medication_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("medications.medication_id"),
        nullable=False,
    )

    # Display information
    name: Mapped[str] = mapped_column(String, nullable=True)
    instructions: Mapped[str] = mapped_column(String, nullable=True)

    # Schedule configuration
    schedule_type: Mapped[str] = mapped_column(String, nullable=False)  # FIXED, PRN, INTERVAL, TAPER
    times_local: Mapped[list] = mapped_column(JSON, nullable=False, default=list)
    interval_hours: Mapped[int] = mapped_column(Integer, nullable=True)
    taper_steps: Mapped[list] = mapped_column(JSON, nullable=True)

    # Duration
    start_date: Mapped[date] = mapped_column(Date, nullable=False)
    end_date: Mapped[date] = mapped_column(Date, nullable=True)

    # PRN configuration
    prn_reason: Mapped[str] = mapped_column(String, nullable=True)
    max_daily_doses: Mapped[int] = mapped_column(Integer, nullable=True)

    # Safety configuration
    cutoff_mins: Mapped[int] = mapped_column(Integer, nullable=False, default=240)
    high_risk: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    requires_cosign: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True, index=True)

    # Dosing information (display only)
    dose: Mapped[str] = mapped_column(String, nullable=True)
    route: Mapped[str] = mapped_column(String, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow)
    deleted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
