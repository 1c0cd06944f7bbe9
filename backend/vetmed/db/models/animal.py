"""Module: animal."""

import uuid
from datetime import date, datetime

from sqlalchemy import String, Date, DateTime, ForeignKey, Numeric
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from vetmed.db.base import Base
from vetmed.scheduling.clock import utcnow


# Animal profile; its timezone drives every schedule attached to it.
class Animal(Base):
    __tablename__ = "animals"

    # Primary Key
    animal_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        primary_key=True,
        default=uuid.uuid4
    )
    household_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("households.household_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )

    # Basic Info
    name: Mapped[str] = mapped_column(String, nullable=False)
    species: Mapped[str] = mapped_column(String, nullable=False)
    breed: Mapped[str] = mapped_column(String, nullable=True)
    sex: Mapped[str] = mapped_column(String, nullable=True)
    microchip_number: Mapped[str] = mapped_column(String, nullable=True)

    # Null means "use the household zone".
    timezone: Mapped[str] = mapped_column(String, nullable=True)

    # Optional Info
    date_of_birth: Mapped[date] = mapped_column(Date, nullable=True)
    weight_kg: Mapped[float] = mapped_column(Numeric(6, 2), nullable=True)

    # Audit
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        default=utcnow
    )
    deleted_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=True)
