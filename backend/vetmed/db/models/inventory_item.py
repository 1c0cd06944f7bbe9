"""Module: inventory_item."""

import uuid
from datetime import date

from sqlalchemy import Boolean, Date, ForeignKey, Integer, String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from vetmed.db.base import Base


# A physical supply of a medication held by a household.
class InventoryItem(Base):
    __tablename__ = "inventory_items"

    item_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    household_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("households.household_id", ondelete="CASCADE"),
        nullable=False,
        index=True,
    )
    medication_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("medications.medication_id"),
        nullable=False,
    )
    lot: Mapped[str] = mapped_column(String, nullable=True)
    expires_on: Mapped[date] = mapped_column(Date, nullable=False)
    units_remaining: Mapped[int] = mapped_column(Integer, nullable=True)
    in_use: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    assigned_animal_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("animals.animal_id", ondelete="SET NULL"),
        nullable=True,
    )
