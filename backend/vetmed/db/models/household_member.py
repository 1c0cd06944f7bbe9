"""Module: household_member."""

import uuid
from sqlalchemy import String, ForeignKey
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from vetmed.db.base import Base

WRITE_ROLES = {"OWNER", "ADMIN", "CAREGIVER"}
READ_ONLY_ROLES = {"VETREADONLY"}


class HouseholdMember(Base):
    __tablename__ = "household_members"

    household_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("households.household_id", ondelete="CASCADE"),
        primary_key=True
    )
    user_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True),
        ForeignKey("users.user_id", ondelete="CASCADE"),
        primary_key=True
    )
    role: Mapped[str] = mapped_column(String, nullable=False, default="CAREGIVER")  # OWNER, ADMIN, CAREGIVER, VETREADONLY

    @property
    def can_write(self) -> bool:
        return (self.role or "").upper() in WRITE_ROLES
