"""Module: medication."""

import uuid
from sqlalchemy import String
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column

from vetmed.db.base import Base


# Catalog entry shared across households; regimens and inventory items reference it.
class Medication(Base):
    __tablename__ = "medications"

    medication_id: Mapped[uuid.UUID] = mapped_column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    generic_name: Mapped[str] = mapped_column(String, nullable=False)
    brand_name: Mapped[str] = mapped_column(String, nullable=True)
    route: Mapped[str] = mapped_column(String, nullable=False, default="ORAL")
    form: Mapped[str] = mapped_column(String, nullable=False, default="TABLET")
    strength: Mapped[str] = mapped_column(String, nullable=True)

    @property
    def display_name(self) -> str:
        return self.generic_name or self.brand_name or "Unknown"
