"""
Organization model - the tenant boundary. Every other record belongs to one.
Created at signup or seeding and never deleted in normal operation.
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import String, DateTime
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from caseintake.database import Base


class Organization(Base):
    __tablename__ = "organizations"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False)
    slug: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    timezone: Mapped[str] = mapped_column(String(50), default="America/New_York")

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    phone_numbers: Mapped[list["PhoneNumber"]] = relationship(
        back_populates="organization", lazy="select"
    )
    ai_config: Mapped["AiConfig | None"] = relationship(
        back_populates="organization", uselist=False, lazy="select"
    )

    def __repr__(self) -> str:
        return f"<Organization {self.slug}>"
