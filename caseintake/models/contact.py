"""
Contact model - a person. Deduplicated per organization by phone or email.
Once `primary_phone` is set it is never overwritten with null.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID
from sqlalchemy.orm import Mapped, mapped_column, relationship
from caseintake.database import Base

UNKNOWN_CALLER_NAME = "Unknown Caller"


class Contact(Base):
    __tablename__ = "contacts"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    org_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False
    )
    name: Mapped[str] = mapped_column(String(255), nullable=False, default=UNKNOWN_CALLER_NAME)
    primary_phone: Mapped[Optional[str]] = mapped_column(String(20))
    primary_email: Mapped[Optional[str]] = mapped_column(String(255))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    leads: Mapped[list["Lead"]] = relationship(back_populates="contact", lazy="select")

    __table_args__ = (
        Index("ix_contacts_org_phone", "org_id", "primary_phone"),
        Index("ix_contacts_org_email", "org_id", "primary_email"),
    )

    def apply_identity(
        self,
        phone: Optional[str] = None,
        email: Optional[str] = None,
        name: Optional[str] = None,
    ) -> None:
        """Fill in missing identity fields. Never clears a value that is already set."""
        if phone and not self.primary_phone:
            self.primary_phone = phone
        if email and not self.primary_email:
            self.primary_email = email
        if name and (not self.name or self.name == UNKNOWN_CALLER_NAME):
            self.name = name

    def __repr__(self) -> str:
        masked = "****" + self.primary_phone[-4:] if self.primary_phone else "none"
        return f"<Contact {masked}>"
