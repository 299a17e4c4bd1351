"""
Lead model - a case inquiry. Belongs to exactly one Contact and one Organization.
Lifecycle: new → contacted → qualified / unqualified → converted.
Voice-agent extras: in_progress while a call is live, needs_handoff on transfer requests.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Text, Integer, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from caseintake.database import Base

# Statuses a new call can attach to instead of opening a fresh lead
OPEN_LEAD_STATUSES = ("new", "contacted", "in_progress")


class Lead(Base):
    __tablename__ = "leads"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    org_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False
    )
    contact_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("contacts.id"), nullable=False
    )

    source: Mapped[str] = mapped_column(
        String(50), nullable=False
    )  # phone_call, phone, web, sms
    status: Mapped[str] = mapped_column(String(30), default="new", nullable=False)
    priority: Mapped[str] = mapped_column(String(20), default="medium", nullable=False)
    practice_area_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("practice_areas.id")
    )

    display_name: Mapped[Optional[str]] = mapped_column(String(255))
    summary: Mapped[Optional[str]] = mapped_column(Text)
    score: Mapped[Optional[int]] = mapped_column(Integer)
    intake_data: Mapped[Optional[dict]] = mapped_column(JSONB, default=dict)

    last_activity_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    contact: Mapped["Contact"] = relationship(back_populates="leads")

    __table_args__ = (
        Index("ix_leads_org_id", "org_id"),
        Index("ix_leads_contact_id", "contact_id"),
        Index("ix_leads_status", "status"),
        Index("ix_leads_created_at", "created_at"),
    )

    def __repr__(self) -> str:
        return f"<Lead {str(self.id)[:8]} status={self.status}>"
