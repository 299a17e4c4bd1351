"""
Call model - a telephony or AI voice session.
`provider_call_id` is unique and is the dedup key against the originating provider.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Text, Integer, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column
from caseintake.database import Base


class Call(Base):
    __tablename__ = "calls"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    org_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False
    )
    lead_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("leads.id"), nullable=False
    )
    interaction_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("interactions.id"), nullable=False
    )
    phone_number_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("phone_numbers.id"), nullable=False
    )

    direction: Mapped[str] = mapped_column(String(10), default="inbound")
    provider: Mapped[str] = mapped_column(
        String(30), nullable=False
    )  # twilio, vapi, openai_realtime, elevenlabs
    provider_call_id: Mapped[str] = mapped_column(String(255), nullable=False, unique=True)
    from_e164: Mapped[str] = mapped_column(String(40), nullable=False)
    to_e164: Mapped[str] = mapped_column(String(20), nullable=False)

    started_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    ended_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))
    duration_seconds: Mapped[Optional[int]] = mapped_column(Integer)

    recording_url: Mapped[Optional[str]] = mapped_column(Text)
    transcript_text: Mapped[Optional[str]] = mapped_column(Text)
    transcript_json: Mapped[Optional[list]] = mapped_column(JSONB)
    ai_summary: Mapped[Optional[str]] = mapped_column(Text)
    ai_flags: Mapped[Optional[dict]] = mapped_column(JSONB)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    __table_args__ = (
        Index("ix_calls_lead_id", "lead_id"),
        Index("ix_calls_org_id", "org_id"),
    )

    def elapsed_seconds(self, now: Optional[datetime] = None) -> Optional[int]:
        """Whole seconds since `started_at`. Naive timestamps (SQLite) are read as UTC."""
        if not self.started_at:
            return None
        started = self.started_at
        if started.tzinfo is None:
            started = started.replace(tzinfo=timezone.utc)
        current = now or datetime.now(timezone.utc)
        return max(0, int((current - started).total_seconds()))

    def __repr__(self) -> str:
        return f"<Call {self.provider}:{self.provider_call_id}>"
