"""
Phone number model - a firm's inbound number. The called number on every
telephony webhook is matched against `e164` to find the owning tenant.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, Boolean, DateTime, ForeignKey, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from caseintake.database import Base


class PhoneNumber(Base):
    __tablename__ = "phone_numbers"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    org_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False
    )
    label: Mapped[str] = mapped_column(String(100), default="Main line")
    e164: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    provider: Mapped[str] = mapped_column(
        String(30), default="twilio"
    )  # twilio, vapi, openai_realtime
    provider_sid: Mapped[Optional[str]] = mapped_column(String(100))
    inbound_enabled: Mapped[bool] = mapped_column(Boolean, default=True)
    routing: Mapped[Optional[dict]] = mapped_column(JSONB)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )

    organization: Mapped["Organization"] = relationship(back_populates="phone_numbers")

    __table_args__ = (
        Index("ix_phone_numbers_org_id", "org_id"),
    )

    def __repr__(self) -> str:
        masked = "****" + self.e164[-4:] if self.e164 else "unknown"
        return f"<PhoneNumber {masked} inbound={self.inbound_enabled}>"
