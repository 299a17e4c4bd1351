"""
AI config model - per-organization voice agent settings.
`qualification_rules` holds the scorer's thresholds, weights and disqualifiers
as JSONB; see schemas.qualification.QualificationRules for the shape.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import Text, DateTime, ForeignKey
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship
from caseintake.database import Base


class AiConfig(Base):
    __tablename__ = "ai_configs"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    org_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False, unique=True
    )
    voice_greeting: Mapped[Optional[str]] = mapped_column(Text)
    disclaimer_text: Mapped[Optional[str]] = mapped_column(Text)
    handoff_rules: Mapped[Optional[dict]] = mapped_column(JSONB)
    qualification_rules: Mapped[Optional[dict]] = mapped_column(JSONB)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    organization: Mapped["Organization"] = relationship(back_populates="ai_config")
