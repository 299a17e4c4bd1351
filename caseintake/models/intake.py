"""
Intake model - structured answers collected during the conversation.
One per lead. Answers merge incrementally and are never replaced wholesale.
"""
import uuid
from datetime import datetime, timezone
from typing import Optional
from sqlalchemy import String, DateTime, ForeignKey
from sqlalchemy.dialects.postgresql import UUID, JSONB
from sqlalchemy.orm import Mapped, mapped_column
from caseintake.database import Base


class Intake(Base):
    __tablename__ = "intakes"

    id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), primary_key=True, default=uuid.uuid4
    )
    org_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("organizations.id"), nullable=False
    )
    lead_id: Mapped[uuid.UUID] = mapped_column(
        UUID(as_uuid=True), ForeignKey("leads.id"), nullable=False, unique=True
    )
    practice_area_id: Mapped[Optional[uuid.UUID]] = mapped_column(
        UUID(as_uuid=True), ForeignKey("practice_areas.id")
    )
    answers: Mapped[Optional[dict]] = mapped_column(JSONB, default=dict)
    completion_status: Mapped[str] = mapped_column(
        String(20), default="partial", nullable=False
    )  # partial, complete
    completed_at: Mapped[Optional[datetime]] = mapped_column(DateTime(timezone=True))

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc)
    )
    updated_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), onupdate=lambda: datetime.now(timezone.utc)
    )

    def merge_answers(self, new_answers: dict) -> None:
        """Union new answers into the existing map. New values win on key collisions."""
        # Assign a fresh dict so the JSONB change is detected on flush
        self.answers = {**(self.answers or {}), **new_answers}

    def mark_complete(self) -> None:
        self.completion_status = "complete"
        self.completed_at = datetime.now(timezone.utc)
