"""
Ingestion outcome - write-only audit of how each webhook ingestion attempt ended.
Payload is kept only for failed/skipped outcomes to bound storage.
"""
import uuid
from datetime import datetime, timezone
from sqlalchemy import Column, String, DateTime, Text, Index
from sqlalchemy.dialects.postgresql import UUID, JSONB
from caseintake.database import Base


class IngestionOutcome(Base):
    __tablename__ = "ingestion_outcomes"

    id = Column(UUID(as_uuid=True), primary_key=True, default=uuid.uuid4)
    provider = Column(String(50), nullable=False)
    event_type = Column(String(100), nullable=False)
    external_id = Column(String(255), nullable=False)
    org_id = Column(UUID(as_uuid=True), nullable=True)
    status = Column(String(20), nullable=False)  # persisted, failed, skipped
    error_code = Column(String(100), nullable=True)
    error_message = Column(Text, nullable=True)
    payload = Column(JSONB, nullable=True)
    correlation_id = Column(String(64), nullable=True)
    created_at = Column(DateTime(timezone=True), default=lambda: datetime.now(timezone.utc), nullable=False)

    __table_args__ = (
        Index("ix_ingestion_outcomes_provider_status", "provider", "status"),
        Index("ix_ingestion_outcomes_provider_created_at", "provider", "created_at"),
        Index("ix_ingestion_outcomes_status_created_at", "status", "created_at"),
    )
