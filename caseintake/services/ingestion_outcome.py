"""
Ingestion outcome recorder - how each webhook ingestion attempt ended.

record_ingestion_outcome is called from error paths, so it must never raise:
a failure to record is logged as `ingestion_outcome_write_error` and dropped.
"""
import json
import logging
import uuid
from typing import Any, Optional

from sqlalchemy import or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from caseintake.config import get_settings
from caseintake.models.ingestion_outcome import IngestionOutcome
from caseintake.services.audit import run_best_effort
from caseintake.utils.logging import get_correlation_id

logger = logging.getLogger(__name__)

OUTCOME_STATUSES = ("persisted", "failed", "skipped")


def _json_safe(payload: Any) -> Any:
    """Round-trip through json with str() fallback so the JSONB column always accepts it."""
    if payload is None:
        return None
    return json.loads(json.dumps(payload, default=str))


def _to_uuid(value: Any) -> Optional[uuid.UUID]:
    if value is None or isinstance(value, uuid.UUID):
        return value
    try:
        return uuid.UUID(str(value))
    except ValueError:
        return None


async def record_ingestion_outcome(
    db: AsyncSession,
    *,
    provider: str,
    event_type: str,
    external_id: str,
    status: str,
    org_id: Any = None,
    error_code: Optional[str] = None,
    error_message: Optional[str] = None,
    payload: Any = None,
) -> None:
    """
    Append one outcome row. Payload is stored only for failed/skipped outcomes
    and the error message is truncated. Never raises.
    """

    async def _write() -> None:
        max_length = get_settings().ingestion_error_message_max_length
        message = str(error_message)[:max_length] if error_message else None
        stored_payload = _json_safe(payload) if status != "persisted" else None
        db.add(IngestionOutcome(
            provider=provider,
            event_type=event_type,
            external_id=str(external_id),
            org_id=_to_uuid(org_id),
            status=status,
            error_code=error_code,
            error_message=message,
            payload=stored_payload,
            correlation_id=get_correlation_id() or None,
        ))
        await db.flush()

    await run_best_effort(
        db,
        "ingestion_outcome_write",
        _write,
        provider=provider,
        event_type=event_type,
        external_id=str(external_id),
        status=status,
    )


async def list_ingestion_outcomes(
    db: AsyncSession,
    provider: Optional[str] = None,
    status: Optional[str] = None,
    org_id: Optional[uuid.UUID] = None,
    limit: int = 50,
    include_unrouted: bool = False,
) -> list[IngestionOutcome]:
    """
    Newest outcomes first, optionally filtered. `limit` is clamped to 1..200.

    Outcomes for calls that matched no firm are stored without an org_id;
    `include_unrouted` adds them to an org-scoped listing.
    """
    limit = max(1, min(int(limit), 200))
    query = select(IngestionOutcome)
    if provider:
        query = query.where(IngestionOutcome.provider == provider)
    if status:
        query = query.where(IngestionOutcome.status == status)
    if org_id:
        if include_unrouted:
            query = query.where(or_(IngestionOutcome.org_id == org_id, IngestionOutcome.org_id.is_(None)))
        else:
            query = query.where(IngestionOutcome.org_id == org_id)
    query = query.order_by(IngestionOutcome.created_at.desc()).limit(limit)
    result = await db.execute(query)
    return list(result.scalars().all())


async def get_ingestion_outcome(
    db: AsyncSession, outcome_id: uuid.UUID, org_id: uuid.UUID,
) -> Optional[IngestionOutcome]:
    """One outcome with its payload, visible to its org or, when unrouted, to any org."""
    outcome = await db.get(IngestionOutcome, outcome_id)
    if outcome is None or outcome.org_id not in (None, org_id):
        return None
    return outcome
