"""
Audit trail and best-effort secondary writes.

A secondary write (audit entry, ingestion outcome) must never undo the
primary work it describes. Each one runs inside a SAVEPOINT: on failure only
the savepoint is rolled back, the failure is logged, and False is returned.
"""
import logging
import uuid
from typing import Any, Awaitable, Callable, Optional

from sqlalchemy.ext.asyncio import AsyncSession

from caseintake.models.audit_log import AuditLog

logger = logging.getLogger(__name__)


async def run_best_effort(
    db: AsyncSession,
    description: str,
    write: Callable[[], Awaitable[Any]],
    **log_fields: Any,
) -> bool:
    """
    Run `write` inside a SAVEPOINT and suppress any failure.

    Returns True if the write was flushed, False if it failed. `log_fields`
    are attached to the failure log line as structured extras.
    """
    try:
        async with db.begin_nested():
            await write()
        return True
    except Exception as e:
        logger.warning(
            "Best-effort write failed: %s: %s", description, str(e),
            extra={"tag": f"{description}_error", "error": str(e), **log_fields},
        )
        return False


async def record_audit_log(
    db: AsyncSession,
    org_id: str | uuid.UUID,
    action: str,
    entity_type: str,
    entity_id: str | uuid.UUID,
    details: Optional[dict] = None,
    actor_type: str = "ai",
) -> bool:
    """Append an audit entry. Never raises."""

    async def _write() -> None:
        db.add(AuditLog(
            org_id=_as_uuid(org_id),
            actor_type=actor_type,
            action=action,
            entity_type=entity_type,
            entity_id=str(entity_id),
            details=details,
        ))
        await db.flush()

    return await run_best_effort(
        db, "audit_log_write", _write, org_id=str(org_id),
    )


def _as_uuid(value: str | uuid.UUID) -> uuid.UUID:
    return value if isinstance(value, uuid.UUID) else uuid.UUID(str(value))
