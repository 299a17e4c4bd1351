"""
Webhook idempotency gate - at-most-once processing per (provider, external_id).

Providers retry on timeouts and 5xx. The unique constraint on
webhook_events(provider, external_id) is the only arbiter: whichever insert
wins processes the event, every other attempt sees a duplicate.
"""
import logging
from typing import Any, Optional

from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from caseintake.models.webhook_event import WebhookEvent
from caseintake.utils.logging import get_correlation_id

logger = logging.getLogger(__name__)


async def check_idempotency(
    db: AsyncSession,
    provider: str,
    external_id: str,
    event_type: str,
    payload: Optional[Any] = None,
) -> bool:
    """
    Record the delivery and report whether it is new.

    Returns:
        True on the first delivery, False if (provider, external_id) was seen before.

    Raises:
        Any database error other than the unique violation.
    """
    try:
        async with db.begin_nested():
            db.add(WebhookEvent(
                provider=provider,
                external_id=external_id,
                event_type=event_type,
                payload=payload,
                correlation_id=get_correlation_id() or None,
            ))
            await db.flush()
    except IntegrityError:
        logger.info(
            "Duplicate webhook %s:%s ignored", provider, external_id,
            extra={"tag": "webhook_duplicate", "provider": provider, "external_id": external_id},
        )
        return False
    return True
