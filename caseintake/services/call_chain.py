"""
Canonical record chain: Contact -> Lead -> Interaction -> Call.

Every ingestion path (Twilio, Vapi, OpenAI Realtime) funnels through
find_or_create_call_chain so that one provider call id maps to exactly one
Call row, and repeat callers land on their open Lead instead of a new one.
"""
import logging
import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from caseintake.models.call import Call
from caseintake.models.contact import Contact
from caseintake.models.interaction import Interaction
from caseintake.models.lead import Lead, OPEN_LEAD_STATUSES
from caseintake.services.audit import record_audit_log
from caseintake.services.normalizer import FirmMatch, NormalizedCaller
from caseintake.utils.phone import mask_phone

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class CallChain:
    org_id: uuid.UUID
    contact_id: uuid.UUID
    lead_id: uuid.UUID
    interaction_id: uuid.UUID
    call_id: Optional[uuid.UUID]
    created: bool


async def find_or_create_contact(
    db: AsyncSession,
    org_id: uuid.UUID,
    phone: Optional[str],
    email: Optional[str] = None,
    name: Optional[str] = None,
) -> Contact:
    """
    Match a contact in the org by phone or email, creating one if neither matches.
    Missing identity fields on a match are filled in; set fields are never cleared.
    """
    contact = None
    if phone:
        result = await db.execute(
            select(Contact).where(
                Contact.org_id == org_id, Contact.primary_phone == phone,
            ).order_by(Contact.created_at).limit(1)
        )
        contact = result.scalar_one_or_none()
    if contact is None and email:
        result = await db.execute(
            select(Contact).where(
                Contact.org_id == org_id, Contact.primary_email == email,
            ).order_by(Contact.created_at).limit(1)
        )
        contact = result.scalar_one_or_none()

    if contact is None:
        contact = Contact(org_id=org_id, primary_phone=phone, primary_email=email)
        if name:
            contact.name = name
        db.add(contact)
        await db.flush()
        return contact

    contact.apply_identity(phone=phone, email=email, name=name)
    await db.flush()
    return contact


async def find_open_lead(
    db: AsyncSession,
    org_id: uuid.UUID,
    contact_id: uuid.UUID,
) -> Optional[Lead]:
    """Newest lead for the contact that a new conversation can attach to."""
    result = await db.execute(
        select(Lead).where(
            Lead.org_id == org_id,
            Lead.contact_id == contact_id,
            Lead.status.in_(OPEN_LEAD_STATUSES),
        ).order_by(Lead.created_at.desc()).limit(1)
    )
    return result.scalar_one_or_none()


async def get_call_by_provider_id(db: AsyncSession, provider_call_id: str) -> Optional[Call]:
    result = await db.execute(
        select(Call).where(Call.provider_call_id == provider_call_id)
    )
    return result.scalar_one_or_none()


async def find_or_create_call_chain(
    db: AsyncSession,
    firm: FirmMatch,
    caller: NormalizedCaller,
    channel: str = "call",
    source: str = "phone",
) -> CallChain:
    """
    Return the chain for caller.external_call_id, creating it on first sight.

    The Call's unique provider_call_id makes repeat deliveries for the same
    call resolve to the existing rows.
    """
    existing = await get_call_by_provider_id(db, caller.external_call_id)
    if existing:
        lead = await db.get(Lead, existing.lead_id)
        return CallChain(
            org_id=existing.org_id,
            contact_id=lead.contact_id,
            lead_id=existing.lead_id,
            interaction_id=existing.interaction_id,
            call_id=existing.id,
            created=False,
        )

    # Web calls have no caller number; keep a stable placeholder per call
    from_e164 = caller.phone_e164 or f"web:{caller.external_call_id[:24]}"
    contact = await find_or_create_contact(
        db, firm.org_id, caller.phone_e164, name=caller.display_name,
    )

    lead = await find_open_lead(db, firm.org_id, contact.id) if caller.phone_e164 else None
    if lead is None:
        lead = Lead(
            org_id=firm.org_id,
            contact_id=contact.id,
            source=source,
            status="new",
            priority="medium",
            display_name=caller.display_name,
        )
        db.add(lead)
        await db.flush()
    elif caller.display_name and not lead.display_name:
        lead.display_name = caller.display_name

    now = datetime.now(timezone.utc)
    interaction = Interaction(
        org_id=firm.org_id,
        lead_id=lead.id,
        channel=channel,
        status="active",
        extra_data=caller.caller_metadata or None,
        started_at=now,
    )
    db.add(interaction)
    await db.flush()

    call = Call(
        org_id=firm.org_id,
        lead_id=lead.id,
        interaction_id=interaction.id,
        phone_number_id=firm.phone_number_id,
        direction="inbound",
        provider=caller.provider,
        provider_call_id=caller.external_call_id,
        from_e164=from_e164,
        to_e164=caller.called_e164 or firm.e164,
        started_at=now,
    )
    db.add(call)
    lead.last_activity_at = now
    await db.flush()

    await record_audit_log(
        db, firm.org_id, "inbound_call_received", "call", call.id,
        details={
            "provider": caller.provider,
            "provider_call_id": caller.external_call_id,
            "from": mask_phone(caller.phone_e164),
        },
        actor_type="system",
    )

    logger.info(
        "Call chain created for %s call %s", caller.provider, caller.external_call_id,
        extra={
            "tag": "call_chain_created",
            "provider": caller.provider,
            "call_id": caller.external_call_id,
            "lead_id": str(lead.id),
            "org_id": str(firm.org_id),
        },
    )
    return CallChain(
        org_id=firm.org_id,
        contact_id=contact.id,
        lead_id=lead.id,
        interaction_id=interaction.id,
        call_id=call.id,
        created=True,
    )


async def close_call(
    db: AsyncSession,
    provider_call_id: str,
    summary: Optional[str] = None,
    duration_seconds: Optional[int] = None,
    recording_url: Optional[str] = None,
) -> Optional[Call]:
    """
    Stamp a call as ended and complete its interaction.
    Returns None if no call with that provider id exists.
    """
    call = await get_call_by_provider_id(db, provider_call_id)
    if call is None:
        return None

    now = datetime.now(timezone.utc)
    call.ended_at = now
    if duration_seconds is not None:
        call.duration_seconds = int(duration_seconds)
    else:
        call.duration_seconds = call.elapsed_seconds(now)
    if summary:
        call.ai_summary = summary
    if recording_url:
        call.recording_url = recording_url

    interaction = await db.get(Interaction, call.interaction_id)
    if interaction is not None:
        interaction.status = "completed"
        interaction.ended_at = now

    await db.flush()
    return call


async def find_or_create_sms_chain(
    db: AsyncSession,
    firm: FirmMatch,
    caller: NormalizedCaller,
    body: str = "",
) -> CallChain:
    """Attach an inbound SMS to the sender's open lead (or a new one) as an sms interaction."""
    contact = await find_or_create_contact(db, firm.org_id, caller.phone_e164)
    lead = await find_open_lead(db, firm.org_id, contact.id)
    if lead is None:
        lead = Lead(
            org_id=firm.org_id,
            contact_id=contact.id,
            source="sms",
            status="new",
            priority="medium",
        )
        db.add(lead)
        await db.flush()

    now = datetime.now(timezone.utc)
    interaction = Interaction(
        org_id=firm.org_id,
        lead_id=lead.id,
        channel="sms",
        status="completed",
        extra_data={"message_sid": caller.external_call_id, "body": body},
        started_at=now,
        ended_at=now,
    )
    db.add(interaction)
    lead.last_activity_at = now
    await db.flush()

    await record_audit_log(
        db, firm.org_id, "inbound_sms_received", "interaction", interaction.id,
        details={"message_sid": caller.external_call_id, "from": mask_phone(caller.phone_e164)},
        actor_type="system",
    )
    return CallChain(
        org_id=firm.org_id,
        contact_id=contact.id,
        lead_id=lead.id,
        interaction_id=interaction.id,
        call_id=None,
        created=True,
    )
