"""
Qualification run - snapshot a lead, score it, persist the result.
"""
import logging
import uuid
from typing import Optional

from pydantic import ValidationError
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from caseintake.agents.qualify import score_lead
from caseintake.models.ai_config import AiConfig
from caseintake.models.call import Call
from caseintake.models.contact import Contact
from caseintake.models.intake import Intake
from caseintake.models.lead import Lead
from caseintake.models.qualification import Qualification
from caseintake.schemas.qualification import (
    LeadSnapshot,
    QualificationResult,
    QualificationRules,
    SnapshotContact,
    SnapshotIntake,
)
from caseintake.services.audit import record_audit_log

logger = logging.getLogger(__name__)

# Disposition -> lead status. `review` leaves the status untouched.
DISPOSITION_STATUS = {
    "accept": "qualified",
    "decline": "unqualified",
}


class LeadNotFoundError(Exception):
    """Lead does not exist or belongs to another organization."""


async def build_lead_snapshot(db: AsyncSession, lead: Lead) -> LeadSnapshot:
    """Read the lead's current contact, intake, call count and flags."""
    contact = await db.get(Contact, lead.contact_id)
    result = await db.execute(select(Intake).where(Intake.lead_id == lead.id))
    intake = result.scalar_one_or_none()
    call_count = await db.scalar(
        select(func.count()).select_from(Call).where(Call.lead_id == lead.id)
    )

    flags = (lead.intake_data or {}).get("flags") or []
    return LeadSnapshot(
        contact=SnapshotContact(
            phone=contact.primary_phone if contact else None,
            email=contact.primary_email if contact else None,
            name=contact.name if contact else None,
        ),
        practice_area=lead.practice_area_id is not None,
        intake=SnapshotIntake(
            complete=intake.completion_status == "complete",
            answers=dict(intake.answers or {}),
        ) if intake else None,
        calls=int(call_count or 0),
        flags=[str(f) for f in flags] if isinstance(flags, list) else [],
    )


async def load_qualification_rules(db: AsyncSession, org_id: uuid.UUID) -> QualificationRules:
    """Organization rules from ai_configs; defaults when missing or malformed."""
    result = await db.execute(select(AiConfig).where(AiConfig.org_id == org_id))
    config = result.scalar_one_or_none()
    if config is None or not config.qualification_rules:
        return QualificationRules()
    try:
        return QualificationRules.model_validate(config.qualification_rules)
    except ValidationError as e:
        logger.warning(
            "Invalid qualification rules for org %s, using defaults: %s", str(org_id)[:8], str(e),
            extra={"tag": "qualification_rules_invalid", "org_id": str(org_id)},
        )
        return QualificationRules()


async def run_qualification(
    db: AsyncSession,
    lead_id: uuid.UUID,
    org_id: uuid.UUID,
) -> tuple[Lead, QualificationResult]:
    """
    Score a lead against its organization's rules and persist the outcome.

    Raises:
        LeadNotFoundError: lead missing or outside `org_id`.
    """
    lead: Optional[Lead] = await db.get(Lead, lead_id)
    if lead is None or lead.org_id != org_id:
        raise LeadNotFoundError(str(lead_id))

    snapshot = await build_lead_snapshot(db, lead)
    rules = await load_qualification_rules(db, org_id)
    result = score_lead(snapshot, rules)

    existing = await db.execute(select(Qualification).where(Qualification.lead_id == lead.id))
    qualification = existing.scalar_one_or_none()
    reasons = {
        "reasons": result.reasons,
        "score_factors": [f.model_dump() for f in result.score_factors],
        "missing_fields": result.missing_fields,
        "disqualifiers": result.disqualifiers,
    }
    if qualification is None:
        qualification = Qualification(org_id=org_id, lead_id=lead.id)
        db.add(qualification)
    qualification.score = result.score
    qualification.disposition = result.disposition
    qualification.reasons = reasons

    lead.score = result.score
    new_status = DISPOSITION_STATUS.get(result.disposition)
    if new_status:
        lead.status = new_status
    await db.flush()

    await record_audit_log(
        db, org_id, "qualification_run", "lead", lead.id,
        details={
            "score": result.score,
            "disposition": result.disposition,
            "disqualifiers": result.disqualifiers,
        },
        actor_type="system",
    )
    logger.info(
        "Lead %s scored %d (%s)", str(lead.id)[:8], result.score, result.disposition,
        extra={"tag": "qualification_run", "lead_id": str(lead.id), "org_id": str(org_id)},
    )
    return lead, result
