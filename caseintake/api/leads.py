"""
Lead endpoints - qualification runs and intake state.
"""
import logging
import uuid
from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from caseintake.api.deps import get_org_id
from caseintake.database import get_db
from caseintake.models.intake import Intake
from caseintake.models.lead import Lead
from caseintake.schemas.api_responses import IntakeDetail, QualificationRunResponse
from caseintake.services.audit import record_audit_log
from caseintake.services.qualification import LeadNotFoundError, run_qualification

logger = logging.getLogger(__name__)
router = APIRouter(tags=["leads"])


async def _get_org_lead(db: AsyncSession, org_id: uuid.UUID, lead_id: uuid.UUID) -> Lead:
    lead = await db.get(Lead, lead_id)
    if lead is None or lead.org_id != org_id:
        raise HTTPException(status_code=404, detail="Lead not found")
    return lead


async def _get_intake(db: AsyncSession, lead_id: uuid.UUID) -> Intake:
    result = await db.execute(select(Intake).where(Intake.lead_id == lead_id))
    intake = result.scalar_one_or_none()
    if intake is None:
        raise HTTPException(status_code=404, detail="Intake not found")
    return intake


def _intake_detail(intake: Intake) -> IntakeDetail:
    return IntakeDetail(
        id=str(intake.id),
        lead_id=str(intake.lead_id),
        completion_status=intake.completion_status,
        answers=intake.answers or {},
        completed_at=intake.completed_at,
    )


@router.post("/v1/leads/{lead_id}/qualification/run", response_model=QualificationRunResponse)
async def run_lead_qualification(
    lead_id: uuid.UUID,
    org_id: uuid.UUID = Depends(get_org_id),
    db: AsyncSession = Depends(get_db),
):
    """Score the lead against the organization's current rules."""
    try:
        lead, result = await run_qualification(db, lead_id, org_id)
    except LeadNotFoundError:
        raise HTTPException(status_code=404, detail="Lead not found")

    return QualificationRunResponse(
        lead_id=str(lead.id),
        score=result.score,
        disposition=result.disposition,
        reasons=result.reasons,
        lead_status=lead.status,
    )


@router.get("/v1/leads/{lead_id}/intake", response_model=IntakeDetail)
async def get_lead_intake(
    lead_id: uuid.UUID,
    org_id: uuid.UUID = Depends(get_org_id),
    db: AsyncSession = Depends(get_db),
):
    await _get_org_lead(db, org_id, lead_id)
    return _intake_detail(await _get_intake(db, lead_id))


@router.post("/v1/leads/{lead_id}/intake/complete", response_model=IntakeDetail)
async def complete_lead_intake(
    lead_id: uuid.UUID,
    org_id: uuid.UUID = Depends(get_org_id),
    db: AsyncSession = Depends(get_db),
):
    """Mark the intake complete by hand (staff finished it after the call)."""
    await _get_org_lead(db, org_id, lead_id)
    intake = await _get_intake(db, lead_id)
    if intake.completion_status != "complete":
        intake.mark_complete()
        await db.flush()
        await record_audit_log(
            db, org_id, "intake_completed", "intake", intake.id,
            details={"lead_id": str(lead_id)}, actor_type="user",
        )
    return _intake_detail(intake)
