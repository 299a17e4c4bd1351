"""
Ingestion outcome endpoints - what happened to recent webhook deliveries.

The list is a summary without payloads. The detail view returns the stored
payload of a failed/skipped delivery for replay. Calls that matched no firm
are stored without an org and are listed only with `include_unrouted=true`.
"""
import uuid
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from caseintake.api.deps import get_org_id
from caseintake.database import get_db
from caseintake.models.ingestion_outcome import IngestionOutcome
from caseintake.schemas.api_responses import (
    IngestionOutcomeDetail,
    IngestionOutcomeListResponse,
    IngestionOutcomeSummary,
)
from caseintake.services.ingestion_outcome import (
    OUTCOME_STATUSES,
    get_ingestion_outcome,
    list_ingestion_outcomes,
)

router = APIRouter(tags=["ingestion"])


def _summary_fields(o: IngestionOutcome) -> dict:
    return {
        "id": str(o.id),
        "provider": o.provider,
        "event_type": o.event_type,
        "external_id": o.external_id,
        "org_id": str(o.org_id) if o.org_id else None,
        "status": o.status,
        "error_code": o.error_code,
        "error_message": o.error_message,
        "created_at": o.created_at,
    }


@router.get("/v1/ingestion-outcomes", response_model=IngestionOutcomeListResponse)
async def get_ingestion_outcomes(
    provider: Optional[str] = Query(None),
    status: Optional[str] = Query(None),
    limit: int = Query(50, ge=1, le=200),
    include_unrouted: bool = Query(False),
    org_id: uuid.UUID = Depends(get_org_id),
    db: AsyncSession = Depends(get_db),
):
    if status and status not in OUTCOME_STATUSES:
        raise HTTPException(status_code=400, detail=f"status must be one of {', '.join(OUTCOME_STATUSES)}")

    outcomes = await list_ingestion_outcomes(
        db, provider=provider, status=status, org_id=org_id, limit=limit,
        include_unrouted=include_unrouted,
    )
    return IngestionOutcomeListResponse(
        outcomes=[IngestionOutcomeSummary(**_summary_fields(o)) for o in outcomes],
        count=len(outcomes),
    )


@router.get("/v1/ingestion-outcomes/{outcome_id}", response_model=IngestionOutcomeDetail)
async def get_ingestion_outcome_detail(
    outcome_id: uuid.UUID,
    org_id: uuid.UUID = Depends(get_org_id),
    db: AsyncSession = Depends(get_db),
):
    outcome = await get_ingestion_outcome(db, outcome_id, org_id)
    if outcome is None:
        raise HTTPException(status_code=404, detail="Ingestion outcome not found")
    return IngestionOutcomeDetail(
        **_summary_fields(outcome),
        payload=outcome.payload,
        correlation_id=outcome.correlation_id,
    )
