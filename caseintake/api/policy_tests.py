"""
Policy test endpoints - manage scorer test suites and replay them.
"""
import logging
import uuid
from typing import Optional
from fastapi import APIRouter, Depends, HTTPException, Query
from sqlalchemy.ext.asyncio import AsyncSession

from caseintake.api.deps import get_org_id
from caseintake.database import get_db
from caseintake.models.policy_test import PolicyTestRun, PolicyTestSuite
from caseintake.schemas.api_responses import (
    PolicyTestRunSummary,
    PolicyTestSuiteCreate,
    PolicyTestSuiteSummary,
)
from caseintake.services import policy_tests

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/v1/policy-tests", tags=["policy-tests"])


def _suite_summary(suite: PolicyTestSuite) -> PolicyTestSuiteSummary:
    return PolicyTestSuiteSummary(
        id=str(suite.id),
        name=suite.name,
        case_count=len(suite.test_cases or []),
        created_at=suite.created_at,
    )


def _run_summary(run: PolicyTestRun) -> PolicyTestRunSummary:
    return PolicyTestRunSummary(
        id=str(run.id),
        suite_id=str(run.suite_id),
        status=run.status,
        summary=run.summary or {},
        results=run.results or [],
        created_at=run.created_at,
    )


@router.post("/suites", response_model=PolicyTestSuiteSummary, status_code=201)
async def create_policy_suite(
    payload: PolicyTestSuiteCreate,
    org_id: uuid.UUID = Depends(get_org_id),
    db: AsyncSession = Depends(get_db),
):
    suite = await policy_tests.create_suite(
        db, org_id, payload.name,
        [case.model_dump(exclude_none=True) for case in payload.test_cases],
    )
    return _suite_summary(suite)


@router.get("/suites", response_model=list[PolicyTestSuiteSummary])
async def list_policy_suites(
    org_id: uuid.UUID = Depends(get_org_id),
    db: AsyncSession = Depends(get_db),
):
    return [_suite_summary(s) for s in await policy_tests.list_suites(db, org_id)]


@router.post("/suites/{suite_id}/run", response_model=PolicyTestRunSummary)
async def run_policy_suite(
    suite_id: uuid.UUID,
    org_id: uuid.UUID = Depends(get_org_id),
    db: AsyncSession = Depends(get_db),
):
    """Replay every case in the suite against the organization's current rules."""
    suite = await policy_tests.get_suite(db, org_id, suite_id)
    if suite is None:
        raise HTTPException(status_code=404, detail="Suite not found")
    return _run_summary(await policy_tests.run_suite(db, suite))


@router.get("/runs", response_model=list[PolicyTestRunSummary])
async def list_policy_runs(
    suite_id: Optional[uuid.UUID] = Query(None),
    limit: int = Query(20, ge=1, le=100),
    org_id: uuid.UUID = Depends(get_org_id),
    db: AsyncSession = Depends(get_db),
):
    runs = await policy_tests.list_runs(db, org_id, suite_id=suite_id, limit=limit)
    return [_run_summary(r) for r in runs]
