"""
Tests for the tenant-scoped endpoints: leads, policy tests and ingestion outcomes.
"""
import uuid

import pytest
from fastapi import HTTPException
from sqlalchemy import select

from caseintake.api.deps import get_org_id
from caseintake.api.ingestion_outcomes import get_ingestion_outcome_detail, get_ingestion_outcomes
from caseintake.api.leads import complete_lead_intake, get_lead_intake, run_lead_qualification
from caseintake.api.policy_tests import (
    create_policy_suite,
    list_policy_runs,
    list_policy_suites,
    run_policy_suite,
)
from caseintake.models.audit_log import AuditLog
from caseintake.models.ingestion_outcome import IngestionOutcome
from caseintake.models.intake import Intake
from caseintake.models.lead import Lead
from caseintake.schemas.api_responses import PolicyTestSuiteCreate
from caseintake.services.call_chain import find_or_create_call_chain
from caseintake.services.ingestion_outcome import record_ingestion_outcome


@pytest.fixture
async def lead(db, firm, make_caller) -> Lead:
    chain = await find_or_create_call_chain(db, firm, make_caller("call-1"))
    return await db.get(Lead, chain.lead_id)


@pytest.fixture
async def intake(db, lead) -> Intake:
    row = Intake(org_id=lead.org_id, lead_id=lead.id, answers={"injuries": "whiplash"})
    db.add(row)
    await db.flush()
    return row


class TestGetOrgId:
    async def test_missing_header(self):
        with pytest.raises(HTTPException) as exc:
            await get_org_id(None)
        assert exc.value.status_code == 401

    async def test_invalid_header(self):
        with pytest.raises(HTTPException) as exc:
            await get_org_id("acme")
        assert exc.value.status_code == 400

    async def test_valid_header(self):
        org_id = uuid.uuid4()
        assert await get_org_id(str(org_id)) == org_id


class TestQualificationEndpoint:
    async def test_runs_qualification(self, db, org, lead):
        response = await run_lead_qualification(lead.id, org_id=org.id, db=db)
        # phone 40 + one call 5
        assert response.score == 45
        assert response.disposition == "review"
        assert response.lead_status == "new"
        assert response.lead_id == str(lead.id)

    async def test_other_org_is_404(self, db, lead):
        with pytest.raises(HTTPException) as exc:
            await run_lead_qualification(lead.id, org_id=uuid.uuid4(), db=db)
        assert exc.value.status_code == 404


class TestIntakeEndpoints:
    async def test_get_intake(self, db, org, lead, intake):
        detail = await get_lead_intake(lead.id, org_id=org.id, db=db)
        assert detail.completion_status == "partial"
        assert detail.answers == {"injuries": "whiplash"}

    async def test_missing_intake_is_404(self, db, org, lead):
        with pytest.raises(HTTPException) as exc:
            await get_lead_intake(lead.id, org_id=org.id, db=db)
        assert exc.value.status_code == 404

    async def test_complete_intake_once(self, db, org, lead, intake):
        detail = await complete_lead_intake(lead.id, org_id=org.id, db=db)
        assert detail.completion_status == "complete"
        assert detail.completed_at is not None
        await complete_lead_intake(lead.id, org_id=org.id, db=db)

        entries = (await db.execute(
            select(AuditLog).where(AuditLog.action == "intake_completed")
        )).scalars().all()
        assert len(entries) == 1
        assert entries[0].actor_type == "user"


class TestPolicyTestEndpoints:
    async def test_create_run_and_list(self, db, org):
        payload = PolicyTestSuiteCreate.model_validate({
            "name": "Baseline",
            "test_cases": [
                {"id": "empty", "input": {}, "expectedDisposition": "decline", "expectedScore": 0},
                {"id": "phone-only", "input": {"contact": {"phone": "+15125559876"}}, "expectedDisposition": "review"},
            ],
        })
        suite = await create_policy_suite(payload, org_id=org.id, db=db)
        assert suite.case_count == 2

        run = await run_policy_suite(uuid.UUID(suite.id), org_id=org.id, db=db)
        assert run.status == "passed"
        assert run.summary == {"total": 2, "passed": 2, "failed": 0}

        suites = await list_policy_suites(org_id=org.id, db=db)
        assert [s.name for s in suites] == ["Baseline"]
        runs = await list_policy_runs(suite_id=None, limit=20, org_id=org.id, db=db)
        assert [r.id for r in runs] == [run.id]

    async def test_run_unknown_suite(self, db, org):
        with pytest.raises(HTTPException) as exc:
            await run_policy_suite(uuid.uuid4(), org_id=org.id, db=db)
        assert exc.value.status_code == 404


class TestIngestionOutcomesEndpoint:
    async def test_lists_org_outcomes(self, db, org):
        await record_ingestion_outcome(
            db, provider="vapi", event_type="end-of-call-report", external_id="call-1",
            status="failed", org_id=org.id, error_code="persistence_error",
        )
        await record_ingestion_outcome(
            db, provider="vapi", event_type="end-of-call-report", external_id="call-2",
            status="failed", org_id=uuid.uuid4(),
        )
        response = await get_ingestion_outcomes(provider="vapi", status="failed", limit=50, include_unrouted=False, org_id=org.id, db=db)
        assert response.count == 1
        assert response.outcomes[0].external_id == "call-1"
        assert response.outcomes[0].error_code == "persistence_error"

    async def test_invalid_status(self, db, org):
        with pytest.raises(HTTPException) as exc:
            await get_ingestion_outcomes(provider=None, status="exploded", limit=50, include_unrouted=False, org_id=org.id, db=db)
        assert exc.value.status_code == 400

    async def test_unrouted_outcomes_opt_in(self, db, org):
        await record_ingestion_outcome(
            db, provider="openai_realtime", event_type="realtime.call.incoming", external_id="rtc-1",
            status="skipped", error_code="no_org_match", payload={"to": "+15125550199"},
        )
        hidden = await get_ingestion_outcomes(
            provider=None, status=None, limit=50, include_unrouted=False, org_id=org.id, db=db,
        )
        assert hidden.count == 0

        shown = await get_ingestion_outcomes(
            provider=None, status=None, limit=50, include_unrouted=True, org_id=org.id, db=db,
        )
        assert shown.count == 1
        assert shown.outcomes[0].error_code == "no_org_match"
        assert shown.outcomes[0].org_id is None


class TestIngestionOutcomeDetail:
    async def test_returns_stored_payload(self, db, org):
        await record_ingestion_outcome(
            db, provider="vapi", event_type="end-of-call-report", external_id="call-9",
            status="failed", org_id=org.id, error_code="persistence_error", payload={"message": {"type": "end-of-call-report"}},
        )
        outcome_id = (await db.execute(select(IngestionOutcome.id))).scalar_one()

        detail = await get_ingestion_outcome_detail(outcome_id, org_id=org.id, db=db)
        assert detail.payload == {"message": {"type": "end-of-call-report"}}
        assert detail.error_code == "persistence_error"

    async def test_other_org_is_404(self, db, org):
        await record_ingestion_outcome(
            db, provider="vapi", event_type="end-of-call-report", external_id="call-10",
            status="failed", org_id=org.id,
        )
        outcome_id = (await db.execute(select(IngestionOutcome.id))).scalar_one()
        with pytest.raises(HTTPException) as exc:
            await get_ingestion_outcome_detail(outcome_id, org_id=uuid.uuid4(), db=db)
        assert exc.value.status_code == 404

    async def test_unknown_id_is_404(self, db, org):
        with pytest.raises(HTTPException) as exc:
            await get_ingestion_outcome_detail(uuid.uuid4(), org_id=org.id, db=db)
        assert exc.value.status_code == 404
