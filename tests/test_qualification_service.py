"""
Qualification run tests - snapshot, score, persist, and move the lead status.
"""
import uuid

import pytest
from sqlalchemy import select

from caseintake.models.ai_config import AiConfig
from caseintake.models.audit_log import AuditLog
from caseintake.models.intake import Intake
from caseintake.models.lead import Lead
from caseintake.models.qualification import Qualification
from caseintake.services.call_chain import find_or_create_call_chain
from caseintake.services.qualification import (
    LeadNotFoundError,
    build_lead_snapshot,
    load_qualification_rules,
    run_qualification,
)


@pytest.fixture
async def lead(db, firm, make_caller, practice_area) -> Lead:
    chain = await find_or_create_call_chain(db, firm, make_caller("call-1"))
    lead = await db.get(Lead, chain.lead_id)
    lead.practice_area_id = practice_area.id
    db.add(Intake(
        org_id=firm.org_id, lead_id=lead.id, completion_status="complete",
        answers={"incident_date": "2026-09-30", "incident_location": "I-35", "injuries": "whiplash"},
    ))
    await db.flush()
    return lead


class TestBuildLeadSnapshot:
    async def test_reads_lead_state(self, db, lead):
        lead.intake_data = {"flags": ["pre_existing_attorney"]}
        snapshot = await build_lead_snapshot(db, lead)
        assert snapshot.contact.phone == "+15125559876"
        assert snapshot.practice_area is True
        assert snapshot.intake.complete is True
        assert snapshot.calls == 1
        assert snapshot.flags == ["pre_existing_attorney"]


class TestLoadQualificationRules:
    async def test_defaults_without_config(self, db, org):
        rules = await load_qualification_rules(db, org.id)
        assert rules.min_score_for_accept == 70

    async def test_org_config(self, db, org):
        db.add(AiConfig(org_id=org.id, qualification_rules={"minScoreForAccept": 85}))
        await db.flush()
        assert (await load_qualification_rules(db, org.id)).min_score_for_accept == 85

    async def test_invalid_config_falls_back(self, db, org):
        db.add(AiConfig(org_id=org.id, qualification_rules={"minScoreForAccept": "lots"}))
        await db.flush()
        assert (await load_qualification_rules(db, org.id)).min_score_for_accept == 70


class TestRunQualification:
    async def test_accept_marks_qualified(self, db, org, lead):
        scored, result = await run_qualification(db, lead.id, org.id)
        # phone 40 + practice area 15 + complete intake 15 + one call 5
        assert result.score == 75
        assert result.disposition == "accept"
        assert scored.status == "qualified"
        assert scored.score == 75

        row = (await db.execute(select(Qualification))).scalar_one()
        assert row.score == 75
        assert row.disposition == "accept"
        assert row.reasons["reasons"][0] == "Score 75/100: accept"

        actions = (await db.execute(select(AuditLog.action))).scalars().all()
        assert "qualification_run" in actions

    async def test_rerun_updates_single_row(self, db, org, lead):
        await run_qualification(db, lead.id, org.id)
        lead.intake_data = {"flags": ["no_injury"]}
        await db.flush()
        scored, result = await run_qualification(db, lead.id, org.id)

        assert result.disposition == "decline"
        assert scored.status == "unqualified"
        rows = (await db.execute(select(Qualification))).scalars().all()
        assert len(rows) == 1
        assert rows[0].disposition == "decline"

    async def test_review_leaves_status(self, db, org, lead):
        db.add(AiConfig(org_id=org.id, qualification_rules={"minScoreForAccept": 90}))
        await db.flush()
        scored, result = await run_qualification(db, lead.id, org.id)
        assert result.disposition == "review"
        assert scored.status == "new"

    async def test_unknown_lead(self, db, org):
        with pytest.raises(LeadNotFoundError):
            await run_qualification(db, uuid.uuid4(), org.id)

    async def test_other_org_lead(self, db, lead):
        with pytest.raises(LeadNotFoundError):
            await run_qualification(db, lead.id, uuid.uuid4())
