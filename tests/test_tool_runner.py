"""
Tool runner tests - every tool call yields a result, context threads forward.
"""
import json
import uuid
from unittest.mock import patch

import pytest
from sqlalchemy import func, select

from caseintake.agents.tool_runner import (
    NO_LEAD_ERROR,
    _parse_answers,
    execute_tool_call,
    resolve_tool_name,
)
from caseintake.models.audit_log import AuditLog
from caseintake.models.call import Call
from caseintake.models.contact import Contact
from caseintake.models.intake import Intake
from caseintake.models.interaction import Interaction
from caseintake.models.lead import Lead
from caseintake.schemas.tool_calls import ToolCallContext, VapiToolCall
from caseintake.services.call_chain import find_or_create_call_chain


@pytest.fixture
def context(org) -> ToolCallContext:
    return ToolCallContext(call_id="rtc_1", org_id=str(org.id))


@pytest.fixture
async def lead_context(db, firm, make_caller) -> ToolCallContext:
    chain = await find_or_create_call_chain(db, firm, make_caller("rtc_1"))
    return ToolCallContext(
        call_id="rtc_1",
        org_id=str(chain.org_id),
        lead_id=str(chain.lead_id),
        contact_id=str(chain.contact_id),
        interaction_id=str(chain.interaction_id),
    )


class TestResolveToolName:
    def test_aliases(self):
        assert resolve_tool_name("savePartialIntake", {}) == ("save_intake_answers", {})
        assert resolve_tool_name("transfer_call_to_firm", {"reason": "x"}) == ("warm_transfer", {"reason": "x"})

    def test_intake_complete_alias_implies_outcome(self):
        assert resolve_tool_name("complete_intake", {"notes": "done"}) == (
            "end_call", {"outcome": "intake_complete", "notes": "done"},
        )

    def test_canonical_passthrough(self):
        assert resolve_tool_name("create_lead", {"name": "x"}) == ("create_lead", {"name": "x"})


class TestParseAnswers:
    def test_dict(self):
        assert _parse_answers({"a": 1}) == {"a": 1}

    def test_json_string(self):
        assert _parse_answers('{"incident_date": "2026-09-30"}') == {"incident_date": "2026-09-30"}

    def test_invalid_json_kept_raw(self):
        assert _parse_answers("rear-ended last week") == {"raw": "rear-ended last week"}

    def test_non_object_json_kept_raw(self):
        assert _parse_answers("[1, 2]") == {"raw": [1, 2]}

    def test_none(self):
        assert _parse_answers(None) == {}


class TestVapiToolCall:
    def test_string_arguments(self):
        tc = VapiToolCall.model_validate({"id": "tc1", "function": {"name": "end_call", "arguments": '{"outcome": "x"}'}})
        assert tc.name == "end_call"
        assert tc.arguments == {"outcome": "x"}

    def test_bad_arguments(self):
        tc = VapiToolCall.model_validate({"id": "tc1", "function": {"name": "end_call", "arguments": "{oops"}})
        assert tc.arguments == {}


class TestCreateLead:
    async def test_creates_lead_contact_and_call(self, db, context, phone_number, practice_area):
        execution = await execute_tool_call(db, "create_lead", {
            "name": "Jane Doe", "phone": "(512) 555-9876", "practiceArea": "personal_injury",
        }, context)

        assert execution.result.success is True
        new_context = execution.context
        assert new_context.lead_id == execution.result.data["leadId"]
        assert new_context.contact_id == execution.result.data["contactId"]
        assert new_context.interaction_id is not None
        assert context.lead_id is None

        lead = await db.get(Lead, uuid.UUID(new_context.lead_id))
        assert lead.practice_area_id == practice_area.id
        assert lead.display_name == "Jane Doe"
        call = (await db.execute(select(Call))).scalar_one()
        assert call.provider_call_id == "rtc_1"
        assert call.from_e164 == "+15125559876"

    async def test_existing_call_not_duplicated(self, db, lead_context):
        await execute_tool_call(db, "create_lead", {"name": "Jane", "phone": "+15125559876"}, lead_context)
        assert await db.scalar(select(func.count()).select_from(Call)) == 1

    async def test_no_inbound_number_skips_call(self, db, context):
        execution = await execute_tool_call(db, "create_lead", {"name": "Jane", "phone": "+15125559876"}, context)
        assert execution.result.success is True
        assert await db.scalar(select(func.count()).select_from(Call)) == 0


class TestSaveIntakeAnswers:
    async def test_requires_lead(self, db, context):
        execution = await execute_tool_call(db, "save_intake_answers", {"answers": {"a": 1}}, context)
        assert execution.result.success is False
        assert execution.result.error == NO_LEAD_ERROR

    async def test_merges_answers(self, db, lead_context):
        await execute_tool_call(db, "save_intake_answers", {"answers": '{"incident_date": "2026-09-30"}'}, lead_context)
        await execute_tool_call(db, "save_intake_answers", {"answers": {"injuries": "whiplash"}}, lead_context)
        await execute_tool_call(db, "savePartialIntake", {"incident_location": "I-35"}, lead_context)

        intake = (await db.execute(select(Intake))).scalar_one()
        assert intake.answers == {
            "incident_date": "2026-09-30",
            "injuries": "whiplash",
            "incident_location": "I-35",
        }
        assert intake.completion_status == "partial"


class TestUpdateLead:
    async def test_updates_fields(self, db, lead_context):
        execution = await execute_tool_call(db, "update_lead", {"priority": "high", "summary": "Rear-ended"}, lead_context)
        assert execution.result.success is True
        lead = await db.get(Lead, uuid.UUID(lead_context.lead_id))
        assert lead.priority == "high"
        assert lead.summary == "Rear-ended"

    async def test_no_updates(self, db, lead_context):
        execution = await execute_tool_call(db, "update_lead", {}, lead_context)
        assert execution.result.data["message"] == "No updates provided"

    async def test_requires_lead(self, db, context):
        execution = await execute_tool_call(db, "update_lead", {"status": "contacted"}, context)
        assert execution.result.error == NO_LEAD_ERROR


class TestWarmTransfer:
    async def test_logs_pending_transfer(self, db, lead_context):
        execution = await execute_tool_call(db, "warm_transfer", {"reason": "wants attorney", "urgency": "urgent"}, lead_context)
        assert execution.result.success is True
        assert execution.result.data["transferPending"] is True
        pending = (await db.execute(select(Interaction).where(Interaction.status == "pending"))).scalar_one()
        assert pending.extra_data["urgency"] == "urgent"
        actions = (await db.execute(select(AuditLog.action))).scalars().all()
        assert "warm_transfer_requested" in actions


class TestEndCall:
    async def test_intake_complete(self, db, lead_context):
        await execute_tool_call(db, "save_intake_answers", {"answers": {"a": "b"}}, lead_context)
        execution = await execute_tool_call(db, "complete_intake", {"notes": "All set"}, lead_context)

        assert execution.result.data["outcome"] == "intake_complete"
        intake = (await db.execute(select(Intake))).scalar_one()
        assert intake.completion_status == "complete"
        lead = await db.get(Lead, uuid.UUID(lead_context.lead_id))
        assert lead.status == "contacted"
        call = (await db.execute(select(Call))).scalar_one()
        assert call.ended_at is not None
        assert call.ai_summary == "All set"

    async def test_without_lead_still_succeeds(self, db, context):
        execution = await execute_tool_call(db, "end_call", {}, context)
        assert execution.result.success is True
        assert execution.result.data["outcome"] == "caller_hangup"


class TestExecuteToolCall:
    async def test_unknown_tool(self, db, context):
        execution = await execute_tool_call(db, "book_consultation", {}, context)
        assert execution.result.success is False
        assert execution.result.error == "Unknown tool: book_consultation"
        assert execution.context == context

    async def test_handler_exception_becomes_failure(self, db, lead_context):
        with patch("caseintake.agents.tool_runner.record_audit_log", side_effect=RuntimeError("kaboom")):
            execution = await execute_tool_call(db, "update_lead", {"status": "contacted"}, lead_context)
        assert execution.result.success is False
        assert execution.result.error == "kaboom"
        # The failed tool's writes were rolled back with its savepoint
        lead = await db.get(Lead, uuid.UUID(lead_context.lead_id))
        await db.refresh(lead)
        assert lead.status == "new"

    async def test_context_threads_through_session(self, db, context, phone_number):
        calls = [
            ("create_lead", {"name": "Jane", "phone": "+15125559876"}),
            ("save_intake_answers", {"answers": {"injuries": "broken arm"}}),
            ("end_call", {"outcome": "intake_complete"}),
        ]
        results = []
        for name, args in calls:
            execution = await execute_tool_call(db, name, args, context)
            context = execution.context
            results.append(execution.result)

        assert all(r.success for r in results)
        intake = (await db.execute(select(Intake))).scalar_one()
        assert intake.completion_status == "complete"
        assert json.loads(json.dumps(results[0].model_dump()))["data"]["leadId"] == context.lead_id


class TestContactReuse:
    async def test_create_lead_twice_reuses_contact(self, db, context, phone_number):
        first = await execute_tool_call(db, "create_lead", {"name": "Jane", "phone": "850-555-1234"}, context)
        second = await execute_tool_call(db, "createLead", {"name": "Jane", "phone": "+18505551234"}, context)

        assert first.result.data["contactId"] == second.result.data["contactId"]
        assert first.result.data["leadId"] != second.result.data["leadId"]
        assert await db.scalar(select(func.count()).select_from(Contact)) == 1
