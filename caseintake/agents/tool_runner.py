"""
Tool Runner - executes the voice agent's tool calls against the intake model.

Tools: create_lead, save_intake_answers, update_lead, warm_transfer, end_call.
Every call returns a ToolExecution; failures become ToolResult(success=False)
and never propagate to the webhook handler. Each tool runs in its own
SAVEPOINT so a failed tool leaves the surrounding transaction usable.
"""
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Awaitable, Callable

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession

from caseintake.models.call import Call
from caseintake.models.intake import Intake
from caseintake.models.interaction import Interaction
from caseintake.models.lead import Lead
from caseintake.models.phone_number import PhoneNumber
from caseintake.models.practice_area import PracticeArea
from caseintake.schemas.tool_calls import ToolCallContext, ToolExecution, ToolResult
from caseintake.services.audit import record_audit_log
from caseintake.services.call_chain import find_or_create_contact, get_call_by_provider_id
from caseintake.utils.phone import normalize_e164

logger = logging.getLogger(__name__)

NO_LEAD_ERROR = "No lead created yet. Call create_lead first."

# Names the hosted assistants use for the same tools
TOOL_ALIASES = {
    "save_partial_intake": "save_intake_answers",
    "savePartialIntake": "save_intake_answers",
    "saveIntakeAnswers": "save_intake_answers",
    "createLead": "create_lead",
    "updateLead": "update_lead",
    "transfer_call_to_firm": "warm_transfer",
    "human_handoff_needed": "warm_transfer",
    "needs_handoff": "warm_transfer",
    "handoff": "warm_transfer",
    "transfer": "warm_transfer",
    "endCall": "end_call",
}
# Aliases that also imply the end_call outcome
INTAKE_COMPLETE_ALIASES = ("complete_intake", "intake_complete", "completeIntake")

ToolHandler = Callable[[AsyncSession, dict, ToolCallContext], Awaitable[ToolExecution]]


def resolve_tool_name(tool_name: str, args: dict[str, Any]) -> tuple[str, dict[str, Any]]:
    """Map an alias to its canonical tool, filling implied arguments."""
    if tool_name in INTAKE_COMPLETE_ALIASES:
        return "end_call", {"outcome": "intake_complete", **args}
    return TOOL_ALIASES.get(tool_name, tool_name), args


def _parse_answers(raw: Any) -> dict[str, Any]:
    """Answers arrive as a JSON string or an object. Unparseable input is kept under `raw`."""
    if isinstance(raw, dict):
        return raw
    if isinstance(raw, str):
        try:
            parsed = json.loads(raw)
        except ValueError:
            return {"raw": raw}
        return parsed if isinstance(parsed, dict) else {"raw": parsed}
    if raw is None:
        return {}
    return {"raw": raw}


async def _find_practice_area(
    db: AsyncSession, org_id: uuid.UUID, name: str,
) -> PracticeArea | None:
    needle = name.replace("_", " ").strip().lower()
    if not needle:
        return None
    result = await db.execute(
        select(PracticeArea).where(
            PracticeArea.org_id == org_id,
            func.lower(PracticeArea.name).contains(needle),
        ).limit(1)
    )
    return result.scalar_one_or_none()


async def _create_lead(db: AsyncSession, args: dict, context: ToolCallContext) -> ToolExecution:
    org_id = uuid.UUID(context.org_id)
    name = args.get("name") or None
    email = args.get("email") or None
    source = args.get("source") or "phone_call"
    phone = normalize_e164(args.get("phone"))

    contact = await find_or_create_contact(db, org_id, phone, email=email, name=name)

    practice_area_id = None
    if args.get("practiceArea"):
        practice_area = await _find_practice_area(db, org_id, str(args["practiceArea"]))
        practice_area_id = practice_area.id if practice_area else None

    now = datetime.now(timezone.utc)
    lead = Lead(
        org_id=org_id,
        contact_id=contact.id,
        source=source,
        status="new",
        priority="medium",
        practice_area_id=practice_area_id,
        display_name=name,
        last_activity_at=now,
    )
    db.add(lead)
    await db.flush()

    interaction = Interaction(
        org_id=org_id, lead_id=lead.id, channel="call", status="active", started_at=now,
    )
    db.add(interaction)
    await db.flush()

    existing_call = await get_call_by_provider_id(db, context.call_id)
    if existing_call is None:
        result = await db.execute(
            select(PhoneNumber).where(
                PhoneNumber.org_id == org_id, PhoneNumber.inbound_enabled.is_(True),
            ).order_by(PhoneNumber.created_at).limit(1)
        )
        inbound_number = result.scalar_one_or_none()
        if inbound_number is not None:
            db.add(Call(
                org_id=org_id,
                lead_id=lead.id,
                interaction_id=interaction.id,
                phone_number_id=inbound_number.id,
                direction="inbound",
                provider="openai_realtime",
                provider_call_id=context.call_id,
                from_e164=phone or "unknown",
                to_e164=inbound_number.e164,
                started_at=now,
            ))
            await db.flush()
        else:
            logger.warning(
                "No inbound number for org %s, skipping call record", context.org_id,
                extra={"tag": "tool_create_lead_no_number", "org_id": context.org_id},
            )

    await record_audit_log(db, org_id, "create_lead", "lead", lead.id, details={
        "contact_id": str(contact.id),
        "source": source,
        "call_id": context.call_id,
    })

    new_context = context.model_copy(update={
        "lead_id": str(lead.id),
        "contact_id": str(contact.id),
        "interaction_id": str(interaction.id),
    })
    return ToolExecution(
        result=ToolResult(success=True, data={
            "leadId": str(lead.id),
            "contactId": str(contact.id),
            "message": f"Lead created for {name or 'caller'}",
        }),
        context=new_context,
    )


async def _save_intake_answers(db: AsyncSession, args: dict, context: ToolCallContext) -> ToolExecution:
    if not context.lead_id:
        return ToolExecution(result=ToolResult(success=False, error=NO_LEAD_ERROR), context=context)

    lead_id = uuid.UUID(context.lead_id)
    # Hosted assistants send the fields directly instead of an `answers` blob
    answers = _parse_answers(args["answers"] if "answers" in args else args)

    result = await db.execute(select(Intake).where(Intake.lead_id == lead_id))
    intake = result.scalar_one_or_none()
    if intake is None:
        lead = await db.get(Lead, lead_id)
        intake = Intake(
            org_id=uuid.UUID(context.org_id),
            lead_id=lead_id,
            practice_area_id=lead.practice_area_id if lead else None,
            answers=dict(answers),
            completion_status="partial",
        )
        db.add(intake)
    else:
        intake.merge_answers(answers)
    await db.flush()

    await record_audit_log(db, context.org_id, "save_intake_answers", "intake", intake.id, details={
        "lead_id": context.lead_id,
        "answers_updated": sorted(answers.keys()),
    })
    return ToolExecution(
        result=ToolResult(success=True, data={"intakeId": str(intake.id), "message": "Intake answers saved"}),
        context=context,
    )


async def _update_lead(db: AsyncSession, args: dict, context: ToolCallContext) -> ToolExecution:
    if not context.lead_id:
        return ToolExecution(result=ToolResult(success=False, error=NO_LEAD_ERROR), context=context)

    updates = {k: args[k] for k in ("status", "priority", "summary") if args.get(k)}
    if not updates:
        return ToolExecution(
            result=ToolResult(success=True, data={"message": "No updates provided"}),
            context=context,
        )

    lead = await db.get(Lead, uuid.UUID(context.lead_id))
    if lead is None:
        return ToolExecution(result=ToolResult(success=False, error="Lead not found"), context=context)
    for key, value in updates.items():
        setattr(lead, key, value)
    lead.last_activity_at = datetime.now(timezone.utc)
    await db.flush()

    await record_audit_log(db, context.org_id, "update_lead", "lead", lead.id, details={"updates": updates})
    return ToolExecution(
        result=ToolResult(success=True, data={"leadId": context.lead_id, "message": "Lead updated"}),
        context=context,
    )


async def _warm_transfer(db: AsyncSession, args: dict, context: ToolCallContext) -> ToolExecution:
    """Log a transfer request. The live handoff itself is not wired up yet."""
    reason = args.get("reason") or "caller_request"
    urgency = args.get("urgency") or "routine"

    if context.lead_id:
        lead_id = uuid.UUID(context.lead_id)
        db.add(Interaction(
            org_id=uuid.UUID(context.org_id),
            lead_id=lead_id,
            channel="call",
            status="pending",
            extra_data={
                "type": "transfer_request",
                "reason": reason,
                "urgency": urgency,
                "requested_at": datetime.now(timezone.utc).isoformat(),
            },
        ))
        await db.flush()

    await record_audit_log(db, context.org_id, "warm_transfer_requested", "call", context.call_id, details={
        "lead_id": context.lead_id,
        "reason": reason,
        "urgency": urgency,
    })
    logger.info(
        "Warm transfer requested for call %s (%s)", context.call_id, urgency,
        extra={"tag": "warm_transfer_requested", "call_id": context.call_id, "lead_id": context.lead_id},
    )
    return ToolExecution(
        result=ToolResult(success=True, data={
            "message": "Transfer request logged. A team member will follow up.",
            "transferPending": True,
        }),
        context=context,
    )


async def _end_call(db: AsyncSession, args: dict, context: ToolCallContext) -> ToolExecution:
    outcome = args.get("outcome") or "caller_hangup"
    notes = args.get("notes") or None
    now = datetime.now(timezone.utc)

    if context.lead_id:
        lead_id = uuid.UUID(context.lead_id)
        if outcome == "intake_complete":
            result = await db.execute(select(Intake).where(Intake.lead_id == lead_id))
            intake = result.scalar_one_or_none()
            if intake is not None:
                intake.mark_complete()
        lead = await db.get(Lead, lead_id)
        if lead is not None:
            lead.status = "contacted" if outcome == "intake_complete" else "new"
            lead.last_activity_at = now

    call = await get_call_by_provider_id(db, context.call_id)
    if call is not None:
        call.ended_at = now
        call.duration_seconds = call.elapsed_seconds(now)
        if notes:
            call.ai_summary = notes
    await db.flush()

    await record_audit_log(db, context.org_id, "call_ended", "call", context.call_id, details={
        "lead_id": context.lead_id,
        "outcome": outcome,
        "notes": notes,
    })
    return ToolExecution(
        result=ToolResult(success=True, data={"outcome": outcome, "message": "Call ended successfully"}),
        context=context,
    )


TOOL_HANDLERS: dict[str, ToolHandler] = {
    "create_lead": _create_lead,
    "save_intake_answers": _save_intake_answers,
    "update_lead": _update_lead,
    "warm_transfer": _warm_transfer,
    "end_call": _end_call,
}


async def execute_tool_call(
    db: AsyncSession,
    tool_name: str,
    args: dict[str, Any] | None,
    context: ToolCallContext,
) -> ToolExecution:
    """
    Run one tool call. Never raises.

    Returns:
        ToolExecution with the tool's result and the (possibly updated) context
        to pass to the next tool call of the same session.
    """
    canonical, resolved_args = resolve_tool_name(tool_name, dict(args or {}))
    handler = TOOL_HANDLERS.get(canonical)
    if handler is None:
        logger.warning(
            "Unknown tool: %s", tool_name,
            extra={"tag": "tool_unknown", "tool_name": tool_name, "call_id": context.call_id},
        )
        return ToolExecution(
            result=ToolResult(success=False, error=f"Unknown tool: {tool_name}"),
            context=context,
        )

    logger.info(
        "Executing tool %s", canonical,
        extra={"tag": "tool_call", "tool_name": canonical, "call_id": context.call_id},
    )
    try:
        async with db.begin_nested():
            return await handler(db, resolved_args, context)
    except Exception as e:
        logger.error(
            "Tool %s failed: %s", canonical, str(e),
            extra={"tag": "tool_error", "tool_name": canonical, "call_id": context.call_id, "error": str(e)},
        )
        return ToolExecution(result=ToolResult(success=False, error=str(e)), context=context)
