"""
Provider webhook endpoints - Vapi, OpenAI Realtime, ElevenLabs, and Twilio voice/SMS.

Every ingestion path:
1. verifies the provider signature
2. passes the idempotency gate (provider, external_id)
3. resolves the firm from the called number
4. writes the Contact -> Lead -> Interaction -> Call chain
5. records an ingestion outcome
"""
import json
import logging
import uuid
from datetime import datetime, timezone
from typing import Any, Optional

from fastapi import APIRouter, Depends, HTTPException, Request, Response
from fastapi.responses import JSONResponse
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession
from twilio.twiml.messaging_response import MessagingResponse
from twilio.twiml.voice_response import Connect, VoiceResponse

from caseintake.agents.tool_runner import execute_tool_call
from caseintake.config import get_settings
from caseintake.database import get_db
from caseintake.integrations.openai_realtime import accept_call, reject_call
from caseintake.models.call import Call
from caseintake.models.intake import Intake
from caseintake.models.interaction import Interaction
from caseintake.models.lead import Lead
from caseintake.models.contact import Contact
from caseintake.schemas.tool_calls import ToolCallContext, VapiToolCall
from caseintake.schemas.webhook_payloads import (
    ElevenLabsEvent,
    ElevenLabsPostCallEvent,
    OpenAIRealtimeEvent,
    OpenAIWebhookEnvelope,
    TwilioSmsEvent,
    TwilioStatusEvent,
    TwilioVoiceEvent,
    VapiEvent,
)
from caseintake.services.audit import record_audit_log
from caseintake.services.call_chain import (
    CallChain,
    close_call,
    find_or_create_call_chain,
    find_or_create_sms_chain,
    get_call_by_provider_id,
)
from caseintake.services.idempotency import check_idempotency
from caseintake.services.ingestion_outcome import record_ingestion_outcome
from caseintake.services.normalizer import (
    FirmMatch,
    extract_display_name,
    find_default_firm,
    lookup_firm_by_number,
    normalize,
    normalize_transcript_entries,
)
from caseintake.utils.phone import mask_phone
from caseintake.utils.webhook_signatures import (
    get_webhook_url,
    validate_twilio_signature,
    verify_elevenlabs_signature,
    verify_shared_secret,
    verify_standard_webhook,
)

logger = logging.getLogger(__name__)
router = APIRouter(tags=["webhooks"])

TWILIO_TERMINAL_STATUSES = ("completed", "busy", "failed", "no-answer", "canceled")


def _twiml(twiml: Any) -> Response:
    return Response(content=str(twiml), media_type="application/xml")


# === VAPI ===

async def _resolve_vapi_firm(db: AsyncSession, event: VapiEvent) -> Optional[FirmMatch]:
    """Called number first, then the configured default org (web calls have no number)."""
    firm = None
    if event.to_number and not event.is_web_call:
        firm = await lookup_firm_by_number(db, event.to_number)
    if firm is None:
        firm = await find_default_firm(db, get_settings().vapi_default_org_id)
        if firm is not None:
            logger.info(
                "Vapi call %s routed to default org", event.call_id,
                extra={"tag": "vapi_default_org_fallback", "call_id": event.call_id, "org_id": str(firm.org_id)},
            )
    return firm


async def _ensure_vapi_chain(db: AsyncSession, event: VapiEvent) -> Optional[CallChain]:
    firm = await _resolve_vapi_firm(db, event)
    if firm is None:
        logger.warning(
            "No firm resolved for Vapi call %s (to=%s)", event.call_id, mask_phone(event.to_number),
            extra={"tag": "vapi_chain_fail", "call_id": event.call_id, "provider": "vapi"},
        )
        return None
    source = "web" if event.is_web_call or not event.from_number else "phone"
    channel = "webchat" if event.is_web_call else "call"
    return await find_or_create_call_chain(db, firm, normalize(event), channel=channel, source=source)


def _flatten_structured_data(analysis: dict) -> dict[str, Any]:
    """structuredData plus any other non-null analysis keys except the summary."""
    extracted: dict[str, Any] = {}
    structured = analysis.get("structuredData")
    if isinstance(structured, dict):
        extracted.update(structured)
    for key, value in analysis.items():
        if key not in ("summary", "structuredData"):
            extracted[key] = value
    return {k: v for k, v in extracted.items() if v is not None}


async def _ingest_end_of_call_report(
    db: AsyncSession, event: VapiEvent, message: dict,
) -> Optional[CallChain]:
    chain = await _ensure_vapi_chain(db, event)
    if chain is None:
        return None

    artifact = message.get("artifact") or {}
    analysis = message.get("analysis") or {}
    transcript = message.get("transcript") or artifact.get("transcript")
    recording_url = message.get("recordingUrl") or artifact.get("recordingUrl")
    summary = message.get("summary") or analysis.get("summary")
    duration = message.get("durationSeconds")
    messages = message.get("messages") or artifact.get("messages")

    call = await close_call(
        db,
        event.call_id,
        summary=summary,
        duration_seconds=int(duration) if isinstance(duration, (int, float)) and duration else None,
        recording_url=recording_url,
    )
    if call is not None:
        if transcript:
            call.transcript_text = transcript
        entries = normalize_transcript_entries(messages)
        if entries:
            call.transcript_json = entries
        call.ai_flags = {"ended_reason": message.get("endedReason")}

    lead = await db.get(Lead, chain.lead_id)
    extracted = _flatten_structured_data(analysis) if isinstance(analysis, dict) else {}
    display_name = extract_display_name(extracted)
    lead.intake_data = {**(lead.intake_data or {}), **extracted}
    if display_name:
        lead.display_name = display_name
        contact = await db.get(Contact, lead.contact_id)
        if contact is not None:
            contact.apply_identity(name=display_name)
    if summary:
        lead.summary = summary

    result = await db.execute(select(Intake).where(Intake.lead_id == lead.id))
    intake = result.scalar_one_or_none()
    if intake is None:
        intake = Intake(
            org_id=chain.org_id, lead_id=lead.id, practice_area_id=lead.practice_area_id,
            answers=dict(lead.intake_data or {}),
        )
        db.add(intake)
    else:
        intake.merge_answers(extracted)
    intake.mark_complete()
    await db.flush()

    await record_audit_log(
        db, chain.org_id, "call_ended", "call", chain.call_id,
        details={
            "provider": "vapi",
            "provider_call_id": event.call_id,
            "ended_reason": message.get("endedReason"),
            "extracted_fields": sorted(extracted.keys()),
        },
        actor_type="system",
    )
    return chain


async def _handle_vapi_end_of_call(
    db: AsyncSession, event: VapiEvent, message: dict, body: dict,
) -> Any:
    message_type = "end-of-call-report"
    try:
        async with db.begin_nested():
            is_new = await check_idempotency(
                db, "vapi", f"{event.call_id}:{message_type}", message_type, body,
            )
            if not is_new:
                return {"status": "ok", "duplicate": True}
            chain = await _ingest_end_of_call_report(db, event, message)
    except Exception as e:
        # The savepoint (idempotency row included) is gone, so a provider retry is processed
        logger.error(
            "Vapi end-of-call persistence failed for %s: %s", event.call_id, str(e),
            extra={"tag": "vapi_persist_error", "call_id": event.call_id, "error": str(e)},
        )
        await record_ingestion_outcome(
            db, provider="vapi", event_type=message_type, external_id=event.call_id,
            status="failed", error_code="persistence_error", error_message=str(e), payload=body,
        )
        return JSONResponse(status_code=503, content={"ok": False, "error": "persistence_failed"})

    if chain is None:
        await record_ingestion_outcome(
            db, provider="vapi", event_type=message_type, external_id=event.call_id,
            status="skipped", error_code="chain_failed",
            error_message="No firm resolved for call", payload=body,
        )
        return {"status": "ok", "detail": "no_firm"}

    await record_ingestion_outcome(
        db, provider="vapi", event_type=message_type, external_id=event.call_id,
        status="persisted", org_id=chain.org_id,
    )
    return {"status": "ok", "lead_id": str(chain.lead_id)}


async def _handle_vapi_tool_calls(
    db: AsyncSession, event: Optional[VapiEvent], message: dict,
) -> dict:
    raw_calls = message.get("toolCalls") or message.get("toolCallList") or []
    tool_calls = []
    for raw in raw_calls:
        try:
            tool_calls.append(VapiToolCall.model_validate(raw))
        except ValidationError:
            logger.warning("Skipping malformed Vapi tool call", extra={"tag": "vapi_tool_call_invalid"})

    if event is None:
        return {"results": [
            {"toolCallId": tc.id, "result": json.dumps({"success": False, "error": "Missing call id"})}
            for tc in tool_calls
        ]}

    call = await get_call_by_provider_id(db, event.call_id)
    if call is None:
        chain = await _ensure_vapi_chain(db, event)
    else:
        lead = await db.get(Lead, call.lead_id)
        chain = CallChain(
            org_id=call.org_id, contact_id=lead.contact_id, lead_id=call.lead_id,
            interaction_id=call.interaction_id, call_id=call.id, created=False,
        )
    if chain is None:
        return {"results": [
            {"toolCallId": tc.id, "result": json.dumps({"success": False, "error": "Call not found"})}
            for tc in tool_calls
        ]}

    context = ToolCallContext(
        call_id=event.call_id,
        org_id=str(chain.org_id),
        lead_id=str(chain.lead_id),
        contact_id=str(chain.contact_id),
        interaction_id=str(chain.interaction_id),
    )
    results = []
    for tc in tool_calls:
        execution = await execute_tool_call(db, tc.name, tc.arguments, context)
        context = execution.context
        results.append({
            "toolCallId": tc.id,
            "result": json.dumps(execution.result.model_dump(exclude_none=True)),
        })
    return {"results": results}


@router.post("/v1/webhooks/vapi")
async def vapi_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """
    Vapi server messages. Answers assistant-request and tool-calls inline;
    persists status-update, transcript and end-of-call-report.
    """
    settings = get_settings()
    if not verify_shared_secret(
        request.headers.get("x-vapi-secret"), settings.vapi_webhook_secret, provider="vapi",
    ):
        logger.warning("Invalid Vapi webhook secret", extra={"tag": "vapi_invalid_secret", "provider": "vapi"})
        raise HTTPException(status_code=403, detail="Invalid webhook secret")

    try:
        body = await request.json()
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Invalid payload")

    message = body.get("message") if isinstance(body.get("message"), dict) else body
    message_type = message.get("type")
    if not message_type:
        raise HTTPException(status_code=400, detail="Missing message.type")

    event = VapiEvent.from_message(message)
    logger.info(
        "Vapi webhook received: %s", message_type,
        extra={
            "tag": "vapi_webhook_received",
            "provider": "vapi",
            "event_type": message_type,
            "call_id": event.call_id if event else None,
        },
    )

    if message_type == "assistant-request":
        return {"assistantId": settings.vapi_assistant_id}

    if message_type == "tool-calls":
        return await _handle_vapi_tool_calls(db, event, message)

    if event is None:
        return {"status": "ok", "detail": "no_call_id"}

    if message_type == "status-update":
        status = message.get("status")
        if status == "in-progress":
            chain = await _ensure_vapi_chain(db, event)
            return {"status": "ok", "detail": "chain_created" if chain else "chain_failed"}
        if status == "ended":
            call = await close_call(db, event.call_id)
            return {"status": "ok", "detail": "ended" if call else "ended_no_call"}
        return {"status": "ok", "detail": "ignored"}

    if message_type == "transcript":
        transcript = message.get("transcript")
        if transcript:
            call = await get_call_by_provider_id(db, event.call_id)
            if call is None and await _ensure_vapi_chain(db, event):
                call = await get_call_by_provider_id(db, event.call_id)
            if call is not None:
                call.transcript_text = transcript
        return {"status": "ok"}

    if message_type == "end-of-call-report":
        return await _handle_vapi_end_of_call(db, event, message, body)

    return {"status": "ok"}


# === OPENAI REALTIME ===

async def _handle_openai_incoming(db: AsyncSession, webhook_id: str, event: OpenAIRealtimeEvent) -> dict:
    event_type = "realtime.call.incoming"
    caller = normalize(event)
    firm = await lookup_firm_by_number(db, caller.called_e164)
    if firm is None:
        logger.warning(
            "No org for %s, rejecting call %s", mask_phone(caller.called_e164), event.call_id,
            extra={"tag": "openai_no_org_match", "call_id": event.call_id, "provider": "openai_realtime"},
        )
        await reject_call(event.call_id, 603, "Decline - number not configured")
        await record_ingestion_outcome(
            db, provider="openai", event_type=event_type, external_id=webhook_id,
            status="skipped", error_code="no_org_match", payload=event.model_dump(),
        )
        return {"received": True, "action": "rejected", "reason": "no_org_match"}

    try:
        async with db.begin_nested():
            chain = await find_or_create_call_chain(db, firm, caller, channel="call", source="phone")
    except Exception as e:
        logger.error(
            "Failed to create call records for %s: %s", event.call_id, str(e),
            extra={"tag": "openai_chain_error", "call_id": event.call_id, "error": str(e)},
        )
        await reject_call(event.call_id, 500, "Internal error")
        await record_ingestion_outcome(
            db, provider="openai", event_type=event_type, external_id=webhook_id,
            status="failed", org_id=firm.org_id, error_code="persistence_error",
            error_message=str(e), payload=event.model_dump(),
        )
        return {"received": True, "action": "error"}

    if not await accept_call(event.call_id):
        await record_ingestion_outcome(
            db, provider="openai", event_type=event_type, external_id=webhook_id,
            status="failed", org_id=chain.org_id, error_code="accept_failed",
            payload=event.model_dump(),
        )
        return {"received": True, "action": "accept_failed"}

    await record_ingestion_outcome(
        db, provider="openai", event_type=event_type, external_id=webhook_id,
        status="persisted", org_id=chain.org_id,
    )
    return {"received": True, "call_id": event.call_id, "action": "accepted"}


async def _handle_openai_call_ended(db: AsyncSession, event: OpenAIRealtimeEvent) -> dict:
    call = await close_call(db, event.call_id)
    if call is not None:
        await record_audit_log(
            db, call.org_id, "call_ended", "call", call.id,
            details={"provider_call_id": event.call_id, "status_code": event.status_code},
            actor_type="system",
        )
    return {"received": True}


@router.post("/v1/webhooks/openai")
async def openai_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """OpenAI Realtime SIP events, signed with the Standard Webhooks scheme."""
    settings = get_settings()
    body = await request.body()
    webhook_id = request.headers.get("webhook-id")
    timestamp = request.headers.get("webhook-timestamp")
    signature = request.headers.get("webhook-signature")

    if not body or not webhook_id or not timestamp or not signature:
        raise HTTPException(status_code=400, detail="Missing required webhook headers")

    if not verify_standard_webhook(
        body, webhook_id, timestamp, signature,
        settings.openai_webhook_secret,
        tolerance_seconds=settings.openai_webhook_tolerance_seconds,
    ):
        logger.warning("Invalid OpenAI webhook signature", extra={"tag": "openai_invalid_signature"})
        raise HTTPException(status_code=401, detail="Invalid signature")

    try:
        envelope = OpenAIWebhookEnvelope.model_validate_json(body)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid JSON")

    if not await check_idempotency(db, "openai", webhook_id, envelope.type, envelope.model_dump()):
        return {"received": True, "duplicate": True}

    logger.info(
        "OpenAI webhook received: %s", envelope.type,
        extra={"tag": "openai_webhook_received", "provider": "openai", "event_type": envelope.type},
    )

    if envelope.type in ("realtime.call.incoming", "realtime.call.ended"):
        try:
            event = OpenAIRealtimeEvent.model_validate(envelope.data)
        except ValidationError:
            raise HTTPException(status_code=400, detail="Missing call_id")
        if envelope.type == "realtime.call.incoming":
            return await _handle_openai_incoming(db, webhook_id, event)
        return await _handle_openai_call_ended(db, event)

    return {"received": True}


# === ELEVENLABS ===

async def _read_elevenlabs_body(request: Request) -> dict:
    """Verify elevenlabs-signature over the raw body, then parse it. 403 / 400 on failure."""
    settings = get_settings()
    raw = await request.body()
    if not verify_elevenlabs_signature(
        raw,
        request.headers.get("elevenlabs-signature"),
        settings.elevenlabs_webhook_secret,
        tolerance_seconds=settings.elevenlabs_webhook_tolerance_seconds,
    ):
        logger.warning(
            "Invalid ElevenLabs webhook signature",
            extra={"tag": "elevenlabs_invalid_signature", "provider": "elevenlabs"},
        )
        raise HTTPException(status_code=403, detail="Invalid signature")
    try:
        body = json.loads(raw)
    except ValueError:
        raise HTTPException(status_code=400, detail="Invalid JSON")
    if not isinstance(body, dict):
        raise HTTPException(status_code=400, detail="Invalid payload")
    return body


@router.post("/v1/webhooks/elevenlabs/inbound")
async def elevenlabs_inbound_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """ElevenLabs inbound call. Creates the record chain before the agent picks up."""
    body = await _read_elevenlabs_body(request)
    try:
        event = ElevenLabsEvent.model_validate(body)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Invalid payload")
    if not event.external_id:
        raise HTTPException(status_code=400, detail="Missing conversation_id or call_sid")

    caller = normalize(event)
    if not caller.phone_e164 or not caller.called_e164:
        raise HTTPException(status_code=400, detail="Invalid phone numbers")

    event_type = "inbound"
    firm = await lookup_firm_by_number(db, caller.called_e164)
    if firm is None:
        await record_ingestion_outcome(
            db, provider="elevenlabs", event_type=event_type, external_id=event.external_id,
            status="skipped", error_code="no_org_match", payload=body,
        )
        return JSONResponse(status_code=404, content={"error": "No firm found for called_number"})

    if not await check_idempotency(db, "elevenlabs", f"{event.external_id}:{event_type}", event_type, body):
        return {"status": "duplicate", "externalId": event.external_id}

    chain = await find_or_create_call_chain(db, firm, caller, channel="call", source="phone")
    await record_ingestion_outcome(
        db, provider="elevenlabs", event_type=event_type, external_id=event.external_id,
        status="persisted", org_id=chain.org_id,
    )
    return {
        "status": "ok",
        "callId": str(chain.call_id),
        "leadId": str(chain.lead_id),
        "interactionId": str(chain.interaction_id),
    }


async def _correlate_elevenlabs_call(
    db: AsyncSession, event: ElevenLabsPostCallEvent,
) -> tuple[Optional[Call], Optional[str]]:
    """
    Find the Call a post-call report belongs to. Tried in order: the interaction id
    we handed the agent, the Twilio CallSid we handed it, then the provider's own ids.
    """
    interaction_id = event.client_data.get("interactionId")
    if interaction_id:
        try:
            interaction_uuid = uuid.UUID(str(interaction_id))
        except ValueError:
            interaction_uuid = None
        if interaction_uuid is not None:
            result = await db.execute(
                select(Call).where(Call.interaction_id == interaction_uuid).limit(1)
            )
            call = result.scalar_one_or_none()
            if call is not None:
                return call, "clientData.interactionId"

    candidates = (
        ("clientData.callSid", event.client_data.get("callSid")),
        ("conversation_id", event.conversation_id),
        ("call_sid", event.call_sid),
    )
    for method, provider_call_id in candidates:
        if not provider_call_id:
            continue
        call = await get_call_by_provider_id(db, str(provider_call_id))
        if call is not None:
            return call, method
    return None, None


async def _apply_elevenlabs_post_call(
    db: AsyncSession, call: Call, event: ElevenLabsPostCallEvent,
) -> None:
    now = datetime.now(timezone.utc)
    call.ended_at = event.ended_at or call.ended_at or now
    if event.transcript:
        call.transcript_text = event.transcript
    if event.summary:
        call.ai_summary = event.summary
    if event.recording_url:
        call.recording_url = event.recording_url
    if event.outcome:
        call.ai_flags = {**(call.ai_flags or {}), "ai_outcome_guess": event.outcome}
    transcript = normalize_transcript_entries(event.transcript_json)
    if transcript:
        call.transcript_json = transcript
    if event.duration_seconds and not call.duration_seconds:
        call.duration_seconds = event.duration_seconds

    interaction = await db.get(Interaction, call.interaction_id)
    if interaction is not None:
        interaction.status = "completed"
        interaction.ended_at = now

    lead = await db.get(Lead, call.lead_id)
    if event.extracted_data:
        lead.intake_data = {**(lead.intake_data or {}), **event.extracted_data}
        lead.display_name = extract_display_name(event.extracted_data) or lead.display_name
    if event.summary:
        lead.summary = event.summary
    lead.last_activity_at = now
    await db.flush()

    await record_audit_log(
        db, call.org_id, "call_ended", "call", call.id,
        details={
            "provider": "elevenlabs",
            "conversation_id": event.conversation_id,
            "ai_outcome_guess": event.outcome,
            "transcript_entries": len(transcript),
        },
        actor_type="system",
    )


@router.post("/v1/webhooks/elevenlabs/post-call")
async def elevenlabs_post_call_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """ElevenLabs post-call report: transcript, summary and extracted intake fields."""
    body = await _read_elevenlabs_body(request)
    try:
        event = ElevenLabsPostCallEvent.model_validate(body)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Missing conversation_id")

    event_type = "post-call"
    external_id = event.conversation_id
    try:
        async with db.begin_nested():
            if not await check_idempotency(db, "elevenlabs", f"{external_id}:{event_type}", event_type, body):
                return {"status": "duplicate", "conversation_id": external_id}
            call, method = await _correlate_elevenlabs_call(db, event)
            if call is not None:
                await _apply_elevenlabs_post_call(db, call, event)
    except Exception as e:
        logger.error(
            "ElevenLabs post-call persistence failed for %s: %s", external_id, str(e),
            extra={"tag": "elevenlabs_persist_error", "external_id": external_id, "error": str(e)},
        )
        await record_ingestion_outcome(
            db, provider="elevenlabs", event_type=event_type, external_id=external_id,
            status="failed", error_code="persistence_error", error_message=str(e), payload=body,
        )
        return JSONResponse(status_code=503, content={"ok": False, "error": "persistence_failed"})

    if call is None:
        logger.warning(
            "Unlinked ElevenLabs call %s", external_id,
            extra={
                "tag": "elevenlabs_unlinked_call",
                "provider": "elevenlabs",
                "external_id": external_id,
                "phone": event.caller_id,
            },
        )
        await record_ingestion_outcome(
            db, provider="elevenlabs", event_type=event_type, external_id=external_id,
            status="skipped", error_code="unlinked_call",
            error_message="No matching call found", payload=body,
        )
        return {"status": "unlinked", "conversation_id": external_id}

    await record_ingestion_outcome(
        db, provider="elevenlabs", event_type=event_type, external_id=external_id,
        status="persisted", org_id=call.org_id,
    )
    return {
        "status": "ok",
        "callId": str(call.id),
        "leadId": str(call.lead_id),
        "correlationMethod": method,
    }


# === TWILIO ===

async def _verify_twilio_request(request: Request, params: dict) -> None:
    """Validate X-Twilio-Signature and raise 403 if invalid."""
    url = await get_webhook_url(request)
    if not validate_twilio_signature(
        get_settings().twilio_auth_token,
        request.headers.get("X-Twilio-Signature", ""),
        url,
        params,
    ):
        client_ip = request.client.host if request.client else "unknown"
        logger.warning(
            "Invalid Twilio signature from %s", client_ip,
            extra={"tag": "twilio_invalid_signature", "provider": "twilio"},
        )
        raise HTTPException(status_code=403, detail="Invalid webhook signature")


def _connect_stream_twiml(call_sid: str) -> VoiceResponse:
    response = VoiceResponse()
    stream_url = get_settings().twilio_stream_url
    if not stream_url:
        response.say("Thank you for calling. Please hold while we connect you.")
        response.pause(length=1)
        return response
    connect = Connect()
    stream = connect.stream(url=stream_url)
    stream.parameter(name="callSid", value=call_sid)
    response.append(connect)
    return response


def _reject_twiml() -> VoiceResponse:
    response = VoiceResponse()
    response.reject(reason="rejected")
    return response


@router.post("/v1/telephony/twilio/voice")
async def twilio_voice_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Twilio inbound call. Answers with TwiML that bridges the call to the voice agent."""
    form_params = dict(await request.form())
    await _verify_twilio_request(request, form_params)

    try:
        event = TwilioVoiceEvent.model_validate(form_params)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Missing CallSid")

    caller = normalize(event)
    firm = await lookup_firm_by_number(db, caller.called_e164)
    if firm is None:
        await record_ingestion_outcome(
            db, provider="twilio", event_type="voice", external_id=event.CallSid,
            status="skipped", error_code="no_org_match", payload=form_params,
        )
        return _twiml(_reject_twiml())

    if await check_idempotency(db, "twilio", event.CallSid, "voice", form_params):
        chain = await find_or_create_call_chain(db, firm, caller, channel="call", source="phone")
        await record_ingestion_outcome(
            db, provider="twilio", event_type="voice", external_id=event.CallSid,
            status="persisted", org_id=chain.org_id,
        )
    return _twiml(_connect_stream_twiml(event.CallSid))


@router.post("/v1/telephony/twilio/sms")
async def twilio_sms_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Twilio inbound SMS. Logged against the sender's lead; no auto-reply."""
    form_params = dict(await request.form())
    await _verify_twilio_request(request, form_params)

    try:
        event = TwilioSmsEvent.model_validate(form_params)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Missing MessageSid")

    if not await check_idempotency(db, "twilio", event.MessageSid, "sms", form_params):
        return _twiml(MessagingResponse())

    caller = normalize(event)
    firm = await lookup_firm_by_number(db, caller.called_e164)
    if firm is None or not caller.phone_e164:
        await record_ingestion_outcome(
            db, provider="twilio", event_type="sms", external_id=event.MessageSid,
            status="skipped", error_code="no_org_match" if firm is None else "missing_sender",
            payload=form_params,
        )
        return _twiml(MessagingResponse())

    chain = await find_or_create_sms_chain(db, firm, caller, body=event.Body)
    await record_ingestion_outcome(
        db, provider="twilio", event_type="sms", external_id=event.MessageSid,
        status="persisted", org_id=chain.org_id,
    )
    return _twiml(MessagingResponse())


@router.post("/v1/telephony/twilio/status")
async def twilio_status_webhook(
    request: Request,
    db: AsyncSession = Depends(get_db),
):
    """Twilio call status callback. Terminal statuses close the call."""
    form_params = dict(await request.form())
    await _verify_twilio_request(request, form_params)

    try:
        event = TwilioStatusEvent.model_validate(form_params)
    except ValidationError:
        raise HTTPException(status_code=400, detail="Missing CallSid or CallStatus")

    if event.CallStatus not in TWILIO_TERMINAL_STATUSES:
        return {"status": "ok", "detail": "ignored"}

    external_id = f"{event.CallSid}:{event.CallStatus}"
    if not await check_idempotency(db, "twilio", external_id, "status", form_params):
        return {"status": "ok", "duplicate": True}

    duration = int(event.CallDuration) if event.CallDuration and event.CallDuration.isdigit() else None
    call = await close_call(
        db, event.CallSid, duration_seconds=duration, recording_url=event.RecordingUrl,
    )
    if call is not None:
        call.ai_flags = {**(call.ai_flags or {}), "final_status": event.CallStatus}
    return {"status": "ok", "detail": "closed" if call else "no_call"}
