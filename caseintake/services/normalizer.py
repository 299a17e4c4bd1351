"""
Event normalizer - turns each provider's payload into one canonical caller shape
and resolves the firm that owns the called number.
"""
import logging
import uuid
from dataclasses import dataclass, field
from typing import Any, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from caseintake.models.phone_number import PhoneNumber
from caseintake.schemas.webhook_payloads import (
    ElevenLabsEvent,
    OpenAIRealtimeEvent,
    ProviderEvent,
    TwilioSmsEvent,
    TwilioVoiceEvent,
    VapiEvent,
)
from caseintake.utils.phone import extract_phone_from_sip_header, mask_phone, normalize_e164

logger = logging.getLogger(__name__)

_NAME_FIELDS = ("callerName", "caller_name", "name", "fullName", "full_name")


@dataclass(frozen=True)
class NormalizedCaller:
    provider: str
    external_call_id: str
    phone_e164: Optional[str]
    called_e164: Optional[str]
    display_name: Optional[str] = None
    caller_metadata: dict = field(default_factory=dict)


@dataclass(frozen=True)
class FirmMatch:
    org_id: uuid.UUID
    phone_number_id: uuid.UUID
    e164: str


def extract_display_name(data: Optional[dict[str, Any]]) -> Optional[str]:
    """First non-empty string name field, then nested caller.name / caller.fullName."""
    if not data:
        return None
    for key in _NAME_FIELDS:
        value = data.get(key)
        if value and isinstance(value, str):
            return value
    caller = data.get("caller")
    if isinstance(caller, dict):
        for key in ("name", "fullName"):
            value = caller.get(key)
            if value and isinstance(value, str):
                return value
    return None


def _normalize_twilio_voice(event: TwilioVoiceEvent) -> NormalizedCaller:
    metadata = {k: v for k, v in (("city", event.FromCity), ("state", event.FromState)) if v}
    return NormalizedCaller(
        provider="twilio",
        external_call_id=event.CallSid,
        phone_e164=normalize_e164(event.From),
        called_e164=normalize_e164(event.To),
        display_name=event.CallerName or None,
        caller_metadata=metadata,
    )


def _normalize_twilio_sms(event: TwilioSmsEvent) -> NormalizedCaller:
    return NormalizedCaller(
        provider="twilio",
        external_call_id=event.MessageSid,
        phone_e164=normalize_e164(event.From),
        called_e164=normalize_e164(event.To),
        caller_metadata={"num_media": event.NumMedia},
    )


def _normalize_vapi(event: VapiEvent) -> NormalizedCaller:
    metadata: dict[str, Any] = {"call_type": event.call_type}
    if event.assistant_id:
        metadata["assistant_id"] = event.assistant_id
    return NormalizedCaller(
        provider="vapi",
        external_call_id=event.call_id,
        phone_e164=normalize_e164(event.from_number),
        called_e164=normalize_e164(event.to_number),
        display_name=extract_display_name(event.customer),
        caller_metadata=metadata,
    )


def _normalize_openai_realtime(event: OpenAIRealtimeEvent) -> NormalizedCaller:
    from_header = event.sip_header("From")
    to_header = event.sip_header("To")
    from_number = extract_phone_from_sip_header(from_header) if from_header else None
    to_number = extract_phone_from_sip_header(to_header) if to_header else None
    return NormalizedCaller(
        provider="openai_realtime",
        external_call_id=event.call_id,
        phone_e164=normalize_e164(from_number),
        called_e164=normalize_e164(to_number),
        caller_metadata={"sip_from": from_header, "sip_to": to_header},
    )


def _normalize_elevenlabs(event: ElevenLabsEvent) -> NormalizedCaller:
    metadata = {
        k: v for k, v in (("conversation_id", event.conversation_id), ("call_sid", event.call_sid)) if v
    }
    return NormalizedCaller(
        provider="elevenlabs",
        external_call_id=event.external_id or "",
        phone_e164=normalize_e164(event.caller_id),
        called_e164=normalize_e164(event.called_number),
        display_name=extract_display_name(event.client_data),
        caller_metadata=metadata,
    )


_NORMALIZERS = {
    "twilio_voice": _normalize_twilio_voice,
    "twilio_sms": _normalize_twilio_sms,
    "vapi": _normalize_vapi,
    "openai_realtime": _normalize_openai_realtime,
    "elevenlabs": _normalize_elevenlabs,
}


def normalize(event: ProviderEvent) -> NormalizedCaller:
    """Dispatch on the payload's `kind` tag. Unknown payload types raise TypeError."""
    normalizer = _NORMALIZERS.get(getattr(event, "kind", None))
    if normalizer is None:
        raise TypeError(f"Unsupported provider event: {type(event).__name__}")
    return normalizer(event)



def normalize_transcript_entries(raw: Any) -> list[dict[str, Any]]:
    """
    Coerce provider transcript turns into {role, message, timeInCallSecs}.
    Providers disagree on key names; non-dict entries are dropped.
    """
    if not isinstance(raw, list):
        return []
    entries = []
    for turn in raw:
        if not isinstance(turn, dict):
            continue
        time_in_call = turn.get("timeInCallSecs")
        for key in ("time_in_call_secs", "time", "start_time", "timestamp"):
            if time_in_call is not None:
                break
            time_in_call = turn.get(key)
        entries.append({
            "role": turn.get("role") or turn.get("speaker") or "unknown",
            "message": turn.get("message") or turn.get("text") or turn.get("content") or "",
            "timeInCallSecs": time_in_call,
        })
    return entries

async def lookup_firm_by_number(
    db: AsyncSession,
    called_number: Optional[str],
) -> Optional[FirmMatch]:
    """
    Find the organization owning an inbound-enabled number.
    Returns None when the number is unknown or disabled; the caller rejects the webhook.
    """
    normalized = normalize_e164(called_number)
    if not normalized:
        return None

    result = await db.execute(
        select(PhoneNumber).where(
            PhoneNumber.e164 == normalized,
            PhoneNumber.inbound_enabled.is_(True),
        ).limit(1)
    )
    phone_number = result.scalar_one_or_none()
    if not phone_number:
        logger.info(
            "No firm for called number %s", mask_phone(normalized),
            extra={"tag": "firm_lookup_miss", "phone": mask_phone(normalized)},
        )
        return None

    return FirmMatch(
        org_id=phone_number.org_id,
        phone_number_id=phone_number.id,
        e164=phone_number.e164,
    )


async def find_default_firm(
    db: AsyncSession,
    org_id: Optional[str],
) -> Optional[FirmMatch]:
    """Fallback for web calls: the first inbound-enabled number of a configured org."""
    if not org_id:
        return None
    try:
        org_uuid = uuid.UUID(str(org_id))
    except ValueError:
        logger.warning("Invalid default org id configured: %s", org_id)
        return None

    result = await db.execute(
        select(PhoneNumber).where(
            PhoneNumber.org_id == org_uuid,
            PhoneNumber.inbound_enabled.is_(True),
        ).order_by(PhoneNumber.created_at).limit(1)
    )
    phone_number = result.scalar_one_or_none()
    if not phone_number:
        return None
    return FirmMatch(
        org_id=phone_number.org_id,
        phone_number_id=phone_number.id,
        e164=phone_number.e164,
    )
