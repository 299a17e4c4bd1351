"""
Webhook payload schemas - raw input from each telephony / voice provider.
Each payload is tagged with `kind` and normalized into a NormalizedCaller
before any record is written.
"""
from datetime import datetime
from typing import Literal, Optional, Union
from pydantic import BaseModel, ConfigDict, Field


class TwilioVoiceEvent(BaseModel):
    """Twilio inbound voice webhook (form-encoded)."""
    model_config = ConfigDict(extra="ignore")

    kind: Literal["twilio_voice"] = "twilio_voice"
    CallSid: str
    From: str = ""
    To: str = ""
    CallerName: Optional[str] = None
    CallStatus: Optional[str] = None
    FromCity: Optional[str] = None
    FromState: Optional[str] = None


class TwilioSmsEvent(BaseModel):
    """Twilio inbound SMS webhook (form-encoded)."""
    model_config = ConfigDict(extra="ignore")

    kind: Literal["twilio_sms"] = "twilio_sms"
    MessageSid: str
    From: str = ""
    To: str = ""
    Body: str = ""
    NumMedia: str = "0"


class TwilioStatusEvent(BaseModel):
    """Twilio call status callback."""
    model_config = ConfigDict(extra="ignore")

    CallSid: str
    CallStatus: str  # queued, ringing, in-progress, completed, busy, failed, no-answer, canceled
    CallDuration: Optional[str] = None
    RecordingUrl: Optional[str] = None


class VapiEvent(BaseModel):
    """
    The `call` portion of a Vapi server message, flattened.
    Vapi places numbers in several spots; from_message() resolves them.
    """
    kind: Literal["vapi"] = "vapi"
    call_id: str
    call_type: Optional[str] = None  # inboundPhoneCall, outboundPhoneCall, webCall
    assistant_id: Optional[str] = None
    from_number: Optional[str] = None
    to_number: Optional[str] = None
    customer: dict = Field(default_factory=dict)

    @property
    def is_web_call(self) -> bool:
        return self.call_type in ("webCall", "vapi.websocketCall")

    @classmethod
    def from_message(cls, message: dict) -> Optional["VapiEvent"]:
        """Build from a Vapi `message` object. Returns None when the call has no id."""
        call = message.get("call") or {}
        call_id = call.get("id")
        if not call_id:
            return None

        phone_number = call.get("phoneNumber") or message.get("phoneNumber") or {}
        customer = call.get("customer") or message.get("customer") or {}
        caller = call.get("caller") or {}

        to_number = (
            phone_number.get("number")
            or call.get("to")
            or call.get("calledNumber")
        )
        from_number = (
            customer.get("number")
            or call.get("from")
            or call.get("callerNumber")
            or caller.get("number")
        )
        assistant = call.get("assistant") or {}
        return cls(
            call_id=str(call_id),
            call_type=call.get("type"),
            assistant_id=call.get("assistantId") or assistant.get("id"),
            from_number=from_number,
            to_number=to_number,
            customer=customer,
        )


class SipHeader(BaseModel):
    name: str
    value: str


class OpenAIRealtimeEvent(BaseModel):
    """`data` of an OpenAI realtime.call.* webhook event."""
    kind: Literal["openai_realtime"] = "openai_realtime"
    call_id: str
    sip_headers: list[SipHeader] = Field(default_factory=list)
    status_code: Optional[int] = None
    reason: Optional[str] = None

    def sip_header(self, name: str) -> Optional[str]:
        """Case-insensitive SIP header lookup."""
        for header in self.sip_headers:
            if header.name.lower() == name.lower():
                return header.value
        return None


class ElevenLabsEvent(BaseModel):
    """ElevenLabs Conversational AI inbound call webhook."""
    model_config = ConfigDict(extra="ignore")

    kind: Literal["elevenlabs"] = "elevenlabs"
    conversation_id: Optional[str] = None
    call_sid: Optional[str] = None
    caller_id: Optional[str] = None
    called_number: Optional[str] = None
    client_data: dict = Field(default_factory=dict)

    @property
    def external_id(self) -> Optional[str]:
        return self.conversation_id or self.call_sid


class ElevenLabsPostCallEvent(BaseModel):
    """ElevenLabs post-call webhook: transcript, analysis and extracted fields."""
    model_config = ConfigDict(extra="ignore")

    conversation_id: str
    call_sid: Optional[str] = None
    caller_id: Optional[str] = None
    called_number: Optional[str] = None
    duration_seconds: Optional[int] = None
    transcript: Optional[str] = None
    transcript_json: list = Field(default_factory=list)
    summary: Optional[str] = None
    extracted_data: dict = Field(default_factory=dict)
    outcome: Optional[str] = None
    recording_url: Optional[str] = None
    ended_at: Optional[datetime] = None
    client_data: dict = Field(default_factory=dict)


ProviderEvent = Union[TwilioVoiceEvent, TwilioSmsEvent, VapiEvent, OpenAIRealtimeEvent, ElevenLabsEvent]


class OpenAIWebhookEnvelope(BaseModel):
    """Top-level OpenAI webhook body."""
    model_config = ConfigDict(extra="ignore")

    id: Optional[str] = None
    type: str
    data: dict = Field(default_factory=dict)
