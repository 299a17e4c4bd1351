"""
Webhook signature validation - verify incoming webhooks are authentic.

Supported providers:
- Vapi: shared secret in the x-vapi-secret header
- OpenAI Realtime: Standard Webhooks (webhook-id / webhook-timestamp / webhook-signature)
- ElevenLabs: hex HMAC-SHA256 over "<t>.<body>" in elevenlabs-signature (t=...,v1=...)
- Twilio: HMAC-SHA1 via X-Twilio-Signature

Every comparison goes through hmac.compare_digest. When no secret is
configured, verification is skipped and a warning is logged on each request
so an unsigned deployment is visible in the logs.
"""
import base64
import hashlib
import hmac
import logging
import time
from typing import Optional

logger = logging.getLogger(__name__)

STANDARD_WEBHOOK_SECRET_PREFIX = "whsec_"


def _log_verification_disabled(provider: str, setting_name: str) -> None:
    logger.warning(
        "%s not set - accepting %s webhook without signature verification. "
        "Configure the secret for production.",
        setting_name,
        provider,
        extra={"tag": "webhook_verification_disabled", "provider": provider},
    )


def verify_shared_secret(
    provided: Optional[str],
    configured: Optional[str],
    provider: str = "vapi",
) -> bool:
    """
    Compare a provider-supplied shared secret with the configured one.
    Missing, wrong-length or wrong-byte secrets are rejected.
    """
    if not configured:
        _log_verification_disabled(provider, f"{provider.upper()}_WEBHOOK_SECRET")
        return True

    if not provided:
        logger.warning("Missing webhook secret header for %s", provider)
        return False

    provided_bytes = provided.encode("utf-8")
    configured_bytes = configured.encode("utf-8")
    if len(provided_bytes) != len(configured_bytes):
        return False
    return hmac.compare_digest(provided_bytes, configured_bytes)


def _decode_standard_webhook_secret(secret: str) -> bytes:
    if secret.startswith(STANDARD_WEBHOOK_SECRET_PREFIX):
        secret = secret[len(STANDARD_WEBHOOK_SECRET_PREFIX):]
    return base64.b64decode(secret)


def sign_standard_webhook(secret: str, webhook_id: str, timestamp: str, body: bytes) -> str:
    """Compute the base64 v1 signature for a Standard Webhooks payload."""
    signed_payload = f"{webhook_id}.{timestamp}.".encode("utf-8") + body
    digest = hmac.new(
        _decode_standard_webhook_secret(secret),
        signed_payload,
        hashlib.sha256,
    ).digest()
    return base64.b64encode(digest).decode("ascii")


def verify_standard_webhook(
    body: bytes,
    webhook_id: str,
    timestamp: str,
    signature_header: str,
    secret: str,
    tolerance_seconds: int = 300,
    now: Optional[float] = None,
) -> bool:
    """
    Validate a Standard Webhooks signature (used by OpenAI).

    The header may carry several space-separated candidates ("v1,<b64> v1,<b64>").
    Returns True if any candidate matches and the timestamp is inside the tolerance window.
    """
    if not secret:
        _log_verification_disabled("openai", "OPENAI_WEBHOOK_SECRET")
        return True

    if not webhook_id or not timestamp or not signature_header:
        return False

    try:
        timestamp_num = int(timestamp)
    except ValueError:
        logger.warning("Invalid webhook-timestamp header: %s", timestamp[:20])
        return False

    current = time.time() if now is None else now
    if abs(current - timestamp_num) > tolerance_seconds:
        logger.warning("Webhook timestamp outside tolerance window")
        return False

    try:
        expected = base64.b64decode(sign_standard_webhook(secret, webhook_id, timestamp, body))
    except Exception as e:
        logger.error("Standard webhook signing error: %s", str(e))
        return False

    for candidate in signature_header.split(" "):
        version, _, sig = candidate.strip().partition(",")
        if version != "v1" or not sig:
            continue
        try:
            received = base64.b64decode(sig)
        except ValueError:
            continue
        if len(received) == len(expected) and hmac.compare_digest(received, expected):
            return True

    logger.warning("No matching Standard Webhooks signature found")
    return False


def sign_elevenlabs_webhook(secret: str, timestamp: str, body: bytes) -> str:
    """Hex HMAC-SHA256 of `<timestamp>.<raw body>`."""
    signed_payload = f"{timestamp}.".encode("utf-8") + body
    return hmac.new(secret.encode("utf-8"), signed_payload, hashlib.sha256).hexdigest()


def verify_elevenlabs_signature(
    body: bytes,
    signature_header: Optional[str],
    secret: str,
    tolerance_seconds: int = 300,
    now: Optional[float] = None,
) -> bool:
    """
    Validate the elevenlabs-signature header, formatted `t=<unix ts>,v1=<hex>`.
    Stale timestamps are rejected the same way as Standard Webhooks.
    """
    if not secret:
        _log_verification_disabled("elevenlabs", "ELEVENLABS_WEBHOOK_SECRET")
        return True

    if not signature_header:
        logger.warning("Missing elevenlabs-signature header")
        return False

    parts = {}
    for item in signature_header.split(","):
        key, _, value = item.strip().partition("=")
        parts[key] = value
    timestamp = parts.get("t", "")
    received = parts.get("v1", "")
    if not timestamp or not received:
        return False

    try:
        timestamp_num = int(timestamp)
    except ValueError:
        logger.warning("Invalid elevenlabs-signature timestamp: %s", timestamp[:20])
        return False

    current = time.time() if now is None else now
    if abs(current - timestamp_num) > tolerance_seconds:
        logger.warning("ElevenLabs webhook timestamp outside tolerance window")
        return False

    expected = sign_elevenlabs_webhook(secret, timestamp, body)
    if len(received) != len(expected):
        return False
    return hmac.compare_digest(received.encode("utf-8"), expected.encode("utf-8"))


def validate_twilio_signature(
    auth_token: str,
    signature: Optional[str],
    url: str,
    params: dict,
) -> bool:
    """
    Validate Twilio webhook signature using their RequestValidator.
    Returns True if valid, False if invalid or on error.
    """
    if not auth_token:
        _log_verification_disabled("twilio", "TWILIO_AUTH_TOKEN")
        return True

    if not signature:
        logger.warning("Missing X-Twilio-Signature header")
        return False

    try:
        from twilio.request_validator import RequestValidator
        validator = RequestValidator(auth_token)
        return validator.validate(url, params, signature)
    except Exception as e:
        logger.error("Twilio signature validation error: %s", str(e))
        return False


async def get_webhook_url(request) -> str:
    """
    Reconstruct the public URL for Twilio signature validation.
    Behind a reverse proxy request.url is the internal URL, but Twilio signs
    against the public one, so X-Forwarded-Proto / X-Forwarded-Host win.
    """
    proto = request.headers.get("x-forwarded-proto", "https")
    host = request.headers.get("x-forwarded-host") or request.headers.get("host", "")
    path = request.url.path
    query = request.url.query
    base = f"{proto}://{host}{path}"
    if query:
        return f"{base}?{query}"
    return base
