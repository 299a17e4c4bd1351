"""
OpenAI Realtime SIP call control - accept or reject an incoming call.

Auth: Bearer token via OPENAI_API_KEY.
All calls have a 10-second timeout. Failures are logged and reported as False;
the webhook still answers 200 so OpenAI does not redeliver.
"""
import logging

import httpx

from caseintake.agents.tool_definitions import INTAKE_TOOLS
from caseintake.config import get_settings

logger = logging.getLogger(__name__)

TIMEOUT = 10.0

DEFAULT_INSTRUCTIONS = (
    "You are the intake assistant for a law firm. Collect the caller's name, phone, "
    "and the details of their legal matter using the provided tools. Do not give legal advice."
)


async def _post(path: str, payload: dict) -> bool:
    settings = get_settings()
    if not settings.openai_api_key:
        logger.error(
            "OPENAI_API_KEY not configured, cannot call %s", path,
            extra={"tag": "openai_call_control_unconfigured"},
        )
        return False

    try:
        async with httpx.AsyncClient(timeout=TIMEOUT) as client:
            response = await client.post(
                f"{settings.openai_api_base}{path}",
                headers={
                    "Authorization": f"Bearer {settings.openai_api_key}",
                    "Content-Type": "application/json",
                },
                json=payload,
            )
            response.raise_for_status()
        return True
    except httpx.HTTPError as e:
        logger.error(
            "OpenAI call control %s failed: %s", path, str(e),
            extra={"tag": "openai_call_control_error", "error": str(e)},
        )
        return False


async def accept_call(call_id: str, instructions: str = DEFAULT_INSTRUCTIONS) -> bool:
    """Accept an incoming SIP call with the intake tools attached."""
    settings = get_settings()
    accepted = await _post(f"/realtime/calls/{call_id}/accept", {
        "type": "realtime",
        "model": settings.openai_realtime_model,
        "instructions": instructions,
        "tools": INTAKE_TOOLS,
        "tool_choice": "auto",
    })
    if accepted:
        logger.info("Accepted realtime call %s", call_id, extra={"call_id": call_id, "provider": "openai_realtime"})
    return accepted


async def reject_call(call_id: str, status_code: int = 603, reason: str = "Decline - number not configured") -> bool:
    """Reject an incoming SIP call (603 Decline by default)."""
    rejected = await _post(f"/realtime/calls/{call_id}/reject", {
        "status_code": status_code,
        "reason": reason,
    })
    if rejected:
        logger.info(
            "Rejected realtime call %s with %d", call_id, status_code,
            extra={"call_id": call_id, "provider": "openai_realtime"},
        )
    return rejected
