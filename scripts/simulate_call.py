"""
Simulate a Vapi call lifecycle against a running server:
status-update (in-progress), tool-calls, end-of-call-report, and a replayed report.

Usage:
    python scripts/simulate_call.py
    python scripts/simulate_call.py --firm-phone "+15125550100" --caller "+15125559876"
"""
import argparse
import asyncio
import json
import logging
import os
import uuid

import httpx

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

BASE_URL = os.environ.get("CASEINTAKE_BASE_URL", "http://localhost:8000")


def _call(call_id: str, firm_phone: str, caller: str) -> dict:
    return {
        "id": call_id,
        "type": "inboundPhoneCall",
        "phoneNumber": {"number": firm_phone},
        "customer": {"number": caller},
    }


async def _send(client: httpx.AsyncClient, message: dict, secret: str) -> dict:
    headers = {"x-vapi-secret": secret} if secret else {}
    resp = await client.post(f"{BASE_URL}/v1/webhooks/vapi", json={"message": message}, headers=headers)
    logger.info("%s -> %s %s", message["type"], resp.status_code, resp.text)
    return resp.json() if resp.headers.get("content-type", "").startswith("application/json") else {}


async def simulate(firm_phone: str, caller: str, name: str, secret: str) -> None:
    call_id = f"sim-{uuid.uuid4().hex[:12]}"
    call = _call(call_id, firm_phone, caller)

    async with httpx.AsyncClient(timeout=30) as client:
        await _send(client, {"type": "status-update", "status": "in-progress", "call": call}, secret)

        tool_calls = [
            {"id": "tc_1", "type": "function", "function": {
                "name": "create_lead",
                "arguments": json.dumps({"name": name, "phone": caller, "practiceArea": "Personal Injury"}),
            }},
            {"id": "tc_2", "type": "function", "function": {
                "name": "save_intake_answers",
                "arguments": json.dumps({"answers": {"incident_date": "2026-09-30", "injury_type": "whiplash"}}),
            }},
            {"id": "tc_3", "type": "function", "function": {
                "name": "end_call",
                "arguments": json.dumps({"outcome": "intake_complete"}),
            }},
        ]
        await _send(client, {"type": "tool-calls", "call": call, "toolCallList": tool_calls}, secret)

        report = {
            "type": "end-of-call-report",
            "call": call,
            "durationSeconds": 184,
            "summary": f"{name} was rear-ended on 9/30 and is seeking representation.",
            "transcript": "AI: Thank you for calling...\nUser: I was in a car accident...",
            "analysis": {"structuredData": {"callerName": name, "incident_date": "2026-09-30"}},
        }
        await _send(client, report, secret)
        # Provider retries must be acknowledged as duplicates
        await _send(client, report, secret)


def main():
    parser = argparse.ArgumentParser(description="Simulate an inbound Vapi call")
    parser.add_argument("--firm-phone", default="+15125550100")
    parser.add_argument("--caller", default="+15125559876")
    parser.add_argument("--name", default="John Smith")
    parser.add_argument("--secret", default=os.environ.get("VAPI_WEBHOOK_SECRET", ""))
    args = parser.parse_args()
    asyncio.run(simulate(args.firm_phone, args.caller, args.name, args.secret))


if __name__ == "__main__":
    main()
