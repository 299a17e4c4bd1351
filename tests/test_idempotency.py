"""
Idempotency gate tests - one winner per (provider, external_id).
"""
from unittest.mock import patch

import pytest
from sqlalchemy import func, select
from sqlalchemy.exc import OperationalError

from caseintake.models.webhook_event import WebhookEvent
from caseintake.services.idempotency import check_idempotency


async def _count(db) -> int:
    return await db.scalar(select(func.count()).select_from(WebhookEvent))


class TestCheckIdempotency:
    async def test_first_delivery_is_new(self, db):
        assert await check_idempotency(db, "vapi", "call-1:end-of-call-report", "end-of-call-report") is True
        assert await _count(db) == 1

    async def test_second_delivery_is_duplicate(self, db):
        assert await check_idempotency(db, "vapi", "call-1", "status-update") is True
        assert await check_idempotency(db, "vapi", "call-1", "status-update") is False
        assert await _count(db) == 1

    async def test_same_id_other_provider_is_new(self, db):
        assert await check_idempotency(db, "vapi", "shared-id", "x") is True
        assert await check_idempotency(db, "twilio", "shared-id", "x") is True
        assert await _count(db) == 2

    async def test_duplicate_leaves_session_usable(self, db):
        await check_idempotency(db, "openai", "wh_1", "realtime.call.incoming")
        await check_idempotency(db, "openai", "wh_1", "realtime.call.incoming")
        # The unique violation only rolled back its own savepoint
        assert await check_idempotency(db, "openai", "wh_2", "realtime.call.incoming") is True
        assert await _count(db) == 2

    async def test_stores_payload_and_event_type(self, db):
        await check_idempotency(db, "twilio", "CA123", "voice", {"CallSid": "CA123"})
        row = (await db.execute(select(WebhookEvent))).scalar_one()
        assert row.provider == "twilio"
        assert row.event_type == "voice"
        assert row.payload == {"CallSid": "CA123"}

    async def test_other_database_errors_propagate(self, db):
        with patch.object(db, "flush", side_effect=OperationalError("INSERT", {}, Exception("db down"))):
            with pytest.raises(OperationalError):
                await check_idempotency(db, "vapi", "call-9", "x")
