"""
Test configuration and fixtures.
Uses SQLite in-memory for fast tests. Mocks all external services.
"""
import os

# Settings are read at import time by caseintake.main; pin them before any app import
os.environ.setdefault("DATABASE_URL", "sqlite+aiosqlite:///:memory:")
for _secret in (
    "VAPI_WEBHOOK_SECRET", "OPENAI_WEBHOOK_SECRET", "ELEVENLABS_WEBHOOK_SECRET", "TWILIO_AUTH_TOKEN", "OPENAI_API_KEY",
):
    os.environ[_secret] = ""

import uuid
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy import event
from sqlalchemy.ext.asyncio import create_async_engine, AsyncSession, async_sessionmaker
from sqlalchemy.ext.compiler import compiles
from sqlalchemy.dialects.postgresql import JSONB

from caseintake.database import Base
import caseintake.models  # noqa: F401
from caseintake.models import Organization, PhoneNumber, PracticeArea
from caseintake.services.normalizer import FirmMatch, NormalizedCaller

FIRM_NUMBER = "+15125550100"
CALLER_NUMBER = "+15125559876"


# Register JSONB as JSON for SQLite compatibility in tests
@compiles(JSONB, "sqlite")
def _compile_jsonb_sqlite(type_, compiler, **kw):
    return "JSON"


@pytest.fixture
async def db():
    """In-memory SQLite database for tests, with working SAVEPOINTs."""
    engine = create_async_engine("sqlite+aiosqlite:///:memory:")

    # The sqlite driver's own transaction handling breaks SAVEPOINT; take it over
    @event.listens_for(engine.sync_engine, "connect")
    def _do_connect(dbapi_connection, connection_record):
        dbapi_connection.isolation_level = None

    @event.listens_for(engine.sync_engine, "begin")
    def _do_begin(conn):
        conn.exec_driver_sql("BEGIN")

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    session_factory = async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False)
    async with session_factory() as session:
        yield session
    await engine.dispose()


@pytest.fixture
async def org(db):
    organization = Organization(name="Hale Injury Law", slug="hale-injury-law")
    db.add(organization)
    await db.flush()
    return organization


@pytest.fixture
async def phone_number(db, org):
    number = PhoneNumber(org_id=org.id, e164=FIRM_NUMBER, provider="vapi", inbound_enabled=True)
    db.add(number)
    await db.flush()
    return number


@pytest.fixture
async def practice_area(db, org):
    area = PracticeArea(org_id=org.id, name="Personal Injury")
    db.add(area)
    await db.flush()
    return area


@pytest.fixture
def firm(org, phone_number) -> FirmMatch:
    return FirmMatch(org_id=org.id, phone_number_id=phone_number.id, e164=phone_number.e164)


@pytest.fixture
def make_caller():
    """Factory for NormalizedCaller with sensible defaults."""

    def _make(
        external_call_id: str | None = None,
        phone: str | None = CALLER_NUMBER,
        provider: str = "vapi",
        display_name: str | None = None,
    ) -> NormalizedCaller:
        return NormalizedCaller(
            provider=provider,
            external_call_id=external_call_id or f"call-{uuid.uuid4().hex[:12]}",
            phone_e164=phone,
            called_e164=FIRM_NUMBER,
            display_name=display_name,
        )

    return _make


def make_request(
    *,
    headers: dict | None = None,
    json_body=None,
    body: bytes = b"",
    form_data: dict | None = None,
    path: str = "/",
):
    """Build a mock FastAPI Request with the fields the webhook handlers access."""
    req = MagicMock()
    req.client = MagicMock()
    req.client.host = "127.0.0.1"
    req.headers = headers or {}
    req.url.path = path
    req.url.query = ""
    if isinstance(json_body, Exception):
        req.json = AsyncMock(side_effect=json_body)
    else:
        req.json = AsyncMock(return_value=json_body)
    req.body = AsyncMock(return_value=body)
    req.form = AsyncMock(return_value=dict(form_data or {}))
    return req


@pytest.fixture(name="make_request")
def make_request_fixture():
    return make_request
