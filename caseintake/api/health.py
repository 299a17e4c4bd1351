"""
Health endpoints for load balancers and the Docker healthcheck.

GET /health is liveness only. GET /health/ready checks the database and
reports which webhook providers have signing secrets configured. Only the
database decides readiness; an unsigned provider still accepts traffic.
"""
import logging
from datetime import datetime, timezone
from fastapi import APIRouter, Depends
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy import text
from caseintake import __version__
from caseintake.config import get_settings
from caseintake.database import get_db

logger = logging.getLogger(__name__)
router = APIRouter(tags=["health"])


def _now() -> str:
    return datetime.now(timezone.utc).isoformat()


def webhook_signing_status(settings) -> dict[str, bool]:
    return {
        "vapi": bool(settings.vapi_webhook_secret),
        "openai_realtime": bool(settings.openai_webhook_secret),
        "elevenlabs": bool(settings.elevenlabs_webhook_secret),
        "twilio": bool(settings.twilio_auth_token),
    }


@router.get("/health")
async def health_check():
    return {"status": "healthy", "timestamp": _now(), "version": __version__}


@router.get("/health/ready")
async def readiness_check(db: AsyncSession = Depends(get_db)):
    database_ok = True
    try:
        await db.execute(text("SELECT 1"))
    except Exception as e:
        database_ok = False
        logger.error("Readiness: database unreachable: %s", str(e))

    return {
        "status": "ready" if database_ok else "degraded",
        "checks": {"database": database_ok},
        "webhook_signing": webhook_signing_status(get_settings()),
        "timestamp": _now(),
    }
