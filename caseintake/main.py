"""
CaseIntake - webhook ingestion and lead qualification for law firm intake.
Main FastAPI application entry point.
"""
import logging
from contextlib import asynccontextmanager
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware
from starlette.middleware.base import BaseHTTPMiddleware
from caseintake import __version__
from caseintake.config import get_settings
from caseintake.database import dispose_engine
from caseintake.api.health import webhook_signing_status
from caseintake.api.router import api_router
from caseintake.utils.logging import (
    configure_structured_logging,
    correlation_scope,
)

logger = logging.getLogger("caseintake")

SECRET_ENV_NAMES = {
    "vapi": "VAPI_WEBHOOK_SECRET",
    "openai_realtime": "OPENAI_WEBHOOK_SECRET",
    "elevenlabs": "ELEVENLABS_WEBHOOK_SECRET",
    "twilio": "TWILIO_AUTH_TOKEN",
}


class CorrelationIdMiddleware(BaseHTTPMiddleware):
    """Injects a correlation ID into every request context and response header."""

    async def dispatch(self, request: Request, call_next) -> Response:
        with correlation_scope(request.headers.get("X-Correlation-ID")) as cid:
            response = await call_next(request)
        response.headers["X-Correlation-ID"] = cid
        return response


def _warn_unsigned_providers(settings) -> None:
    # Signature checks fall open when a secret is unset
    for provider, signed in webhook_signing_status(settings).items():
        if not signed:
            logger.warning(
                "%s not set - %s webhook signature verification is disabled",
                SECRET_ENV_NAMES[provider], provider,
            )


def _init_sentry(settings) -> None:
    try:
        import sentry_sdk
        sentry_sdk.init(
            dsn=settings.sentry_dsn,
            traces_sample_rate=0.1,
            environment=settings.app_env,
            release=f"caseintake@{__version__}",
            send_default_pii=False,
        )
        logger.info("Sentry initialized")
    except Exception as e:
        logger.warning("Sentry initialization failed: %s", str(e))


@asynccontextmanager
async def lifespan(app: FastAPI):
    settings = get_settings()
    logger.info("CaseIntake starting up (env=%s, version=%s)", settings.app_env, __version__)
    _warn_unsigned_providers(settings)
    if settings.sentry_dsn:
        _init_sentry(settings)

    yield

    await dispose_engine()
    logger.info("CaseIntake shutdown complete")


def create_app() -> FastAPI:
    """Application factory."""
    settings = get_settings()

    # Configure structured JSON logging with correlation IDs
    configure_structured_logging(settings.log_level)

    application = FastAPI(
        title="CaseIntake",
        description="Webhook ingestion and lead qualification for law firm intake",
        version=__version__,
        lifespan=lifespan,
    )

    application.add_middleware(
        CORSMiddleware,
        allow_origins=settings.cors_origin_list,
        allow_credentials=True,
        allow_methods=["GET", "POST", "OPTIONS"],
        allow_headers=[
            "Authorization", "Content-Type", "X-Correlation-ID", "X-Org-Id",
            "Accept", "Origin", "X-Requested-With",
        ],
    )

    # Correlation ID middleware (must be added AFTER CORS so it runs on every request)
    application.add_middleware(CorrelationIdMiddleware)

    application.include_router(api_router)

    return application


app = create_app()
