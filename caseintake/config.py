"""
Application configuration using pydantic-settings.

Read once from the environment (and .env) and cached. Missing DATABASE_URL
fails at startup. Webhook secrets default to empty, which disables signature
checks for that provider; the app logs a warning at startup for each one.
"""
from functools import lru_cache
from typing import List

from pydantic import field_validator
from pydantic_settings import BaseSettings


class Settings(BaseSettings):
    app_env: str = "development"
    app_host: str = "0.0.0.0"
    app_port: int = 8000
    app_base_url: str = "http://localhost:8000"
    log_level: str = "INFO"
    cors_origins: str = "http://localhost:3000,http://localhost:5173"  # comma-separated

    database_url: str
    database_pool_size: int = 20
    database_max_overflow: int = 10

    # Vapi sends the shared secret verbatim in x-vapi-secret
    vapi_webhook_secret: str = ""
    vapi_assistant_id: str = ""
    vapi_default_org_id: str = ""  # tenant for web calls that carry no phone numbers

    # OpenAI Realtime SIP: Standard Webhooks signing (whsec_...)
    openai_api_key: str = ""
    openai_webhook_secret: str = ""
    openai_webhook_tolerance_seconds: int = 300
    openai_realtime_model: str = "gpt-4o-realtime-preview"
    openai_api_base: str = "https://api.openai.com/v1"

    # ElevenLabs Conversational AI: `t=<ts>,v1=<hex hmac>` in elevenlabs-signature
    elevenlabs_webhook_secret: str = ""
    elevenlabs_webhook_tolerance_seconds: int = 300

    twilio_auth_token: str = ""
    twilio_stream_url: str = ""  # wss:// target for <Connect><Stream>

    sentry_dsn: str = ""

    ingestion_error_message_max_length: int = 2000

    class Config:
        env_file = ".env"
        env_file_encoding = "utf-8"
        extra = "ignore"

    @field_validator("database_url", mode="before")
    @classmethod
    def use_async_driver(cls, v):
        # Hosting providers hand out sync URLs; the engine is async-only
        url = str(v)
        for prefix in ("postgres://", "postgresql://"):
            if url.startswith(prefix):
                return "postgresql+asyncpg://" + url[len(prefix):]
        return url

    @property
    def cors_origin_list(self) -> List[str]:
        origins = [item.strip() for item in self.cors_origins.split(",") if item.strip()]
        if self.app_base_url not in origins:
            origins.append(self.app_base_url)
        return origins

    @field_validator("ingestion_error_message_max_length")
    @classmethod
    def positive_length(cls, v):
        if v <= 0:
            raise ValueError("INGESTION_ERROR_MESSAGE_MAX_LENGTH must be > 0")
        return v


@lru_cache()
def get_settings() -> Settings:
    return Settings()
