"""
Tests for caseintake/config.py - URL driver rewrite, CORS origins, bounds.
"""
import pytest
from pydantic import ValidationError

from caseintake.config import Settings


class TestDatabaseUrl:
    @pytest.mark.parametrize("url", [
        "postgres://u:p@db:5432/caseintake",
        "postgresql://u:p@db:5432/caseintake",
    ])
    def test_sync_urls_use_asyncpg(self, url):
        settings = Settings(database_url=url)
        assert settings.database_url == "postgresql+asyncpg://u:p@db:5432/caseintake"

    def test_async_url_untouched(self):
        settings = Settings(database_url="sqlite+aiosqlite:///:memory:")
        assert settings.database_url == "sqlite+aiosqlite:///:memory:"


class TestCorsOrigins:
    def test_splits_and_appends_base_url(self):
        settings = Settings(
            database_url="sqlite+aiosqlite:///:memory:",
            cors_origins=" https://app.example.com , ,https://admin.example.com",
            app_base_url="https://api.example.com",
        )
        assert settings.cors_origin_list == [
            "https://app.example.com",
            "https://admin.example.com",
            "https://api.example.com",
        ]

    def test_base_url_not_duplicated(self):
        settings = Settings(
            database_url="sqlite+aiosqlite:///:memory:",
            cors_origins="https://api.example.com",
            app_base_url="https://api.example.com",
        )
        assert settings.cors_origin_list == ["https://api.example.com"]


def test_error_message_length_must_be_positive():
    with pytest.raises(ValidationError):
        Settings(database_url="sqlite+aiosqlite:///:memory:", ingestion_error_message_max_length=0)
