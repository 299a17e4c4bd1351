"""
Tests for caseintake/database.py - engine options and session lifecycle helpers.
"""
from unittest.mock import AsyncMock, MagicMock, patch

import pytest
from sqlalchemy import select

import caseintake.database as database
from caseintake.config import Settings
from caseintake.models import Organization


def _settings(url: str, env: str = "production") -> Settings:
    return Settings(database_url=url, app_env=env, database_pool_size=5, database_max_overflow=2)


class TestEngineOptions:
    def test_postgres_gets_pool_sizing(self):
        url = "postgresql+asyncpg://u:p@db/caseintake"
        options = database._engine_options(url, _settings(url))
        assert options == {"echo": False, "pool_size": 5, "max_overflow": 2, "pool_pre_ping": True}

    def test_sqlite_skips_pool_sizing(self):
        url = "sqlite+aiosqlite:///:memory:"
        options = database._engine_options(url, _settings(url, env="development"))
        assert options == {"echo": True}


class TestDisposeEngine:
    async def test_noop_without_engine(self):
        with patch.object(database, "_engine", None):
            await database.dispose_engine()
            assert database._engine is None

    async def test_disposes_and_resets(self):
        engine = MagicMock()
        engine.dispose = AsyncMock()
        with (
            patch.object(database, "_engine", engine),
            patch.object(database, "_async_session_factory", MagicMock()),
        ):
            await database.dispose_engine()
            assert database._engine is None
            assert database._async_session_factory is None
        engine.dispose.assert_awaited_once()


class TestSessionScope:
    async def test_commits_on_success(self, db):
        db.commit = AsyncMock(wraps=db.commit)
        factory = MagicMock(return_value=db)
        with patch.object(database, "_get_session_factory", return_value=factory):
            async with database.session_scope() as session:
                session.add(Organization(name="Scope Firm", slug="scope-firm"))
        db.commit.assert_awaited_once()

    async def test_rolls_back_and_reraises(self, db):
        factory = MagicMock(return_value=db)
        with patch.object(database, "_get_session_factory", return_value=factory):
            with pytest.raises(RuntimeError):
                async with database.session_scope() as session:
                    session.add(Organization(name="Doomed Firm", slug="doomed-firm"))
                    await session.flush()
                    raise RuntimeError("boom")
        found = (await db.execute(select(Organization).where(Organization.slug == "doomed-firm"))).scalar_one_or_none()
        assert found is None
