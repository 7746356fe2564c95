from __future__ import annotations

import asyncio

import pytest
from alembic import command
from alembic.config import Config
from sqlalchemy import text
from sqlalchemy.ext.asyncio import create_async_engine

from src.config import get_settings

TABLES = ("invitees", "message_history", "scheduled_messages")


async def _existing_tables(database_url: str) -> set[str]:
    engine = create_async_engine(database_url)
    async with engine.connect() as conn:
        rows = await conn.execute(
            text(
                "SELECT table_name FROM information_schema.tables "
                "WHERE table_schema='public' AND table_name IN "
                "('invitees','message_history','scheduled_messages')"
            )
        )
        names = {row[0] for row in rows.fetchall()}
    await engine.dispose()
    return names


def test_migration_upgrade_downgrade_roundtrip(test_database_url: str, monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("DATABASE_URL", test_database_url)
    get_settings.cache_clear()
    cfg = Config("alembic.ini")

    command.upgrade(cfg, "head")
    assert asyncio.run(_existing_tables(test_database_url)) == set(TABLES)

    command.downgrade(cfg, "base")
    assert asyncio.run(_existing_tables(test_database_url)) == set()
