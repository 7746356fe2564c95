from __future__ import annotations

import os
from collections.abc import AsyncIterator, Iterator
from typing import Any
from unittest.mock import AsyncMock, MagicMock

import pytest
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine

# src.api.main reads settings at import time, before any fixture runs.
os.environ.setdefault("DATABASE_URL", "postgresql+asyncpg://rsvp:pw@localhost:5432/rsvp")

from src import models  # noqa: E402,F401
from src.channels.base import BaseChannel  # noqa: E402
from src.channels.types import OutboundMessage, SendResult  # noqa: E402
from src.db.connection import Base  # noqa: E402


@pytest.fixture(autouse=True)
def _default_env(monkeypatch: pytest.MonkeyPatch) -> Iterator[None]:
    monkeypatch.setenv("DATABASE_URL", "postgresql+asyncpg://rsvp:pw@localhost:5432/rsvp")
    monkeypatch.setenv("WHATSAPP_PHONE_NUMBER_ID", "1234567890")
    monkeypatch.setenv("WHATSAPP_ACCESS_TOKEN", "test-access-token")
    monkeypatch.setenv("WHATSAPP_WEBHOOK_VERIFY_TOKEN", "verify-me")
    monkeypatch.setenv("BULK_SEND_DELAY_SECONDS", "0")
    from src.config import get_settings

    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


class FakeChannel(BaseChannel):
    """Records outbound sends; recipients listed in ``failing`` raise the given error."""

    def __init__(self, failing: dict[str, Exception] | None = None) -> None:
        self.failing = failing or {}
        self.sent: list[OutboundMessage] = []
        self.templates: list[dict[str, Any]] = []

    async def send_text(self, message: OutboundMessage) -> SendResult:
        if message.to in self.failing:
            raise self.failing[message.to]
        self.sent.append(message)
        wamid = f"wamid.{len(self.sent)}"
        return SendResult(provider_message_id=wamid, raw={"messages": [{"id": wamid}]})

    async def send_template(
        self,
        to: str,
        template_name: str,
        params: list[str] | None = None,
        language_code: str | None = None,
    ) -> SendResult:
        if to in self.failing:
            raise self.failing[to]
        self.templates.append(
            {"to": to, "template_name": template_name, "params": params, "language_code": language_code}
        )
        wamid = f"wamid.t{len(self.templates)}"
        return SendResult(provider_message_id=wamid, raw={"messages": [{"id": wamid}]})


@pytest.fixture
def fake_channel() -> FakeChannel:
    return FakeChannel()


@pytest.fixture
def mock_session() -> AsyncMock:
    session = AsyncMock(spec=AsyncSession)
    session.add = MagicMock()
    return session


def requires_test_db() -> bool:
    test_database_url = os.getenv("TEST_DATABASE_URL")
    return bool(test_database_url and test_database_url.startswith("postgresql+asyncpg://"))


@pytest.fixture(scope="session")
def test_database_url() -> str:
    test_database_url = os.getenv("TEST_DATABASE_URL")
    if not requires_test_db():
        pytest.skip("TEST_DATABASE_URL not set for postgres integration tests")
    assert test_database_url is not None
    return test_database_url


@pytest.fixture
async def db_session(test_database_url: str) -> AsyncIterator[AsyncSession]:
    engine = create_async_engine(test_database_url, future=True)
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
        await conn.run_sync(Base.metadata.create_all)

    maker = async_sessionmaker(engine, expire_on_commit=False)
    async with maker() as session:
        yield session
        await session.rollback()

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest.fixture
def fake_channel_factory() -> type[FakeChannel]:
    return FakeChannel
