from __future__ import annotations

from collections.abc import Awaitable, Callable
from datetime import UTC, datetime
from typing import TypeVar

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from src.channels.types import StatusUpdate
from src.models.invitee import Invitee, RsvpOutcome
from src.models.message import (
    MessageHistory,
    MessageHistoryCreate,
    ScheduledMessage,
    ScheduledMessageCreate,
)

T = TypeVar("T")

# Driver-level connection failures (asyncpg's ConnectionRefusedError) are
# OSErrors that SQLAlchemy does not wrap.
STORAGE_FAILURES = (SQLAlchemyError, OSError)


class PersistenceError(Exception):
    """A datastore read or write failed."""


async def persist(session: AsyncSession, action: str, operation: Callable[[], Awaitable[T]]) -> T:
    """Run a write and commit it, rolling back and raising PersistenceError on failure."""
    try:
        value = await operation()
        await session.commit()
    except STORAGE_FAILURES as exc:
        await session.rollback()
        raise PersistenceError(f"{action} failed: {exc}") from exc
    return value


def append_rsvp_note(existing: str | None, text: str, now: datetime) -> str:
    stamp = now.astimezone(UTC).isoformat(timespec="milliseconds").replace("+00:00", "Z")
    line = f"{stamp}: {text}"
    if existing:
        return f"{existing}\n{line}"
    return line


async def get_invitee_by_phone(session: AsyncSession, phone_number: str) -> Invitee | None:
    result = await session.execute(
        select(Invitee).where(Invitee.phone_number == phone_number).order_by(Invitee.created_at).limit(1)
    )
    return result.scalars().first()


async def update_invitee_rsvp(
    session: AsyncSession,
    invitee: Invitee,
    outcome: RsvpOutcome,
    note: str,
    now: datetime | None = None,
) -> Invitee:
    now = now or datetime.now(UTC)
    invitee.rsvp_status = outcome.value
    invitee.additional_info = append_rsvp_note(invitee.additional_info, note, now)
    invitee.updated_at = now
    await session.flush()
    return invitee


async def record_message(session: AsyncSession, data: MessageHistoryCreate) -> MessageHistory:
    record = MessageHistory(
        invitee_id=data.invitee_id,
        template_id=data.template_id,
        message_body=data.message_body,
        sent_at=data.sent_at or datetime.now(UTC),
        status=data.status,
        response_received=data.response_received,
        response_text=data.response_text,
        response_received_at=data.response_received_at,
        whatsapp_message_id=data.whatsapp_message_id,
    )
    session.add(record)
    await session.flush()
    await session.refresh(record)
    return record


async def update_message_status(
    session: AsyncSession,
    status: StatusUpdate,
    now: datetime | None = None,
) -> int:
    """Mirror a delivery receipt onto history rows. Returns the number of rows touched."""
    if not status.id:
        return 0
    values: dict[str, object] = {
        "status": status.status.value,
        "status_updated_at": now or datetime.now(UTC),
    }
    if status.errors:
        values["error_code"] = status.errors[0].code
        values["error_title"] = status.errors[0].title
    result = await session.execute(
        update(MessageHistory)
        .where(MessageHistory.whatsapp_message_id == status.id)
        .values(**values)
        .execution_options(synchronize_session=False)
    )
    return int(result.rowcount or 0)


async def create_scheduled_message(session: AsyncSession, data: ScheduledMessageCreate) -> ScheduledMessage:
    scheduled = ScheduledMessage(
        to=data.to,
        body=data.body,
        invitee_id=data.invitee_id,
        template_id=data.template_id,
        scheduled_date=data.scheduled_date,
    )
    session.add(scheduled)
    await session.flush()
    await session.refresh(scheduled)
    return scheduled
