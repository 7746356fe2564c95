from __future__ import annotations

from datetime import UTC, datetime, timedelta, timezone

import pytest
from sqlalchemy.ext.asyncio import AsyncSession

from src.channels.types import DeliveryStatus, StatusError, StatusUpdate
from src.db.queries import (
    append_rsvp_note,
    create_scheduled_message,
    get_invitee_by_phone,
    record_message,
    update_invitee_rsvp,
    update_message_status,
)
from src.models.invitee import Invitee, RsvpOutcome
from src.models.message import MessageHistory, MessageHistoryCreate, ScheduledMessageCreate

NOW = datetime(2026, 10, 19, 12, 0, tzinfo=UTC)


async def _add_invitee(session: AsyncSession, name: str, phone_number: str) -> Invitee:
    invitee = Invitee(name=name, phone_number=phone_number)
    session.add(invitee)
    await session.flush()
    await session.refresh(invitee)
    return invitee


def test_append_rsvp_note_starts_and_extends_log() -> None:
    first = append_rsvp_note(None, "yes", NOW)
    assert first == "2026-10-19T12:00:00.000Z: yes"
    second = append_rsvp_note(first, "actually no", NOW + timedelta(hours=1, milliseconds=250))
    assert second.splitlines() == [
        "2026-10-19T12:00:00.000Z: yes",
        "2026-10-19T13:00:00.250Z: actually no",
    ]


def test_append_rsvp_note_normalizes_to_utc() -> None:
    local = datetime(2026, 10, 19, 14, 0, tzinfo=timezone(timedelta(hours=2)))
    assert append_rsvp_note(None, "maybe", local) == "2026-10-19T12:00:00.000Z: maybe"


def test_append_rsvp_note_treats_empty_string_as_no_history() -> None:
    assert append_rsvp_note("", "maybe", NOW) == "2026-10-19T12:00:00.000Z: maybe"


@pytest.mark.asyncio
async def test_invitee_lookup_and_rsvp_update(db_session: AsyncSession) -> None:
    invitee = await _add_invitee(db_session, "Ada", "15551234567")
    await db_session.commit()

    found = await get_invitee_by_phone(db_session, "15551234567")
    assert found is not None
    assert found.id == invitee.id
    assert await get_invitee_by_phone(db_session, "19999999999") is None

    await update_invitee_rsvp(db_session, found, RsvpOutcome.CONFIRMED, "yes", NOW)
    await update_invitee_rsvp(db_session, found, RsvpOutcome.DECLINED, "no sorry", NOW + timedelta(minutes=5))
    await db_session.commit()

    assert RsvpOutcome(found.rsvp_status) is RsvpOutcome.DECLINED
    assert found.additional_info is not None
    assert found.additional_info.splitlines() == [
        "2026-10-19T12:00:00.000Z: yes",
        "2026-10-19T12:05:00.000Z: no sorry",
    ]


@pytest.mark.asyncio
async def test_status_update_mirrors_onto_history(db_session: AsyncSession) -> None:
    record = await record_message(
        db_session,
        MessageHistoryCreate(message_body="You're invited!", whatsapp_message_id="wamid.OUT1"),
    )
    await db_session.commit()
    assert record.status == "sent"

    touched = await update_message_status(
        db_session,
        StatusUpdate(
            id="wamid.OUT1",
            status=DeliveryStatus.FAILED,
            timestamp="1",
            errors=[StatusError(code=131026, title="Message undeliverable")],
        ),
        NOW,
    )
    await db_session.commit()
    assert touched == 1

    refreshed = await db_session.get(MessageHistory, record.id, populate_existing=True)
    assert refreshed is not None
    assert refreshed.status == "failed"
    assert refreshed.error_code == 131026
    assert refreshed.error_title == "Message undeliverable"
    assert refreshed.status_updated_at == NOW


@pytest.mark.asyncio
async def test_status_update_for_unknown_message_touches_nothing(db_session: AsyncSession) -> None:
    touched = await update_message_status(
        db_session,
        StatusUpdate(id="wamid.NOPE", status=DeliveryStatus.READ, timestamp="1"),
        NOW,
    )
    assert touched == 0


@pytest.mark.asyncio
async def test_scheduled_message_is_stored(db_session: AsyncSession) -> None:
    scheduled = await create_scheduled_message(
        db_session,
        ScheduledMessageCreate(to="15551234567", body="Reminder", scheduled_date=NOW + timedelta(days=3)),
    )
    await db_session.commit()
    assert scheduled.id is not None
    assert scheduled.scheduled_date == NOW + timedelta(days=3)
