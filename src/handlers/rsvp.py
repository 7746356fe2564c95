from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from datetime import UTC, datetime
from uuid import UUID

from sqlalchemy.ext.asyncio import AsyncSession

from src.channels.types import InboundMessage
from src.db.queries import (
    STORAGE_FAILURES,
    PersistenceError,
    get_invitee_by_phone,
    persist,
    record_message,
    update_invitee_rsvp,
)
from src.models.invitee import RsvpOutcome
from src.models.message import MessageHistoryCreate

logger = logging.getLogger(__name__)

# Checked in order; the first group that matches wins.
RSVP_PATTERNS: list[tuple[RsvpOutcome, re.Pattern[str]]] = [
    (RsvpOutcome.CONFIRMED, re.compile(r"\b(?:yes|attending|will attend)\b")),
    (RsvpOutcome.DECLINED, re.compile(r"\b(?:no|not attending|cannot attend)\b")),
    (RsvpOutcome.MAYBE, re.compile(r"\b(?:maybe|possibly)\b")),
]


def classify(text: str) -> RsvpOutcome:
    lowered = text.lower()
    for outcome, pattern in RSVP_PATTERNS:
        if pattern.search(lowered):
            return outcome
    return RsvpOutcome.PENDING


@dataclass
class InboundReplyResult:
    outcome: RsvpOutcome
    invitee_id: UUID | None = None
    rsvp_updated: bool = False
    message_history_id: UUID | None = None
    errors: list[PersistenceError] = field(default_factory=list)


async def handle_inbound_reply(
    session: AsyncSession,
    message: InboundMessage,
    now: datetime | None = None,
) -> InboundReplyResult:
    """Classify a reply and mirror it onto the sender's invitee record.

    Persistence failures are collected on the result instead of raised.
    Replies from unknown numbers are classified but not stored.
    """
    now = now or datetime.now(UTC)
    result = InboundReplyResult(outcome=classify(message.text))

    try:
        invitee = await get_invitee_by_phone(session, message.from_number)
    except STORAGE_FAILURES as exc:
        await session.rollback()
        result.errors.append(PersistenceError(f"invitee lookup failed: {exc}"))
        return result

    if invitee is None:
        logger.info("Reply %s from unknown number ignored", message.message_id)
        return result

    invitee_id = invitee.id
    result.invitee_id = invitee_id

    if result.outcome is not RsvpOutcome.PENDING:
        try:
            await persist(
                session,
                "rsvp update",
                lambda: update_invitee_rsvp(session, invitee, result.outcome, message.text, now),
            )
            result.rsvp_updated = True
        except PersistenceError as exc:
            result.errors.append(exc)

    history = MessageHistoryCreate(
        invitee_id=invitee_id,
        message_body=message.text,
        sent_at=now,
        status="delivered",
        response_received=True,
        response_text=message.text,
        response_received_at=now,
        whatsapp_message_id=message.message_id or None,
    )
    try:
        record = await persist(session, "reply history insert", lambda: record_message(session, history))
        result.message_history_id = record.id
    except PersistenceError as exc:
        result.errors.append(exc)

    logger.info(
        "Reply %s classified as %s (rsvp_updated=%s)",
        message.message_id,
        result.outcome.value,
        result.rsvp_updated,
        extra={
            "event_type": "rsvp.reply.processed",
            "ops_payload": {"outcome": result.outcome.value, "rsvp_updated": result.rsvp_updated},
        },
    )
    return result
