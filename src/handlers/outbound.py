from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass, field
from uuid import UUID

import httpx
from sqlalchemy.ext.asyncio import AsyncSession

from src.channels.base import BaseChannel
from src.channels.types import OutboundMessage, SendResult
from src.channels.whatsapp import ProviderApiError
from src.config import ConfigurationError
from src.db.queries import PersistenceError, create_scheduled_message, persist, record_message
from src.models.message import MessageHistoryCreate, ScheduledMessage, ScheduledMessageCreate

logger = logging.getLogger(__name__)

SEND_FAILURES = (ProviderApiError, ConfigurationError, httpx.HTTPError)


@dataclass
class SendOutcome:
    to: str
    result: SendResult
    message_history_id: UUID | None = None
    persistence_error: PersistenceError | None = None


@dataclass
class BulkSendError:
    to: str
    error: str
    error_code: int | str


@dataclass
class BulkSendReport:
    results: list[SendOutcome] = field(default_factory=list)
    errors: list[BulkSendError] = field(default_factory=list)


def error_code_for(exc: Exception) -> int | str:
    if isinstance(exc, ProviderApiError) and exc.code is not None:
        return exc.code
    if isinstance(exc, ConfigurationError):
        return "CONFIGURATION_ERROR"
    return "UNKNOWN_ERROR"


def error_message_for(exc: Exception) -> str:
    if isinstance(exc, ProviderApiError):
        return exc.message
    return str(exc) or type(exc).__name__


async def _record_sent(
    session: AsyncSession,
    outcome: SendOutcome,
    history: MessageHistoryCreate,
) -> SendOutcome:
    try:
        record = await persist(session, "sent message history insert", lambda: record_message(session, history))
        outcome.message_history_id = record.id
    except PersistenceError as exc:
        outcome.persistence_error = exc
    return outcome


async def send_single(
    session: AsyncSession,
    channel: BaseChannel,
    message: OutboundMessage,
) -> SendOutcome:
    """Deliver one text message, then record it in message history.

    Delivery failures propagate; a history write failure is attached to the
    outcome because the message has already left.
    """
    result = await channel.send_text(message)
    history = MessageHistoryCreate(
        invitee_id=message.invitee_id,
        template_id=message.template_id,
        message_body=message.body,
        status="sent",
        whatsapp_message_id=result.provider_message_id,
    )
    return await _record_sent(session, SendOutcome(to=message.to, result=result), history)


async def send_template_message(
    session: AsyncSession,
    channel: BaseChannel,
    *,
    to: str,
    template_name: str,
    params: list[str] | None = None,
    language_code: str | None = None,
    invitee_id: UUID | None = None,
    template_id: str | None = None,
) -> SendOutcome:
    result = await channel.send_template(to, template_name, params=params, language_code=language_code)
    body = f"[template:{template_name}]"
    if params:
        body = f"{body} {' | '.join(params)}"
    history = MessageHistoryCreate(
        invitee_id=invitee_id,
        template_id=template_id or template_name,
        message_body=body,
        status="sent",
        whatsapp_message_id=result.provider_message_id,
    )
    return await _record_sent(session, SendOutcome(to=to, result=result), history)


async def send_bulk(
    session: AsyncSession,
    channel: BaseChannel,
    messages: list[OutboundMessage],
    delay_seconds: float = 1.0,
) -> BulkSendReport:
    """Send messages one after another, pausing ``delay_seconds`` between sends.

    A failing recipient is reported in ``errors`` and does not stop the batch.
    """
    report = BulkSendReport()
    for index, message in enumerate(messages):
        if index and delay_seconds > 0:
            await asyncio.sleep(delay_seconds)
        try:
            outcome = await send_single(session, channel, message)
        except SEND_FAILURES as exc:
            logger.warning("Bulk send to recipient #%d failed: %s", index, error_message_for(exc))
            report.errors.append(
                BulkSendError(to=message.to, error=error_message_for(exc), error_code=error_code_for(exc))
            )
            continue
        except Exception as exc:
            logger.exception(
                "Bulk send to recipient #%d failed unexpectedly",
                index,
                extra={"event_type": "outbound.bulk.recipient_failed"},
            )
            report.errors.append(
                BulkSendError(to=message.to, error=error_message_for(exc), error_code=error_code_for(exc))
            )
            continue
        report.results.append(outcome)
    return report


async def schedule_message(session: AsyncSession, data: ScheduledMessageCreate) -> ScheduledMessage:
    return await persist(session, "scheduled message insert", lambda: create_scheduled_message(session, data))
