from __future__ import annotations

import logging
from datetime import datetime
from typing import Annotated, Any
from uuid import UUID

from fastapi import APIRouter, Depends
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field
from sqlalchemy.ext.asyncio import AsyncSession

from src.channels.base import BaseChannel
from src.channels.types import OutboundMessage
from src.channels.whatsapp import ProviderApiError, WhatsAppChannel
from src.config import Settings, get_settings
from src.db.connection import get_db
from src.db.queries import PersistenceError
from src.handlers.outbound import (
    SEND_FAILURES,
    SendOutcome,
    error_code_for,
    error_message_for,
    schedule_message,
    send_bulk,
    send_single,
    send_template_message,
)
from src.models.message import ScheduledMessageCreate

logger = logging.getLogger(__name__)
router = APIRouter()


class SendMessageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    to: str = Field(min_length=1)
    body: str = Field(min_length=1)
    invitee_id: UUID | None = Field(default=None, alias="inviteeId")
    template_id: str | None = Field(default=None, alias="templateId")

    def to_outbound(self) -> OutboundMessage:
        return OutboundMessage(
            to=self.to,
            body=self.body,
            invitee_id=self.invitee_id,
            template_id=self.template_id,
        )


class SendTemplateRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    to: str = Field(min_length=1)
    template_name: str = Field(min_length=1, alias="templateName")
    template_params: list[str] = Field(default_factory=list, alias="templateParams")
    language_code: str | None = Field(default=None, alias="languageCode")
    invitee_id: UUID | None = Field(default=None, alias="inviteeId")
    template_id: str | None = Field(default=None, alias="templateId")


class BulkSendRequest(BaseModel):
    messages: list[SendMessageRequest]


class ScheduleMessageRequest(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    to: str = Field(min_length=1)
    body: str = Field(min_length=1)
    scheduled_date: datetime = Field(alias="scheduledDate")
    invitee_id: UUID | None = Field(default=None, alias="inviteeId")
    template_id: str | None = Field(default=None, alias="templateId")


def get_channel(settings: Annotated[Settings, Depends(get_settings)]) -> BaseChannel:
    return WhatsAppChannel(settings=settings)


def _log_persistence_error(outcome: SendOutcome) -> None:
    if outcome.persistence_error is None:
        return
    logger.error(
        "Message %s was sent but not recorded: %s",
        outcome.result.provider_message_id,
        outcome.persistence_error,
        extra={"event_type": "outbound.persistence.failed"},
    )


def _history_id(outcome: SendOutcome) -> str | None:
    return str(outcome.message_history_id) if outcome.message_history_id else None


def _send_success(outcome: SendOutcome) -> dict[str, Any]:
    _log_persistence_error(outcome)
    return {
        "success": True,
        "whatsappMessageId": outcome.result.provider_message_id,
        "messageHistoryId": _history_id(outcome),
        "whatsappResponse": outcome.result.raw,
    }


def _send_failure(exc: Exception) -> JSONResponse:
    details = exc.details if isinstance(exc, ProviderApiError) else None
    return JSONResponse(
        status_code=500,
        content={
            "success": False,
            "error": error_message_for(exc),
            "errorCode": error_code_for(exc),
            "details": details,
        },
    )


@router.post("/send-message", response_model=None)
async def send_message(
    request: SendMessageRequest,
    channel: Annotated[BaseChannel, Depends(get_channel)],
    session: AsyncSession = Depends(get_db),
) -> dict[str, Any] | JSONResponse:
    try:
        outcome = await send_single(session, channel, request.to_outbound())
    except SEND_FAILURES as exc:
        logger.error("Send failed: %s", error_message_for(exc), extra={"event_type": "outbound.send.failed"})
        return _send_failure(exc)
    return _send_success(outcome)


@router.post("/send-template-message", response_model=None)
async def send_template(
    request: SendTemplateRequest,
    channel: Annotated[BaseChannel, Depends(get_channel)],
    session: AsyncSession = Depends(get_db),
) -> dict[str, Any] | JSONResponse:
    try:
        outcome = await send_template_message(
            session,
            channel,
            to=request.to,
            template_name=request.template_name,
            params=request.template_params,
            language_code=request.language_code,
            invitee_id=request.invitee_id,
            template_id=request.template_id,
        )
    except SEND_FAILURES as exc:
        logger.error(
            "Template send failed: %s", error_message_for(exc), extra={"event_type": "outbound.send.failed"}
        )
        return _send_failure(exc)
    return _send_success(outcome)


@router.post("/send-bulk-messages")
async def send_bulk_messages(
    request: BulkSendRequest,
    settings: Annotated[Settings, Depends(get_settings)],
    channel: Annotated[BaseChannel, Depends(get_channel)],
    session: AsyncSession = Depends(get_db),
) -> dict[str, Any]:
    report = await send_bulk(
        session,
        channel,
        [item.to_outbound() for item in request.messages],
        delay_seconds=settings.bulk_send_delay_seconds,
    )
    for outcome in report.results:
        _log_persistence_error(outcome)
    logger.info(
        "Bulk send finished: %d sent, %d failed",
        len(report.results),
        len(report.errors),
        extra={
            "event_type": "outbound.bulk.completed",
            "ops_payload": {"sent": len(report.results), "failed": len(report.errors)},
        },
    )
    return {
        "success": True,
        "results": [
            {
                "to": outcome.to,
                "whatsappMessageId": outcome.result.provider_message_id,
                "messageHistoryId": _history_id(outcome),
            }
            for outcome in report.results
        ],
        "errors": [
            {"to": error.to, "error": error.error, "errorCode": error.error_code} for error in report.errors
        ],
    }


@router.post("/schedule-message", response_model=None)
async def schedule(
    request: ScheduleMessageRequest,
    session: AsyncSession = Depends(get_db),
) -> dict[str, Any] | JSONResponse:
    data = ScheduledMessageCreate(
        to=request.to,
        body=request.body,
        scheduled_date=request.scheduled_date,
        invitee_id=request.invitee_id,
        template_id=request.template_id,
    )
    try:
        scheduled = await schedule_message(session, data)
    except PersistenceError as exc:
        logger.error("Scheduling failed: %s", exc, extra={"event_type": "outbound.schedule.failed"})
        return JSONResponse(status_code=500, content={"success": False, "error": str(exc)})
    return {"success": True, "scheduledMessageId": str(scheduled.id)}
