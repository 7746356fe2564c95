from __future__ import annotations

from enum import StrEnum
from typing import Annotated, Any, Literal
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class DeliveryStatus(StrEnum):
    SENT = "sent"
    DELIVERED = "delivered"
    READ = "read"
    FAILED = "failed"


class InboundMessage(BaseModel):
    """First user message of a provider webhook, flattened."""

    model_config = ConfigDict(frozen=True)

    message_id: str
    from_number: str
    timestamp: str
    type: str
    text: str = ""
    contact_name: str = ""
    wa_id: str


class StatusError(BaseModel):
    model_config = ConfigDict(frozen=True)

    code: int | None = None
    title: str | None = None
    message: str | None = None
    details: str | None = None


class StatusUpdate(BaseModel):
    """Delivery receipt for a message previously sent by us."""

    model_config = ConfigDict(frozen=True)

    id: str
    status: DeliveryStatus
    timestamp: str
    recipient_id: str | None = None
    conversation: dict[str, Any] | None = None
    pricing: dict[str, Any] | None = None
    errors: list[StatusError] = Field(default_factory=list)


class MessageEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["message"] = "message"
    message: InboundMessage


class StatusesEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["statuses"] = "statuses"
    statuses: list[StatusUpdate] = Field(default_factory=list)


class UnrecognizedEvent(BaseModel):
    model_config = ConfigDict(frozen=True)

    kind: Literal["unrecognized"] = "unrecognized"
    reason: str


NormalizedEvent = Annotated[
    MessageEvent | StatusesEvent | UnrecognizedEvent,
    Field(discriminator="kind"),
]


class OutboundMessage(BaseModel):
    """Text message to deliver to a phone number."""

    to: str
    body: str
    invitee_id: UUID | None = None
    template_id: str | None = None


class SendResult(BaseModel):
    provider_message_id: str | None
    raw: dict[str, Any] = Field(default_factory=dict)
