from __future__ import annotations

from datetime import UTC, datetime
from uuid import UUID, uuid4

from pydantic import BaseModel
from sqlalchemy import Boolean, DateTime, ForeignKey, Integer, String, Text
from sqlalchemy.dialects.postgresql import UUID as PGUUID
from sqlalchemy.orm import Mapped, mapped_column

from src.db.connection import Base


class MessageHistory(Base):
    __tablename__ = "message_history"

    id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True, default=uuid4)
    invitee_id: Mapped[UUID | None] = mapped_column(
        PGUUID(as_uuid=True), ForeignKey("invitees.id", ondelete="SET NULL"), nullable=True, index=True
    )
    template_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    message_body: Mapped[str] = mapped_column(Text, nullable=False)
    sent_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )
    status: Mapped[str] = mapped_column(String(16), default="sent", nullable=False)
    response_received: Mapped[bool] = mapped_column(Boolean, default=False, nullable=False)
    response_text: Mapped[str | None] = mapped_column(Text, nullable=True)
    response_received_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    whatsapp_message_id: Mapped[str | None] = mapped_column(String(128), nullable=True, index=True)
    status_updated_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True), nullable=True)
    error_code: Mapped[int | None] = mapped_column(Integer, nullable=True)
    error_title: Mapped[str | None] = mapped_column(String(255), nullable=True)


class MessageHistoryCreate(BaseModel):
    message_body: str
    status: str = "sent"
    invitee_id: UUID | None = None
    template_id: str | None = None
    whatsapp_message_id: str | None = None
    response_received: bool = False
    response_text: str | None = None
    response_received_at: datetime | None = None
    sent_at: datetime | None = None


class ScheduledMessage(Base):
    __tablename__ = "scheduled_messages"

    id: Mapped[UUID] = mapped_column(PGUUID(as_uuid=True), primary_key=True, default=uuid4)
    to: Mapped[str] = mapped_column(String(32), nullable=False)
    body: Mapped[str] = mapped_column(Text, nullable=False)
    invitee_id: Mapped[UUID | None] = mapped_column(
        PGUUID(as_uuid=True), ForeignKey("invitees.id", ondelete="SET NULL"), nullable=True
    )
    template_id: Mapped[str | None] = mapped_column(String(64), nullable=True)
    scheduled_date: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False, index=True)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=lambda: datetime.now(UTC), nullable=False
    )


class ScheduledMessageCreate(BaseModel):
    to: str
    body: str
    scheduled_date: datetime
    invitee_id: UUID | None = None
    template_id: str | None = None
