from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import UTC, datetime

from sqlalchemy.ext.asyncio import AsyncSession

from src.channels.types import DeliveryStatus, StatusUpdate
from src.db.queries import PersistenceError, persist, update_message_status

logger = logging.getLogger(__name__)


@dataclass
class StatusSyncResult:
    updated: int = 0
    unmatched: list[str] = field(default_factory=list)
    errors: list[PersistenceError] = field(default_factory=list)


async def handle_status_updates(
    session: AsyncSession,
    statuses: list[StatusUpdate],
    now: datetime | None = None,
) -> StatusSyncResult:
    now = now or datetime.now(UTC)
    result = StatusSyncResult()
    for status in statuses:
        if status.status is DeliveryStatus.FAILED:
            first_error = status.errors[0] if status.errors else None
            logger.warning(
                "WhatsApp message %s failed: %s (code=%s)",
                status.id,
                first_error.title if first_error else "no reason given",
                first_error.code if first_error else None,
                extra={
                    "event_type": "whatsapp.status.failed",
                    "ops_payload": {
                        "message_id": status.id,
                        "errors": [error.model_dump() for error in status.errors],
                    },
                },
            )
        else:
            logger.info(
                "WhatsApp status %s for %s",
                status.status.value,
                status.id,
                extra={
                    "event_type": "whatsapp.status",
                    "ops_payload": {
                        "message_id": status.id,
                        "status": status.status.value,
                        "conversation": status.conversation,
                        "pricing": status.pricing,
                    },
                },
            )

        try:
            touched = await persist(
                session,
                f"status sync for {status.id}",
                lambda status=status: update_message_status(session, status, now),
            )
        except PersistenceError as exc:
            result.errors.append(exc)
            continue
        if touched:
            result.updated += touched
        else:
            result.unmatched.append(status.id)
    return result
