from __future__ import annotations

import json
import logging
import secrets
from typing import Annotated

from fastapi import APIRouter, Depends, Query, Request
from fastapi.responses import PlainTextResponse
from sqlalchemy.ext.asyncio import AsyncSession

from src.channels.types import MessageEvent, StatusesEvent
from src.channels.whatsapp import normalize_webhook
from src.config import Settings, get_settings
from src.db.connection import get_db
from src.db.queries import PersistenceError
from src.handlers.rsvp import handle_inbound_reply
from src.handlers.statuses import handle_status_updates

logger = logging.getLogger(__name__)
router = APIRouter()


def _token_matches(candidate: str | None, expected: str | None) -> bool:
    if not candidate or not expected:
        return False
    return secrets.compare_digest(candidate.encode("utf-8"), expected.encode("utf-8"))


def _log_persistence_errors(context: str, errors: list[PersistenceError]) -> None:
    for error in errors:
        logger.error(
            "Persistence failed while handling %s: %s",
            context,
            error,
            extra={"event_type": "webhook.persistence.failed", "ops_payload": {"context": context}},
        )


@router.get("/webhook-response", response_class=PlainTextResponse)
async def verify_webhook(
    settings: Annotated[Settings, Depends(get_settings)],
    hub_mode: Annotated[str | None, Query(alias="hub.mode")] = None,
    hub_verify_token: Annotated[str | None, Query(alias="hub.verify_token")] = None,
    hub_challenge: Annotated[str | None, Query(alias="hub.challenge")] = None,
) -> PlainTextResponse:
    if hub_mode == "subscribe" and _token_matches(hub_verify_token, settings.whatsapp_webhook_verify_token):
        logger.info("Webhook verified successfully")
        return PlainTextResponse(hub_challenge or "", status_code=200)
    logger.warning("Webhook verification rejected (mode=%s)", hub_mode)
    return PlainTextResponse("Forbidden", status_code=403)


@router.post("/webhook-response", response_class=PlainTextResponse)
async def receive_webhook(
    request: Request,
    session: AsyncSession = Depends(get_db),
) -> PlainTextResponse:
    raw_body = await request.body()
    if not raw_body.strip():
        return PlainTextResponse("Bad Request: Empty body", status_code=400)
    try:
        payload = json.loads(raw_body)
    except ValueError:
        logger.warning("Webhook body is not valid JSON (%d bytes)", len(raw_body))
        return PlainTextResponse("Bad Request: Malformed JSON", status_code=400)
    if payload is None:
        return PlainTextResponse("Bad Request: Empty body", status_code=400)

    try:
        event = normalize_webhook(payload)
        if isinstance(event, MessageEvent):
            reply = await handle_inbound_reply(session, event.message)
            _log_persistence_errors("inbound reply", reply.errors)
        elif isinstance(event, StatusesEvent):
            sync = await handle_status_updates(session, event.statuses)
            _log_persistence_errors("status updates", sync.errors)
            if sync.unmatched:
                logger.info("%d status update(s) matched no message history", len(sync.unmatched))
        else:
            logger.info(
                "Webhook payload not recognized: %s",
                event.reason,
                extra={"event_type": "webhook.unrecognized", "ops_payload": {"reason": event.reason}},
            )
    except Exception:
        logger.exception("Error processing webhook", extra={"event_type": "webhook.failed"})
        return PlainTextResponse("Error processing webhook", status_code=500)

    return PlainTextResponse("OK", status_code=200)
