from __future__ import annotations

import secrets
from typing import Annotated, Any

from fastapi import APIRouter, Depends, Header, HTTPException, Query
from pydantic import BaseModel, Field

from src.config import Settings, get_settings
from src.ops import events as ops_events
from src.ops.events import EventLevel

router = APIRouter()


class OpsEventResponse(BaseModel):
    timestamp: str
    level: EventLevel
    component: str
    event_type: str
    message: str
    correlation_id: str | None = None
    payload: dict[str, Any] = Field(default_factory=dict)


def _require_ops_access(
    settings: Annotated[Settings, Depends(get_settings)],
    authorization: Annotated[str | None, Header()] = None,
) -> None:
    if not settings.ops_console_enabled:
        raise HTTPException(status_code=404, detail="ops_console_disabled")
    if not settings.ops_api_token:
        raise HTTPException(status_code=403, detail="ops token not configured")
    if not authorization or not authorization.startswith("Bearer "):
        raise HTTPException(status_code=401, detail="missing bearer token")
    token = authorization.removeprefix("Bearer ").strip()
    if not secrets.compare_digest(token.encode("utf-8"), settings.ops_api_token.encode("utf-8")):
        raise HTTPException(status_code=401, detail="invalid bearer token")


@router.get("/events", response_model=list[OpsEventResponse])
async def events(
    _: Annotated[None, Depends(_require_ops_access)],
    limit: int = Query(100, ge=1, le=500),
    level: EventLevel | None = Query(default=None),
    event_type: str | None = Query(default=None, alias="type"),
    correlation_id: str | None = Query(default=None),
) -> list[OpsEventResponse]:
    recent = ops_events.ops_event_buffer.recent(
        limit=limit,
        level=level,
        event_type=event_type,
        correlation_id=correlation_id,
    )
    return [OpsEventResponse(**item) for item in recent]
