from __future__ import annotations

import logging
from time import perf_counter
from typing import Any

from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

from src.ops.events import (
    CORRELATION_ID_HEADER,
    new_correlation_id,
    reset_correlation_id,
    set_correlation_id,
)

logger = logging.getLogger(__name__)
logger.setLevel(logging.INFO)


def _ops_payload(request: Request, duration_ms: int, status_code: int | None = None) -> dict[str, Any]:
    payload: dict[str, Any] = {
        "method": request.method,
        "path": request.url.path,
        "duration_ms": duration_ms,
    }
    if status_code is not None:
        payload["status_code"] = status_code
    return payload


class RequestContextMiddleware(BaseHTTPMiddleware):
    """Tag every request with a correlation id and log its outcome."""

    async def dispatch(self, request: Request, call_next: RequestResponseEndpoint) -> Response:
        correlation_id = request.headers.get(CORRELATION_ID_HEADER) or new_correlation_id()
        token = set_correlation_id(correlation_id)
        request.state.correlation_id = correlation_id
        start = perf_counter()

        try:
            response: Response = await call_next(request)
        except Exception:
            duration_ms = int((perf_counter() - start) * 1000)
            logger.exception(
                "Request failed %s %s",
                request.method,
                request.url.path,
                extra={
                    "event_type": "api.request.failed",
                    "correlation_id": correlation_id,
                    "ops_payload": _ops_payload(request, duration_ms),
                },
            )
            raise
        else:
            duration_ms = int((perf_counter() - start) * 1000)
            response.headers["X-Request-Id"] = correlation_id
            level = logging.WARNING if response.status_code >= 500 else logging.INFO
            logger.log(
                level,
                "Request completed %s %s -> %d (%dms)",
                request.method,
                request.url.path,
                response.status_code,
                duration_ms,
                extra={
                    "event_type": "api.request.completed",
                    "correlation_id": correlation_id,
                    "ops_payload": _ops_payload(request, duration_ms, response.status_code),
                },
            )
            return response
        finally:
            reset_correlation_id(token)
