from __future__ import annotations

import logging
import re
from typing import Any

import httpx

from src.channels.base import BaseChannel
from src.channels.types import (
    DeliveryStatus,
    InboundMessage,
    MessageEvent,
    NormalizedEvent,
    OutboundMessage,
    SendResult,
    StatusError,
    StatusesEvent,
    StatusUpdate,
    UnrecognizedEvent,
)
from src.config import ConfigurationError, Settings, get_settings

logger = logging.getLogger(__name__)

_PHONE_NOISE_RE = re.compile(r"[\s+\-()]")
_KNOWN_STATUSES = {status.value for status in DeliveryStatus}


class ProviderApiError(Exception):
    """Non-2xx answer from the Graph API."""

    def __init__(
        self,
        status_code: int,
        message: str,
        code: int | str | None = None,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message)
        self.status_code = status_code
        self.message = message
        self.code = code
        self.details = details


def clean_phone_number(to: str) -> str:
    """Strip a ``whatsapp:`` prefix and formatting characters from a recipient."""
    return _PHONE_NOISE_RE.sub("", to.strip().removeprefix("whatsapp:"))


def _first(container: dict[str, Any], key: str) -> Any:
    items = container.get(key)
    if isinstance(items, list) and items:
        return items[0]
    return None


def _as_str(value: Any, default: str = "") -> str:
    if value is None:
        return default
    return str(value)


def _optional_dict(value: Any) -> dict[str, Any] | None:
    return value if isinstance(value, dict) else None


def _parse_message(message: dict[str, Any], contact: Any) -> InboundMessage:
    from_number = _as_str(message.get("from"))
    text_obj = message.get("text")
    text = ""
    if isinstance(text_obj, dict) and isinstance(text_obj.get("body"), str):
        text = text_obj["body"]

    contact_name = ""
    wa_id = from_number
    if isinstance(contact, dict):
        profile = contact.get("profile")
        if isinstance(profile, dict) and profile.get("name"):
            contact_name = str(profile["name"])
        if contact.get("wa_id"):
            wa_id = str(contact["wa_id"])

    return InboundMessage(
        message_id=_as_str(message.get("id")),
        from_number=from_number,
        timestamp=_as_str(message.get("timestamp")),
        type=_as_str(message.get("type"), "unknown"),
        text=text,
        contact_name=contact_name,
        wa_id=wa_id,
    )


def _parse_status_errors(raw: Any) -> list[StatusError]:
    if not isinstance(raw, list):
        return []
    errors: list[StatusError] = []
    for item in raw:
        if not isinstance(item, dict):
            continue
        code = item.get("code")
        error_data = item.get("error_data")
        details = error_data.get("details") if isinstance(error_data, dict) else None
        errors.append(
            StatusError(
                code=code if isinstance(code, int) else None,
                title=_as_str(item.get("title")) or None,
                message=_as_str(item.get("message")) or None,
                details=_as_str(details) or None,
            )
        )
    return errors


def _parse_statuses(raw: list[Any]) -> list[StatusUpdate]:
    updates: list[StatusUpdate] = []
    for item in raw:
        if not isinstance(item, dict) or item.get("status") not in _KNOWN_STATUSES:
            continue
        updates.append(
            StatusUpdate(
                id=_as_str(item.get("id")),
                status=DeliveryStatus(item["status"]),
                timestamp=_as_str(item.get("timestamp")),
                recipient_id=_as_str(item.get("recipient_id")) or None,
                conversation=_optional_dict(item.get("conversation")),
                pricing=_optional_dict(item.get("pricing")),
                errors=_parse_status_errors(item.get("errors")),
            )
        )
    return updates


def normalize_webhook(payload: Any) -> NormalizedEvent:
    """Decode a Cloud API webhook body into a single normalized event.

    Only ``entry[0].changes[0].value`` is inspected. When it carries
    ``messages``, only the first message (and first contact) is used; otherwise
    every known ``statuses`` entry becomes a ``StatusUpdate``. Anything else,
    including a broken path to ``value``, is reported as ``UnrecognizedEvent``.
    """
    if not isinstance(payload, dict):
        return UnrecognizedEvent(reason="payload is not an object")

    entry = _first(payload, "entry")
    if not isinstance(entry, dict):
        return UnrecognizedEvent(reason="missing entry")
    change = _first(entry, "changes")
    if not isinstance(change, dict):
        return UnrecognizedEvent(reason="missing changes")
    value = change.get("value")
    if not isinstance(value, dict):
        return UnrecognizedEvent(reason="missing value")

    message = _first(value, "messages")
    if isinstance(message, dict):
        return MessageEvent(message=_parse_message(message, _first(value, "contacts")))

    statuses = value.get("statuses")
    if isinstance(statuses, list) and statuses:
        return StatusesEvent(statuses=_parse_statuses(statuses))

    return UnrecognizedEvent(reason="value has neither messages nor statuses")


def _provider_error(response: httpx.Response) -> ProviderApiError:
    try:
        body = response.json()
    except ValueError:
        body = None
    error = body.get("error") if isinstance(body, dict) else None
    if isinstance(error, dict):
        return ProviderApiError(
            status_code=response.status_code,
            message=str(error.get("message") or f"Graph API returned {response.status_code}"),
            code=error.get("code"),
            details=body,
        )
    return ProviderApiError(
        status_code=response.status_code,
        message=f"Graph API returned {response.status_code}",
        details=body if isinstance(body, dict) else None,
    )


class WhatsAppChannel(BaseChannel):
    def __init__(self, settings: Settings | None = None) -> None:
        self.settings = settings or get_settings()
        self.http_timeout_seconds = self.settings.whatsapp_http_timeout_seconds

    def _messages_url_and_headers(self) -> tuple[str, dict[str, str]]:
        phone_number_id = self.settings.whatsapp_phone_number_id
        access_token = self.settings.whatsapp_access_token
        if not phone_number_id or not access_token:
            raise ConfigurationError("WhatsApp configuration missing: phoneNumberId or accessToken")
        base = self.settings.whatsapp_api_base_url.rstrip("/")
        url = f"{base}/{self.settings.whatsapp_graph_api_version}/{phone_number_id}/messages"
        headers = {
            "Authorization": f"Bearer {access_token}",
            "Content-Type": "application/json",
        }
        return url, headers

    async def _post(self, payload: dict[str, Any]) -> SendResult:
        url, headers = self._messages_url_and_headers()
        async with httpx.AsyncClient(timeout=self.http_timeout_seconds) as client:
            response = await client.post(url, headers=headers, json=payload)
        if response.status_code >= 400:
            error = _provider_error(response)
            logger.error(
                "WhatsApp API error %d (code=%s): %s",
                error.status_code,
                error.code,
                error.message,
                extra={
                    "event_type": "whatsapp.send.failed",
                    "ops_payload": {"status_code": error.status_code, "code": error.code},
                },
            )
            raise error

        try:
            data = response.json()
        except ValueError as exc:
            logger.error(
                "WhatsApp API answered %d with a non-JSON body",
                response.status_code,
                extra={
                    "event_type": "whatsapp.send.failed",
                    "ops_payload": {"status_code": response.status_code},
                },
            )
            raise ProviderApiError(
                status_code=response.status_code,
                message=f"Graph API returned {response.status_code} with a non-JSON body",
            ) from exc
        messages = data.get("messages") if isinstance(data, dict) else None
        provider_message_id = None
        if isinstance(messages, list) and messages and isinstance(messages[0], dict):
            provider_message_id = messages[0].get("id")
        return SendResult(provider_message_id=provider_message_id, raw=data if isinstance(data, dict) else {})

    async def send_text(self, message: OutboundMessage) -> SendResult:
        payload = {
            "messaging_product": "whatsapp",
            "recipient_type": "individual",
            "to": clean_phone_number(message.to),
            "type": "text",
            "text": {"body": message.body},
        }
        result = await self._post(payload)
        logger.info("WhatsApp text sent (id=%s)", result.provider_message_id)
        return result

    async def send_template(
        self,
        to: str,
        template_name: str,
        params: list[str] | None = None,
        language_code: str | None = None,
    ) -> SendResult:
        components: list[dict[str, Any]] = []
        if params:
            components.append(
                {
                    "type": "body",
                    "parameters": [{"type": "text", "text": param} for param in params],
                }
            )
        payload = {
            "messaging_product": "whatsapp",
            "to": clean_phone_number(to),
            "type": "template",
            "template": {
                "name": template_name,
                "language": {"code": language_code or self.settings.whatsapp_template_language},
                "components": components,
            },
        }
        result = await self._post(payload)
        logger.info("WhatsApp template %s sent (id=%s)", template_name, result.provider_message_id)
        return result
