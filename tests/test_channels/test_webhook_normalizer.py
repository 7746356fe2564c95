from __future__ import annotations

from typing import Any

import pytest
from pydantic import ValidationError

from src.channels.types import (
    DeliveryStatus,
    MessageEvent,
    StatusesEvent,
    UnrecognizedEvent,
)
from src.channels.whatsapp import normalize_webhook


def _wrap(value: dict[str, Any]) -> dict[str, Any]:
    return {
        "object": "whatsapp_business_account",
        "entry": [
            {
                "id": "WABA_ID",
                "changes": [{"field": "messages", "value": {"messaging_product": "whatsapp", **value}}],
            }
        ],
    }


def _text_message(body: str = "Yes I will be there", msg_id: str = "wamid.IN1") -> dict[str, Any]:
    return {
        "from": "15551234567",
        "id": msg_id,
        "timestamp": "1707000000",
        "type": "text",
        "text": {"body": body},
    }


def test_text_message_is_extracted_verbatim() -> None:
    payload = _wrap(
        {
            "contacts": [{"profile": {"name": "Ada"}, "wa_id": "15551234567"}],
            "messages": [_text_message("  Yes, see you there!  ")],
        }
    )
    event = normalize_webhook(payload)
    assert isinstance(event, MessageEvent)
    message = event.message
    assert message.text == "  Yes, see you there!  "
    assert message.message_id == "wamid.IN1"
    assert message.from_number == "15551234567"
    assert message.timestamp == "1707000000"
    assert message.type == "text"
    assert message.contact_name == "Ada"
    assert message.wa_id == "15551234567"


def test_non_text_message_yields_empty_text() -> None:
    payload = _wrap(
        {
            "messages": [
                {
                    "from": "15551234567",
                    "id": "wamid.IMG",
                    "timestamp": "1707000001",
                    "type": "image",
                    "image": {"id": "MEDIA_ID", "mime_type": "image/jpeg"},
                }
            ]
        }
    )
    event = normalize_webhook(payload)
    assert isinstance(event, MessageEvent)
    assert event.message.text == ""
    assert event.message.type == "image"


def test_missing_contact_falls_back_to_sender() -> None:
    event = normalize_webhook(_wrap({"messages": [_text_message()]}))
    assert isinstance(event, MessageEvent)
    assert event.message.contact_name == ""
    assert event.message.wa_id == "15551234567"


def test_only_first_message_is_processed() -> None:
    payload = _wrap({"messages": [_text_message("first", "wamid.A"), _text_message("second", "wamid.B")]})
    event = normalize_webhook(payload)
    assert isinstance(event, MessageEvent)
    assert event.message.message_id == "wamid.A"
    assert event.message.text == "first"


def test_two_statuses_yield_two_updates_and_no_message() -> None:
    payload = _wrap(
        {
            "statuses": [
                {
                    "id": "wamid.OUT1",
                    "status": "delivered",
                    "timestamp": "1707000100",
                    "recipient_id": "15551234567",
                    "conversation": {"id": "CONV", "origin": {"type": "utility"}},
                    "pricing": {"billable": True, "category": "utility"},
                },
                {"id": "wamid.OUT2", "status": "read", "timestamp": "1707000200"},
            ]
        }
    )
    event = normalize_webhook(payload)
    assert isinstance(event, StatusesEvent)
    assert [s.id for s in event.statuses] == ["wamid.OUT1", "wamid.OUT2"]
    assert event.statuses[0].status is DeliveryStatus.DELIVERED
    assert event.statuses[0].conversation == {"id": "CONV", "origin": {"type": "utility"}}
    assert event.statuses[0].pricing == {"billable": True, "category": "utility"}
    assert event.statuses[1].status is DeliveryStatus.READ
    assert event.statuses[1].conversation is None


def test_failed_status_keeps_error_reasons() -> None:
    payload = _wrap(
        {
            "statuses": [
                {
                    "id": "wamid.OUT3",
                    "status": "failed",
                    "timestamp": "1707000300",
                    "errors": [
                        {
                            "code": 131026,
                            "title": "Message undeliverable",
                            "message": "Message undeliverable",
                            "error_data": {"details": "Receiver is incapable of receiving this message"},
                        }
                    ],
                }
            ]
        }
    )
    event = normalize_webhook(payload)
    assert isinstance(event, StatusesEvent)
    (status,) = event.statuses
    assert status.status is DeliveryStatus.FAILED
    assert status.errors[0].code == 131026
    assert status.errors[0].title == "Message undeliverable"
    assert status.errors[0].details == "Receiver is incapable of receiving this message"


def test_unknown_status_values_are_dropped() -> None:
    payload = _wrap(
        {
            "statuses": [
                {"id": "wamid.X", "status": "deleted", "timestamp": "1"},
                "garbage",
                {"id": "wamid.Y", "status": "sent", "timestamp": "2"},
            ]
        }
    )
    event = normalize_webhook(payload)
    assert isinstance(event, StatusesEvent)
    assert [s.id for s in event.statuses] == ["wamid.Y"]


def test_messages_take_precedence_over_statuses() -> None:
    payload = _wrap(
        {
            "messages": [_text_message("maybe")],
            "statuses": [{"id": "wamid.OUT1", "status": "sent", "timestamp": "1"}],
        }
    )
    event = normalize_webhook(payload)
    assert isinstance(event, MessageEvent)
    assert event.message.text == "maybe"


def test_missing_entry_is_unrecognized() -> None:
    event = normalize_webhook({"object": "whatsapp_business_account"})
    assert isinstance(event, UnrecognizedEvent)
    assert "entry" in event.reason


@pytest.mark.parametrize(
    "payload",
    [
        None,
        [],
        "not a dict",
        {"entry": []},
        {"entry": ["x"]},
        {"entry": [{"changes": []}]},
        {"entry": [{"changes": [{"value": None}]}]},
        {"entry": [{"changes": [{"value": {"messages": []}}]}]},
        {"entry": [{"changes": [{"value": {"statuses": []}}]}]},
        {"entry": [{"changes": [{"value": {"metadata": {"phone_number_id": "1"}}}]}]},
    ],
)
def test_malformed_payloads_never_raise(payload: Any) -> None:
    assert isinstance(normalize_webhook(payload), UnrecognizedEvent)


def test_normalized_message_is_immutable() -> None:
    event = normalize_webhook(_wrap({"messages": [_text_message()]}))
    assert isinstance(event, MessageEvent)
    with pytest.raises(ValidationError):
        event.message.text = "changed"  # type: ignore[misc]
