#!/usr/bin/env python3
"""Smoke-test WhatsApp Cloud API credentials with a real send.

Reads config from .env and sends one template message (Meta's stock
``hello_world`` template unless told otherwise) and, optionally, one free-form
text message to the given recipient.

Usage:
    uv run python scripts/smoke_test_whatsapp.py --to 15551234567
    uv run python scripts/smoke_test_whatsapp.py --to 15551234567 --template event_invite --param Ada
    uv run python scripts/smoke_test_whatsapp.py --to 15551234567 --text "RSVP bridge test"
"""
from __future__ import annotations

import argparse
import asyncio
import sys
import time
from pathlib import Path

sys.path.insert(0, str(Path(__file__).resolve().parent.parent))

from src.channels.types import OutboundMessage
from src.channels.whatsapp import WhatsAppChannel
from src.config import Settings
from src.handlers.outbound import SEND_FAILURES, error_code_for, error_message_for


def _settings() -> Settings:
    return Settings()  # type: ignore[call-arg]


async def test_template(channel: WhatsAppChannel, to: str, template: str, params: list[str]) -> bool:
    print(f"  template    {template:<40s} ", end="", flush=True)
    t0 = time.monotonic()
    try:
        result = await channel.send_template(to, template, params=params or None)
    except SEND_FAILURES as exc:
        print(f"FAIL  {time.monotonic() - t0:.1f}s  [{error_code_for(exc)}] {error_message_for(exc)}")
        return False
    print(f"OK  {time.monotonic() - t0:.1f}s  id={result.provider_message_id}")
    return True


async def test_text(channel: WhatsAppChannel, to: str, body: str) -> bool:
    print(f"  text        {body[:40]:<40s} ", end="", flush=True)
    t0 = time.monotonic()
    try:
        result = await channel.send_text(OutboundMessage(to=to, body=body))
    except SEND_FAILURES as exc:
        print(f"FAIL  {time.monotonic() - t0:.1f}s  [{error_code_for(exc)}] {error_message_for(exc)}")
        return False
    print(f"OK  {time.monotonic() - t0:.1f}s  id={result.provider_message_id}")
    return True


async def main() -> int:
    parser = argparse.ArgumentParser(description="Smoke-test WhatsApp Cloud API sends")
    parser.add_argument("--to", required=True, help="Recipient phone number")
    parser.add_argument("--template", default="hello_world", help="Approved template name")
    parser.add_argument("--param", action="append", default=[], help="Template body parameter (repeatable)")
    parser.add_argument("--text", help="Also send this free-form text (needs an open 24h session)")
    args = parser.parse_args()

    settings = _settings()
    channel = WhatsAppChannel(settings=settings)
    print(f"\n--- Graph API {settings.whatsapp_graph_api_version} ---")

    results = [await test_template(channel, args.to, args.template, args.param)]
    if args.text:
        results.append(await test_text(channel, args.to, args.text))

    passed = sum(results)
    failed = len(results) - passed
    print(f"\n{'='*60}")
    print(f"  {passed} passed, {failed} failed")
    print(f"{'='*60}")
    return 1 if failed else 0


if __name__ == "__main__":
    sys.exit(asyncio.run(main()))
