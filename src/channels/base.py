from __future__ import annotations

from abc import ABC, abstractmethod

from src.channels.types import OutboundMessage, SendResult


class BaseChannel(ABC):
    """Abstract interface for outbound messaging providers."""

    @abstractmethod
    async def send_text(self, message: OutboundMessage) -> SendResult:
        """Send a free-text message. Raises on provider or configuration failure."""
        ...

    @abstractmethod
    async def send_template(
        self,
        to: str,
        template_name: str,
        params: list[str] | None = None,
        language_code: str | None = None,
    ) -> SendResult:
        """Send a pre-approved template message."""
        ...
