from src.channels.base import BaseChannel
from src.channels.types import InboundMessage, NormalizedEvent, OutboundMessage, StatusUpdate
from src.channels.whatsapp import WhatsAppChannel, normalize_webhook

__all__ = [
    "BaseChannel",
    "InboundMessage",
    "NormalizedEvent",
    "OutboundMessage",
    "StatusUpdate",
    "WhatsAppChannel",
    "normalize_webhook",
]
