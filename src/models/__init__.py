from src.models.invitee import Invitee, RsvpOutcome
from src.models.message import (
    MessageHistory,
    MessageHistoryCreate,
    ScheduledMessage,
    ScheduledMessageCreate,
)

__all__ = [
    "Invitee",
    "RsvpOutcome",
    "MessageHistory",
    "MessageHistoryCreate",
    "ScheduledMessage",
    "ScheduledMessageCreate",
]
