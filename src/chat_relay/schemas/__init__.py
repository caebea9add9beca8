"""Pydantic schemas and boundary shapes for the chat relay."""

from .message import (
    ChatMessageCreate,
    DefaultUsersUpdate,
    Ingress,
    Message,
    Provenance,
    SlackStatus,
)
from .slack import ExternalMessageEvent, SlackChannel

__all__ = [
    "ChatMessageCreate",
    "DefaultUsersUpdate",
    "ExternalMessageEvent",
    "Ingress",
    "Message",
    "Provenance",
    "SlackChannel",
    "SlackStatus",
]
