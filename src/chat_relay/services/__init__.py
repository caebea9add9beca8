# src/chat_relay/services/__init__.py
"""Relay services: buffers, channel routing, broadcast and Slack access."""

from .broadcast import Broadcaster
from .dispatcher import InboundDispatcher
from .provisioner import ChannelProvisioner
from .recent import RecentMessages
from .registry import UserChannelRegistry, UserKey
from .relay import Relay, build_relay
from .slack import SlackClient

__all__ = [
    "Broadcaster",
    "ChannelProvisioner",
    "InboundDispatcher",
    "RecentMessages",
    "Relay",
    "SlackClient",
    "UserChannelRegistry",
    "UserKey",
    "build_relay",
]
