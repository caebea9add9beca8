"""Process-lifetime relay state."""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import UTC, datetime

from chat_relay.services.hub import PushHub
from chat_relay.services.recent import DEFAULT_CAPACITY, RecentMessages
from chat_relay.services.registry import UserChannelRegistry


@dataclass
class RelayState:
    """All mutable relay state, owned by one ``Relay`` instance.

    Nothing here survives a restart.
    """

    capacity: int = DEFAULT_CAPACITY
    default_users: list[str] = field(default_factory=list)
    chat_messages: RecentMessages = field(init=False)
    slack_messages: RecentMessages = field(init=False)
    channels: UserChannelRegistry = field(default_factory=UserChannelRegistry)
    hub: PushHub | None = None
    started_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    def __post_init__(self) -> None:
        self.chat_messages = RecentMessages(self.capacity)
        self.slack_messages = RecentMessages(self.capacity)

    def get_hub(self) -> PushHub | None:
        return self.hub

    def set_default_users(self, user_ids: list[str]) -> list[str]:
        self.default_users = [user_id for user_id in user_ids if user_id]
        return list(self.default_users)
