"""Bidirectional mapping between user keys and Slack channels."""

from __future__ import annotations

import logging
from dataclasses import dataclass

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class UserKey:
    """Composite identity used to key channel bindings.

    Display names are not unique, so the contact address is part of the key.
    """

    name: str
    contact: str

    def __post_init__(self) -> None:
        if not self.name or not self.contact:
            raise ValueError("UserKey requires both a name and a contact address")

    def __str__(self) -> str:
        return f"{self.name}:{self.contact}"


class UserChannelRegistry:
    """One live channel per user key and one user key per channel.

    Every mutation updates the forward and reverse index together without
    yielding to the event loop.
    """

    def __init__(self) -> None:
        self._channels: dict[UserKey, str] = {}
        self._owners: dict[str, UserKey] = {}

    def lookup(self, user_key: UserKey) -> str | None:
        """Return the channel bound to ``user_key`` if any."""
        return self._channels.get(user_key)

    def owner_of(self, channel_id: str) -> UserKey | None:
        """Return the user key bound to ``channel_id`` if any."""
        return self._owners.get(channel_id)

    def bind(self, user_key: UserKey, channel_id: str) -> None:
        """Bind ``user_key`` to ``channel_id``, replacing stale bindings on either side."""
        previous_channel = self._channels.pop(user_key, None)
        if previous_channel is not None:
            self._owners.pop(previous_channel, None)

        previous_owner = self._owners.pop(channel_id, None)
        if previous_owner is not None:
            self._channels.pop(previous_owner, None)
            logger.warning(
                "Channel %s rebound from %s to %s", channel_id, previous_owner, user_key
            )

        self._channels[user_key] = channel_id
        self._owners[channel_id] = user_key

    def invalidate(self, channel_id: str) -> UserKey | None:
        """Drop the binding for ``channel_id``. No-op if it is not bound."""
        user_key = self._owners.pop(channel_id, None)
        if user_key is not None:
            self._channels.pop(user_key, None)
            logger.info("Invalidated channel binding %s for %s", channel_id, user_key)
        return user_key

    def unbind(self, user_key: UserKey) -> str | None:
        """Drop the binding for ``user_key``. No-op if it is not bound."""
        channel_id = self._channels.pop(user_key, None)
        if channel_id is not None:
            self._owners.pop(channel_id, None)
        return channel_id

    def bindings(self) -> dict[str, str]:
        """Return ``{str(user_key): channel_id}`` for status reporting."""
        return {str(key): channel for key, channel in self._channels.items()}

    def __len__(self) -> int:
        return len(self._channels)

    def __contains__(self, user_key: object) -> bool:
        return user_key in self._channels
