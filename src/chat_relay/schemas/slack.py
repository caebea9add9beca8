"""Narrow shapes adapted from Slack payloads at the boundary."""
from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any

# Subtypes that still represent a person typing into the channel.
USER_MESSAGE_SUBTYPES = frozenset({"file_share", "thread_broadcast", "me_message"})


@dataclass(frozen=True)
class SlackChannel:
    """A Slack conversation as returned by ``conversations.*``."""

    id: str
    name: str = ""
    is_archived: bool = False


@dataclass(frozen=True)
class ExternalMessageEvent:
    """A Slack ``message`` event reduced to the fields the relay relies on."""

    ts: str
    text: str
    user: str | None
    channel: str
    bot_id: str | None = None
    subtype: str | None = None
    thread_ts: str | None = None

    @classmethod
    def from_slack(cls, payload: Mapping[str, Any]) -> ExternalMessageEvent:
        """Build an event from the ``event`` object of a Slack callback.

        Raises:
            ValueError: If ``ts`` or ``channel`` is missing.
        """
        ts = payload.get("ts") or payload.get("event_ts")
        channel = payload.get("channel")
        if not ts or not channel:
            raise ValueError("Slack message event requires ts and channel")
        return cls(
            ts=str(ts),
            text=str(payload.get("text") or ""),
            user=payload.get("user"),
            channel=str(channel),
            bot_id=payload.get("bot_id"),
            subtype=payload.get("subtype"),
            thread_ts=payload.get("thread_ts"),
        )

    @property
    def is_echo(self) -> bool:
        """True for bot posts and system subtypes (joins, topic changes, ...)."""
        if self.bot_id:
            return True
        return self.subtype is not None and self.subtype not in USER_MESSAGE_SUBTYPES

    @property
    def timestamp(self) -> str:
        """ISO-8601 time derived from the Slack ``ts``."""
        try:
            seconds = float(self.ts)
        except ValueError:
            return datetime.now(UTC).isoformat()
        return datetime.fromtimestamp(seconds, UTC).isoformat()
