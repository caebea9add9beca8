# tests/fakes.py
"""Test doubles shared by the suite."""
from __future__ import annotations

import asyncio
import heapq
import itertools
from typing import Any

from chat_relay.schemas.message import Message, Provenance
from chat_relay.schemas.slack import SlackChannel
from chat_relay.services.scheduling import AsyncCallback
from chat_relay.services.slack import SlackApiError, SlackDisabledError

SIGNING_SECRET = "test-signing-secret"
FALLBACK_CHANNEL = "CFALLBACK"


class FakeSlackClient:
    """In-memory stand-in for ``SlackClient`` that records every call."""

    def __init__(self, enabled: bool = True) -> None:
        self.enabled = enabled
        self.calls: list[tuple[str, tuple[Any, ...]]] = []
        self.created: list[str] = []
        self.posted: list[tuple[str, str]] = []
        self.invited: list[tuple[str, str]] = []
        self.archived: list[str] = []
        self.topics: dict[str, str] = {}
        self.users: dict[str, str] = {}
        # Errors raised by successive create_channel calls, consumed in order
        self.create_errors: list[Exception] = []
        # Errors raised for specific channel names on every attempt
        self.failing_names: dict[str, Exception] = {}
        self.create_gate: asyncio.Event | None = None
        self.post_error: Exception | None = None
        self.archive_error: Exception | None = None
        self.invite_failures: set[str] = set()
        self.closed = False
        self._ids = itertools.count(1)

    def _record(self, method: str, *args: Any) -> None:
        if not self.enabled:
            raise SlackDisabledError("Slack bot token is not configured")
        self.calls.append((method, args))

    def count(self, method: str) -> int:
        return sum(1 for name, _ in self.calls if name == method)

    async def create_channel(self, name: str) -> SlackChannel:
        self._record("conversations.create", name)
        if self.create_gate is not None:
            await self.create_gate.wait()
        if self.create_errors:
            raise self.create_errors.pop(0)
        if name in self.failing_names:
            raise self.failing_names[name]
        self.created.append(name)
        return SlackChannel(id=f"C{next(self._ids):04d}", name=name)

    async def archive_channel(self, channel_id: str) -> None:
        self._record("conversations.archive", channel_id)
        if self.archive_error is not None:
            raise self.archive_error
        self.archived.append(channel_id)

    async def invite_user(self, channel_id: str, user_id: str) -> None:
        self._record("conversations.invite", channel_id, user_id)
        if user_id in self.invite_failures:
            raise SlackApiError("conversations.invite", "user_not_found")
        self.invited.append((channel_id, user_id))

    async def set_topic(self, channel_id: str, topic: str) -> None:
        self._record("conversations.setTopic", channel_id, topic)
        self.topics[channel_id] = topic

    async def channel_info(self, channel_id: str) -> SlackChannel:
        self._record("conversations.info", channel_id)
        return SlackChannel(id=channel_id, name=f"name-{channel_id.lower()}")

    async def post_message(self, channel_id: str, text: str) -> str:
        self._record("chat.postMessage", channel_id, text)
        if self.post_error is not None:
            raise self.post_error
        self.posted.append((channel_id, text))
        return f"{1700000000 + len(self.posted)}.000100"

    async def user_name(self, user_id: str) -> str:
        self._record("users.info", user_id)
        return self.users.get(user_id, user_id)

    async def health_check(self) -> dict[str, Any]:
        return {"status": "healthy" if self.enabled else "disabled", "enabled": self.enabled}

    def get_circuit_breaker_status(self) -> dict[str, Any]:
        return {"state": "closed", "failure_count": 0}

    def get_metrics(self) -> dict[str, Any]:
        return {"request_count": len(self.calls)}

    async def close(self) -> None:
        self.closed = True


class ManualScheduler:
    """Scheduler driven by virtual time; nothing runs until ``advance``."""

    def __init__(self) -> None:
        self.now = 0.0
        self.delays: list[float] = []
        self._queue: list[tuple[float, int, AsyncCallback]] = []
        self._seq = itertools.count()

    def schedule(self, delay: float, callback: AsyncCallback) -> None:
        self.delays.append(delay)
        heapq.heappush(self._queue, (self.now + delay, next(self._seq), callback))

    @property
    def pending(self) -> int:
        return len(self._queue)

    async def advance(self, seconds: float) -> None:
        target = self.now + seconds
        while self._queue and self._queue[0][0] <= target:
            due, _, callback = heapq.heappop(self._queue)
            self.now = due
            await callback()
        self.now = target

    async def run_all(self) -> None:
        while self._queue:
            await self.advance(self._queue[0][0] - self.now)

    async def cancel_all(self) -> None:
        self._queue.clear()


def make_message(
    message_id: str,
    *,
    text: str = "hello",
    sender: str = "alice",
    provenance: Provenance = Provenance.LOCAL,
    **fields: Any,
) -> Message:
    return Message(id=message_id, text=text, sender=sender, provenance=provenance, **fields)


class FakeWebSocket:
    """Collects frames sent through a ``PushHub``."""

    def __init__(self, fail: bool = False) -> None:
        self.sent: list[dict[str, Any]] = []
        self.accepted = False
        self.fail = fail

    async def accept(self) -> None:
        self.accepted = True

    async def send_json(self, data: dict[str, Any]) -> None:
        if self.fail:
            raise RuntimeError("socket closed")
        self.sent.append(data)

    def events(self) -> list[str]:
        return [frame["event"] for frame in self.sent]
