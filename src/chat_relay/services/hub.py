"""In-memory WebSocket hub for the push transport.

Single-process only: sessions live in this process and are not keyed by user
identity.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from dataclasses import dataclass, field
from datetime import UTC, datetime
from typing import Any

from fastapi import WebSocket

logger = logging.getLogger(__name__)

CHAT_MESSAGE = "chat_message"
SLACK_MESSAGE = "slack_message"
WELCOME = "welcome"
SUBSCRIBE_EVENTS = "subscribe_events"
GET_MISSED_MESSAGES = "get_missed_messages"
MISSED_MESSAGES_COMPLETE = "missed_messages_complete"
ERROR = "error"

MESSAGE_EVENTS = frozenset({CHAT_MESSAGE, SLACK_MESSAGE})


@dataclass(eq=False)
class PushSession:
    """A connected push client."""

    websocket: WebSocket
    session_id: str = field(default_factory=lambda: uuid.uuid4().hex)
    events: set[str] = field(default_factory=lambda: set(MESSAGE_EVENTS))
    connected_at: str = field(default_factory=lambda: datetime.now(UTC).isoformat())

    def wants(self, event: str) -> bool:
        """Message events honour the subscription; control events always pass."""
        return event not in MESSAGE_EVENTS or event in self.events


def frame(event: str, data: Any) -> dict[str, Any]:
    """Wire envelope shared by both directions."""
    return {"event": event, "data": data}


class PushHub:
    """Tracks push sessions and fans events out to them."""

    def __init__(self) -> None:
        self._lock = asyncio.Lock()
        self._sessions: dict[str, PushSession] = {}

    @property
    def connection_count(self) -> int:
        return len(self._sessions)

    async def connect(self, websocket: WebSocket) -> PushSession:
        await websocket.accept()
        session = PushSession(websocket=websocket)
        async with self._lock:
            self._sessions[session.session_id] = session
        logger.info(
            "Push session connected: %s, total connections: %d",
            session.session_id,
            self.connection_count,
        )
        return session

    async def disconnect(self, session: PushSession) -> None:
        async with self._lock:
            removed = self._sessions.pop(session.session_id, None)
        if removed is not None:
            logger.info(
                "Push session disconnected: %s, total connections: %d",
                session.session_id,
                self.connection_count,
            )

    async def send(self, session: PushSession, event: str, data: Any) -> bool:
        """Send one event to one session. Returns False if the socket is gone."""
        try:
            await session.websocket.send_json(frame(event, data))
        except Exception as exc:
            logger.debug("Send to %s failed: %s", session.session_id, exc)
            return False
        return True

    async def emit(self, event: str, data: Any) -> int:
        """Send ``event`` to every subscribed session.

        Sessions whose socket fails are dropped.

        Returns:
            Number of sessions the event was delivered to.
        """
        async with self._lock:
            targets = [session for session in self._sessions.values() if session.wants(event)]

        delivered = 0
        dead: list[PushSession] = []
        for session in targets:
            if await self.send(session, event, data):
                delivered += 1
            else:
                dead.append(session)

        for session in dead:
            await self.disconnect(session)
        return delivered
