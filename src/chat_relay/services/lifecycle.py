"""Per-session handling for the push transport."""

from __future__ import annotations

import logging
from collections.abc import Mapping
from datetime import UTC, datetime
from typing import Any

from chat_relay.schemas.message import Ingress
from chat_relay.services.dispatcher import InboundDispatcher
from chat_relay.services.errors import MessageValidationError
from chat_relay.services.hub import (
    CHAT_MESSAGE,
    ERROR,
    GET_MISSED_MESSAGES,
    MESSAGE_EVENTS,
    MISSED_MESSAGES_COMPLETE,
    SLACK_MESSAGE,
    SUBSCRIBE_EVENTS,
    WELCOME,
    PushHub,
    PushSession,
)
from chat_relay.services.state import RelayState

logger = logging.getLogger(__name__)


class ConnectionLifecycle:
    """Welcome, replay and client requests for one push session at a time."""

    def __init__(
        self,
        state: RelayState,
        hub: PushHub,
        dispatcher: InboundDispatcher,
        welcome_message: str = "Welcome to the chat relay!",
    ) -> None:
        self.state = state
        self.hub = hub
        self.dispatcher = dispatcher
        self.welcome_message = welcome_message

    async def on_connect(self, session: PushSession) -> int:
        """Greet a new session and replay both buffers to it alone."""
        await self.hub.send(
            session,
            WELCOME,
            {
                "message": self.welcome_message,
                "sessionId": session.session_id,
                "timestamp": datetime.now(UTC).isoformat(),
            },
        )
        return await self.replay(session)

    async def on_disconnect(self, session: PushSession) -> None:
        await self.hub.disconnect(session)

    async def replay(self, session: PushSession) -> int:
        """Send the chat buffer then the Slack buffer, oldest first.

        Returns:
            Number of messages sent.
        """
        sent = 0
        for event, buffer in (
            (CHAT_MESSAGE, self.state.chat_messages),
            (SLACK_MESSAGE, self.state.slack_messages),
        ):
            if not session.wants(event):
                continue
            for message in buffer.snapshot():
                payload = self.dispatcher.broadcaster.payload_for(event, message)
                if not await self.hub.send(session, event, payload):
                    return sent
                sent += 1
        return sent

    async def handle_frame(self, session: PushSession, raw: Any) -> None:
        """Handle one ``{"event", "data"}`` frame from a client."""
        if not isinstance(raw, Mapping) or not isinstance(raw.get("event"), str):
            await self._error(session, "Frames must be objects with an 'event' name")
            return

        event = raw["event"]
        data = raw.get("data")
        if data is None:
            data = {}

        if event == CHAT_MESSAGE:
            await self._on_chat_message(session, data)
        elif event == SUBSCRIBE_EVENTS:
            await self._on_subscribe(session, data)
        elif event == GET_MISSED_MESSAGES:
            await self._on_missed_messages(session, data)
        else:
            logger.debug("Ignoring unknown event %s from %s", event, session.session_id)
            await self._error(session, f"Unknown event: {event}")

    async def _on_chat_message(self, session: PushSession, data: Any) -> None:
        if not isinstance(data, Mapping):
            await self._error(session, "chat_message payload must be an object")
            return
        try:
            result = await self.dispatcher.dispatch_local(data, Ingress.PUSH)
        except MessageValidationError as exc:
            await self._error(session, str(exc))
            return
        if not result.duplicate:
            self.dispatcher.schedule_relay(result.message)

    async def _on_subscribe(self, session: PushSession, data: Any) -> None:
        requested = data.get("events") if isinstance(data, Mapping) else None
        if isinstance(requested, list):
            events = {
                event for event in requested if isinstance(event, str) and event in MESSAGE_EVENTS
            }
            session.events = events
        logger.debug("Session %s subscribed to %s", session.session_id, sorted(session.events))
        await self.replay(session)

    async def _on_missed_messages(self, session: PushSession, data: Any) -> None:
        request_id = data.get("requestId") if isinstance(data, Mapping) else None
        count = await self.replay(session)
        await self.hub.send(
            session,
            MISSED_MESSAGES_COMPLETE,
            {"requestId": request_id, "count": count},
        )

    async def _error(self, session: PushSession, message: str) -> None:
        await self.hub.send(session, ERROR, {"message": message})
