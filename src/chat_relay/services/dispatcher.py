"""Single entry point for messages from every ingress path.

Local messages (push transport or HTTP fallback) and Slack events are
normalized into ``Message``, deduplicated, stored in their replay buffer and
then broadcast. Local messages are additionally relayed to Slack on a
best-effort basis.
"""

from __future__ import annotations

import asyncio
import logging
import uuid
from collections.abc import Mapping
from dataclasses import dataclass
from typing import Any

from pydantic import ValidationError

from chat_relay.schemas.message import (
    ChatMessageCreate,
    Ingress,
    Message,
    Provenance,
    SlackStatus,
)
from chat_relay.schemas.slack import ExternalMessageEvent
from chat_relay.services.broadcast import Broadcaster
from chat_relay.services.errors import MessageValidationError
from chat_relay.services.hub import CHAT_MESSAGE, SLACK_MESSAGE
from chat_relay.services.provisioner import ChannelProvisioner, ChannelResolution
from chat_relay.services.registry import UserKey
from chat_relay.services.slack import SlackClient, SlackError
from chat_relay.services.state import RelayState

logger = logging.getLogger(__name__)

_SLACK_ESCAPES = (("&", "&amp;"), ("<", "&lt;"), (">", "&gt;"))


def slack_escape(text: str) -> str:
    """Escape the three characters Slack treats as markup control."""
    for raw, escaped in _SLACK_ESCAPES:
        text = text.replace(raw, escaped)
    return text


def slack_unescape(text: str) -> str:
    for raw, escaped in reversed(_SLACK_ESCAPES):
        text = text.replace(escaped, raw)
    return text


@dataclass(frozen=True)
class DispatchResult:
    """Stored message plus whether it had already been seen."""

    message: Message
    duplicate: bool = False


class InboundDispatcher:
    """Normalizes, stores and fans out inbound messages."""

    def __init__(
        self,
        state: RelayState,
        broadcaster: Broadcaster,
        provisioner: ChannelProvisioner,
        client: SlackClient,
    ) -> None:
        self.state = state
        self.broadcaster = broadcaster
        self.provisioner = provisioner
        self.client = client
        self._relays: set[asyncio.Task[SlackStatus]] = set()

    # --- Local ingress --------------------------------------------------------------
    @staticmethod
    def parse_local(payload: ChatMessageCreate | Mapping[str, Any]) -> ChatMessageCreate:
        """Validate a raw local payload.

        Raises:
            MessageValidationError: ``text``/``message`` or ``sender`` is missing or blank.
        """
        if isinstance(payload, ChatMessageCreate):
            return payload
        try:
            return ChatMessageCreate.model_validate(payload)
        except ValidationError as exc:
            fields = sorted({str(error["loc"][0]) for error in exc.errors() if error["loc"]})
            raise MessageValidationError(
                f"Message and sender are required (invalid: {', '.join(fields)})"
            ) from exc

    def _user_key(self, sender: str, contact: str | None) -> UserKey | None:
        if not contact:
            return None
        return UserKey(sender, contact)

    async def dispatch_local(
        self,
        payload: ChatMessageCreate | Mapping[str, Any],
        ingress: Ingress,
    ) -> DispatchResult:
        """Store and broadcast a message typed into the browser chat."""
        data = self.parse_local(payload)

        if data.client_message_id:
            existing = self.state.chat_messages.get(data.client_message_id)
            if existing is not None:
                logger.debug("Duplicate local message %s ignored", existing.id)
                return DispatchResult(message=existing, duplicate=True)

        user_key = self._user_key(data.sender, data.contact)
        message = Message(
            id=data.client_message_id or uuid.uuid4().hex,
            text=data.message,
            sender=data.sender,
            contact_address=data.contact,
            provenance=Provenance.LOCAL,
            channel_id=self.state.channels.lookup(user_key) if user_key else None,
        )

        self.state.chat_messages.append(message)
        logger.info("Local message %s from %s via %s", message.id, message.sender, ingress.value)
        await self.broadcaster.broadcast(CHAT_MESSAGE, message)
        return DispatchResult(message=message)

    async def _resolve_target(self, message: Message) -> ChannelResolution:
        user_key = self._user_key(message.sender, message.contact_address)
        if user_key is None:
            return self.provisioner.fallback("no contact address")
        return await self.provisioner.resolve_channel(user_key)

    async def relay_to_slack(self, message: Message) -> SlackStatus:
        """Post a local message into its Slack channel. Never raises on Slack failure."""
        if not self.client.enabled:
            return SlackStatus(success=False, error="Slack integration is disabled")

        resolution = await self._resolve_target(message)
        if resolution.channel_id is None:
            logger.warning(
                "No Slack channel for message %s from %s: %s",
                message.id,
                message.sender,
                resolution.error,
            )
            return SlackStatus(
                success=False,
                fallback=resolution.fallback,
                error=resolution.error or "no channel available",
            )

        text = f"*{slack_escape(message.sender)}*: {slack_escape(message.text)}"
        try:
            ts = await self.client.post_message(resolution.channel_id, text)
        except SlackError as exc:
            logger.warning(
                "Posting message %s to %s failed: %s", message.id, resolution.channel_id, exc
            )
            return SlackStatus(
                success=False,
                channel_id=resolution.channel_id,
                fallback=resolution.fallback,
                error=str(exc),
            )

        return SlackStatus(
            success=True,
            channel_id=resolution.channel_id,
            ts=ts,
            fallback=resolution.fallback,
        )

    def schedule_relay(self, message: Message) -> asyncio.Task[SlackStatus]:
        """Relay in the background so the caller is not held up by Slack."""
        task = asyncio.get_running_loop().create_task(self.relay_to_slack(message))
        self._relays.add(task)
        task.add_done_callback(self._relays.discard)
        return task

    async def cancel_pending_relays(self) -> None:
        tasks = list(self._relays)
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)
        self._relays.clear()

    # --- Slack ingress --------------------------------------------------------------
    async def dispatch_external(self, event: ExternalMessageEvent) -> Message | None:
        """Store and broadcast a Slack message.

        Returns:
            The stored message, or None when the event was an echo, had no
            author, or was already buffered.
        """
        if event.is_echo:
            logger.debug(
                "Dropping Slack event %s (bot_id=%s, subtype=%s)",
                event.ts,
                event.bot_id,
                event.subtype,
            )
            return None
        if not event.user:
            logger.debug("Dropping Slack event %s without a user", event.ts)
            return None
        if self.state.slack_messages.contains(event.ts):
            logger.debug("Duplicate Slack event %s ignored", event.ts)
            return None

        sender = await self.client.user_name(event.user) if self.client.enabled else event.user
        owner = self.state.channels.owner_of(event.channel)
        message = Message(
            id=event.ts,
            text=slack_unescape(event.text),
            sender=sender,
            timestamp=event.timestamp,
            provenance=Provenance.EXTERNAL,
            channel_id=event.channel,
            target_user=owner.name if owner else None,
            target_contact=owner.contact if owner else None,
            user_id=event.user,
            thread_ts=event.thread_ts,
        )

        # user_name() may have yielded; re-check before storing.
        if not self.state.slack_messages.append(message):
            return None
        logger.info(
            "Slack message %s in %s for %s",
            message.id,
            event.channel,
            message.target_user or "<unbound channel>",
        )
        await self.broadcaster.broadcast(SLACK_MESSAGE, message)
        return message

    def handle_channel_removed(self, channel_id: str) -> UserKey | None:
        """React to a Slack archive/delete notification."""
        return self.provisioner.invalidate_binding(channel_id)
