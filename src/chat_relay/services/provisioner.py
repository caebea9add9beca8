"""Per-user Slack channel provisioning.

Each user key gets its own Slack channel, created the first time the user
sends a message. A failed creation routes that single message to the shared
fallback channel; the failure is not cached, so the next message tries again.
"""

from __future__ import annotations

import asyncio
import logging
import re
import secrets
from collections.abc import Callable, Iterable
from dataclasses import dataclass

from chat_relay.services.errors import ChannelNotFoundError, ConfirmationMismatchError
from chat_relay.services.registry import UserChannelRegistry, UserKey
from chat_relay.services.slack import SlackApiError, SlackClient, SlackError

logger = logging.getLogger(__name__)

_INVALID_NAME_CHARS = re.compile(r"[^a-z0-9_-]")
NAME_TAKEN = "name_taken"
DEFAULT_PREFIX = "user"
DEFAULT_MAX_NAME_LENGTH = 80


@dataclass(frozen=True)
class ChannelResolution:
    """Where a message for a user key should be posted."""

    channel_id: str | None
    created: bool = False
    fallback: bool = False
    error: str | None = None


def _clean(component: str) -> str:
    return _INVALID_NAME_CHARS.sub("", component.lower())


def channel_name_for(
    user_key: UserKey,
    prefix: str = DEFAULT_PREFIX,
    max_length: int = DEFAULT_MAX_NAME_LENGTH,
) -> str:
    """Derive a Slack-safe channel name from ``user_key``.

    Slack names are lowercase, at most 80 characters, and limited to letters,
    digits, ``-`` and ``_``; other characters are dropped, not escaped.

    >>> channel_name_for(UserKey("alice", "a@x.com"))
    'user-alice-email-axcom'
    """
    name = f"{_clean(prefix)}-{_clean(user_key.name)}-email-{_clean(user_key.contact)}"
    return name[:max_length].rstrip("-_")


class ChannelProvisioner:
    """Resolves user keys to channels, creating them on first use."""

    def __init__(
        self,
        client: SlackClient,
        registry: UserChannelRegistry,
        default_users: Callable[[], Iterable[str]],
        *,
        fallback_channel_id: str | None = None,
        prefix: str = DEFAULT_PREFIX,
        max_name_length: int = DEFAULT_MAX_NAME_LENGTH,
    ) -> None:
        self.client = client
        self.registry = registry
        self._default_users = default_users
        self.fallback_channel_id = fallback_channel_id
        self.prefix = prefix
        self.max_name_length = max_name_length
        self._in_flight: dict[UserKey, asyncio.Task[str]] = {}

    def fallback(self, error: str) -> ChannelResolution:
        """Resolution for a single message when no user channel is available."""
        return ChannelResolution(
            channel_id=self.fallback_channel_id,
            fallback=True,
            error=error,
        )

    async def resolve_channel(self, user_key: UserKey) -> ChannelResolution:
        """Return the channel for ``user_key``, provisioning it if needed.

        Concurrent callers for the same unseen key share a single creation.
        """
        channel_id = self.registry.lookup(user_key)
        if channel_id is not None:
            return ChannelResolution(channel_id=channel_id)

        task = self._in_flight.get(user_key)
        if task is None:
            task = asyncio.get_running_loop().create_task(self._provision(user_key))
            self._in_flight[user_key] = task
            task.add_done_callback(lambda _t, key=user_key: self._in_flight.pop(key, None))

        try:
            channel_id = await asyncio.shield(task)
        except SlackError as exc:
            logger.warning(
                "Provisioning channel for %s failed, using fallback for this message: %s",
                user_key,
                exc,
            )
            return self.fallback(str(exc))

        return ChannelResolution(channel_id=channel_id, created=True)

    async def _provision(self, user_key: UserKey) -> str:
        name = channel_name_for(user_key, self.prefix, self.max_name_length)
        try:
            channel = await self.client.create_channel(name)
        except SlackApiError as exc:
            if exc.error != NAME_TAKEN:
                raise
            # A previous process may have created this name already.
            suffix = secrets.token_hex(3)
            retry_name = f"{name[: self.max_name_length - len(suffix) - 1]}-{suffix}"
            logger.info("Channel name %s taken, retrying as %s", name, retry_name)
            channel = await self.client.create_channel(retry_name)

        self.registry.bind(user_key, channel.id)
        logger.info("Created channel %s (%s) for %s", channel.name, channel.id, user_key)

        await self._announce(user_key, channel.id)
        await self._invite_defaults(channel.id)
        return channel.id

    async def _announce(self, user_key: UserKey, channel_id: str) -> None:
        try:
            await self.client.post_message(
                channel_id,
                f"New chat channel created for *{user_key.name}* ({user_key.contact}).",
            )
            await self.client.set_topic(
                channel_id, f"Chat with {user_key.name} ({user_key.contact})"
            )
        except SlackError as exc:
            logger.warning("Could not announce channel %s: %s", channel_id, exc)

    async def _invite_defaults(self, channel_id: str) -> None:
        for slack_user_id in list(self._default_users()):
            try:
                await self.client.invite_user(channel_id, slack_user_id)
            except SlackError as exc:
                logger.warning(
                    "Could not invite %s to channel %s: %s", slack_user_id, channel_id, exc
                )

    def invalidate_binding(self, channel_id: str) -> UserKey | None:
        """Forget the binding for ``channel_id``. Safe to call repeatedly."""
        return self.registry.invalidate(channel_id)

    async def delete_channel(self, user_key: UserKey, confirmation_token: str) -> str:
        """Archive the user's channel on Slack and drop the binding.

        Args:
            user_key: Owner of the channel.
            confirmation_token: Must equal the owner's display name.

        Returns:
            The archived channel id.

        Raises:
            ConfirmationMismatchError: ``confirmation_token`` does not match.
            ChannelNotFoundError: No channel is bound to ``user_key``.
            SlackError: Slack refused or could not be reached; binding is kept.
        """
        if confirmation_token != user_key.name:
            raise ConfirmationMismatchError("Confirmation does not match the username")

        channel_id = self.registry.lookup(user_key)
        if channel_id is None:
            raise ChannelNotFoundError(f"No channel found for {user_key}")

        try:
            await self.client.archive_channel(channel_id)
        except SlackApiError as exc:
            if exc.error != "already_archived":
                raise
        self.invalidate_binding(channel_id)
        logger.info("Archived channel %s for %s", channel_id, user_key)
        return channel_id
