"""Best-effort fan-out of stored messages to push sessions."""

from __future__ import annotations

import logging
from collections.abc import Callable
from typing import Any

from chat_relay.schemas.message import Message, Provenance
from chat_relay.services.hub import SLACK_MESSAGE, PushHub
from chat_relay.services.scheduling import RetryPolicy, Scheduler

logger = logging.getLogger(__name__)

HubProvider = Callable[[], PushHub | None]


class Broadcaster:
    """Delivers messages to every live push session.

    When no hub is registered yet (for example while the app is still starting)
    delivery is retried with exponential backoff. Once the policy is exhausted
    the message is dropped from the push path; it stays in its replay buffer.
    """

    def __init__(
        self,
        hub_provider: HubProvider,
        scheduler: Scheduler,
        policy: RetryPolicy | None = None,
    ) -> None:
        self._hub_provider = hub_provider
        self._scheduler = scheduler
        self.policy = policy or RetryPolicy()

    @staticmethod
    def payload_for(event: str, message: Message) -> dict[str, Any]:
        payload = message.to_wire()
        if event == SLACK_MESSAGE:
            payload["provenance"] = Provenance.EXTERNAL.value
            payload["isFromSlack"] = True
        return payload

    async def broadcast(self, event: str, message: Message) -> bool:
        """Emit now if possible, otherwise start a retry chain.

        Returns:
            True if the message was handed to the hub immediately.
        """
        if await self._emit(event, message):
            return True

        logger.warning("No push hub available to broadcast %s %s", event, message.id)
        self._schedule_retry(event, message, 0)
        return False

    async def _emit(self, event: str, message: Message) -> bool:
        hub = self._hub_provider()
        if hub is None:
            return False

        if hub.connection_count == 0:
            logger.warning(
                "Broadcasting %s %s with no connected clients; kept for replay",
                event,
                message.id,
            )
        delivered = await hub.emit(event, self.payload_for(event, message))
        logger.debug("Broadcast %s %s to %d sessions", event, message.id, delivered)
        return True

    def _schedule_retry(self, event: str, message: Message, attempt: int) -> None:
        if not self.policy.allows(attempt):
            logger.error(
                "Failed to broadcast %s %s after %d retries; available via replay only",
                event,
                message.id,
                self.policy.max_attempts,
            )
            return

        delay = self.policy.delay_for(attempt)
        logger.info(
            "Will retry broadcast of %s %s (%d/%d) in %.2fs",
            event,
            message.id,
            attempt + 1,
            self.policy.max_attempts,
            delay,
        )

        async def _retry() -> None:
            if await self._emit(event, message):
                logger.info(
                    "Broadcast %s %s succeeded on retry %d", event, message.id, attempt + 1
                )
                return
            self._schedule_retry(event, message, attempt + 1)

        self._scheduler.schedule(delay, _retry)
