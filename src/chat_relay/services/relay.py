"""Wiring of the relay components around one ``RelayState``."""

from __future__ import annotations

import logging

from chat_relay.core.settings import Settings
from chat_relay.core.settings import settings as default_settings
from chat_relay.services.broadcast import Broadcaster
from chat_relay.services.dispatcher import InboundDispatcher
from chat_relay.services.hub import PushHub
from chat_relay.services.lifecycle import ConnectionLifecycle
from chat_relay.services.provisioner import ChannelProvisioner
from chat_relay.services.scheduling import AsyncioScheduler, RetryPolicy, Scheduler
from chat_relay.services.slack import SlackClient, load_slack_config
from chat_relay.services.state import RelayState

logger = logging.getLogger(__name__)


class Relay:
    """Owns the relay state and the services that operate on it."""

    def __init__(
        self,
        config: Settings,
        client: SlackClient,
        scheduler: Scheduler,
    ) -> None:
        self.settings = config
        self.client = client
        self.scheduler = scheduler
        self.state = RelayState(
            capacity=config.recent_window_size,
            default_users=list(config.slack_default_users),
        )
        self.hub = PushHub()
        self.broadcaster = Broadcaster(
            self.state.get_hub,
            scheduler,
            RetryPolicy(
                max_attempts=config.broadcast_max_retries,
                base_delay=config.broadcast_retry_base_delay_seconds,
                max_delay=config.broadcast_retry_max_delay_seconds,
            ),
        )
        self.provisioner = ChannelProvisioner(
            client,
            self.state.channels,
            lambda: self.state.default_users,
            fallback_channel_id=config.slack_default_channel_id,
            prefix=config.slack_channel_prefix,
            max_name_length=config.slack_channel_name_max_length,
        )
        self.dispatcher = InboundDispatcher(
            self.state, self.broadcaster, self.provisioner, client
        )
        self.lifecycle = ConnectionLifecycle(
            self.state,
            self.hub,
            self.dispatcher,
            welcome_message=config.push_welcome_message,
        )

    @property
    def started(self) -> bool:
        return self.state.hub is not None

    def start(self) -> None:
        """Register the push hub so broadcasts stop queueing retries."""
        self.state.hub = self.hub
        logger.info(
            "Relay started (slack %s, replay window %d)",
            "enabled" if self.client.enabled else "disabled",
            self.state.capacity,
        )

    async def stop(self) -> None:
        self.state.hub = None
        await self.scheduler.cancel_all()
        await self.dispatcher.cancel_pending_relays()
        await self.client.close()
        logger.info("Relay stopped")


def build_relay(
    config: Settings | None = None,
    *,
    slack_client: SlackClient | None = None,
    scheduler: Scheduler | None = None,
) -> Relay:
    """Create a relay with fresh state from ``config``."""
    config = config or default_settings
    client = slack_client or SlackClient(load_slack_config(config))
    return Relay(config, client, scheduler or AsyncioScheduler())
