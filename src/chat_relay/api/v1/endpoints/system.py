"""System and diagnostics endpoints for the chat relay."""

from __future__ import annotations

from typing import Any

from fastapi import APIRouter

from ..dependencies import RelayDep

router = APIRouter(prefix="/system", tags=["system"])


@router.get("/config")
async def get_public_config(relay: RelayDep) -> dict[str, object]:
    """Return a sanitized snapshot of runtime configuration.

    Tokens and secrets are reported only as present or absent.
    """
    config = relay.settings
    return {
        "app": {
            "name": config.app_name,
            "version": config.app_version,
            "debug": config.debug,
        },
        "relay": {
            "recent_window_size": config.recent_window_size,
            "push_path": config.push_path,
            "broadcast_max_retries": config.broadcast_max_retries,
        },
        "slack": {
            "enabled": relay.client.enabled,
            "signing_secret_configured": bool(config.slack_signing_secret),
            "default_channel_configured": bool(config.slack_default_channel_id),
            "channel_prefix": config.slack_channel_prefix,
            "private_channels": config.slack_private_channels,
        },
    }


@router.get("/stats")
async def get_stats(relay: RelayDep) -> dict[str, Any]:
    state = relay.state
    return {
        "started_at": state.started_at,
        "chat_messages": len(state.chat_messages),
        "slack_messages": len(state.slack_messages),
        "bound_channels": len(state.channels),
        "connections": relay.hub.connection_count,
        "pending_retries": getattr(relay.scheduler, "pending", 0),
    }


@router.get("/slack/health")
async def get_slack_health(relay: RelayDep) -> dict[str, Any]:
    """Check Slack reachability and token validity."""
    return await relay.client.health_check()


@router.get("/slack/metrics")
async def get_slack_metrics(relay: RelayDep) -> dict[str, Any]:
    """Return Slack call metrics and circuit breaker state."""
    if not relay.client.enabled:
        return {"enabled": False}

    return {
        "enabled": True,
        "metrics": relay.client.get_metrics(),
        "circuit_breaker": relay.client.get_circuit_breaker_status(),
    }
