"""Slack Web API client used by the relay.

This module provides the SlackClient class that handles all communication
between the relay and Slack. It includes:

- HTTP client with bearer-token authentication and a bounded timeout
- Circuit breaker pattern for fault tolerance
- Metrics collection for monitoring
- The subset of Web API methods the relay needs (channels, invites, posts, users)
"""

from __future__ import annotations

import asyncio
import logging
import time
from collections import defaultdict
from collections.abc import Mapping
from dataclasses import dataclass, field
from enum import Enum
from typing import Any

import httpx

from chat_relay.core.settings import Settings, settings
from chat_relay.schemas.slack import SlackChannel

# Configure logger for this module
logger = logging.getLogger(__name__)

# HTTP status codes
HTTP_TOO_MANY_REQUESTS = 429
HTTP_INTERNAL_SERVER_ERROR = 500


class SlackError(RuntimeError):
    """Base exception raised for Slack-related failures."""


class SlackDisabledError(SlackError):
    """Raised when Slack operations are attempted without a bot token."""


class SlackApiError(SlackError):
    """Raised when Slack answers ``ok: false``.

    Attributes:
        method: Web API method that failed, e.g. ``conversations.create``.
        error: Slack error code, e.g. ``name_taken``.
    """

    def __init__(self, method: str, error: str) -> None:
        super().__init__(f"{method} failed: {error}")
        self.method = method
        self.error = error


class CircuitState(Enum):
    """Circuit breaker states for fault tolerance."""
    CLOSED = "closed"      # Normal operation - requests allowed
    OPEN = "open"          # Circuit is open - requests blocked
    HALF_OPEN = "half_open"  # Testing if service is back - limited requests allowed


@dataclass
class SlackMetrics:
    """Metrics collection for Slack calls."""

    request_count: int = 0
    success_count: int = 0
    error_count: int = 0
    total_response_time: float = 0.0
    min_response_time: float = float('inf')
    max_response_time: float = 0.0
    error_counts_by_type: dict[str, int] = field(default_factory=lambda: defaultdict(int))
    method_counts: dict[str, int] = field(default_factory=lambda: defaultdict(int))

    def record_request(
        self, method: str, response_time: float, success: bool, error_type: str | None = None
    ) -> None:
        """Record a request metric."""
        self.request_count += 1
        self.total_response_time += response_time
        self.min_response_time = min(self.min_response_time, response_time)
        self.max_response_time = max(self.max_response_time, response_time)
        self.method_counts[method] += 1

        if success:
            self.success_count += 1
        else:
            self.error_count += 1
            if error_type:
                self.error_counts_by_type[error_type] += 1

    def get_average_response_time(self) -> float:
        return self.total_response_time / self.request_count if self.request_count > 0 else 0.0

    def get_success_rate(self) -> float:
        return (self.success_count / self.request_count * 100) if self.request_count > 0 else 0.0


@dataclass
class CircuitBreaker:
    """Circuit breaker guarding Slack calls.

    Only transport failures trip the breaker; ``ok: false`` answers mean Slack
    is reachable.
    """

    failure_threshold: int = 5
    recovery_timeout: float = 30.0
    success_threshold: int = 1

    _state: CircuitState = CircuitState.CLOSED
    _failure_count: int = 0
    _success_count: int = 0
    _last_failure_time: float = 0.0

    def is_open(self) -> bool:
        if self._state == CircuitState.OPEN:
            if time.time() - self._last_failure_time > self.recovery_timeout:
                self._state = CircuitState.HALF_OPEN
                self._success_count = 0
            return self._state == CircuitState.OPEN
        return False

    def record_success(self) -> None:
        if self._state == CircuitState.HALF_OPEN:
            self._success_count += 1
            if self._success_count >= self.success_threshold:
                self._state = CircuitState.CLOSED
                self._failure_count = 0
        elif self._state == CircuitState.CLOSED:
            self._failure_count = 0

    def record_failure(self) -> None:
        self._failure_count += 1
        self._last_failure_time = time.time()

        if self._state == CircuitState.HALF_OPEN or self._failure_count >= self.failure_threshold:
            self._state = CircuitState.OPEN

    def get_state(self) -> CircuitState:
        return self._state

    def get_failure_count(self) -> int:
        return self._failure_count


@dataclass(frozen=True)
class SlackConfig:
    """Immutable configuration for Slack operations."""

    bot_token: str | None
    base_url: str
    timeout_seconds: float
    private_channels: bool


def load_slack_config(config: Settings | None = None) -> SlackConfig:
    """Build configuration object from ``config`` or the global settings."""

    config = config or settings
    return SlackConfig(
        bot_token=config.slack_bot_token,
        base_url=config.slack_api_base_url.rstrip("/"),
        timeout_seconds=float(config.slack_http_timeout_seconds),
        private_channels=config.slack_private_channels,
    )


class SlackClient:
    """HTTP client wrapper for the Slack Web API."""

    def __init__(self, config: SlackConfig | None = None) -> None:
        self.config = config or load_slack_config()
        self._client: httpx.AsyncClient | None = None
        self._client_lock = asyncio.Lock()
        self._circuit_breaker = CircuitBreaker()
        self._metrics = SlackMetrics()
        self._user_names: dict[str, str] = {}

    @property
    def enabled(self) -> bool:
        return bool(self.config.bot_token)

    async def _ensure_client(self) -> httpx.AsyncClient:
        if not self.enabled:
            raise SlackDisabledError("Slack bot token is not configured")

        async with self._client_lock:
            if self._client is None:
                self._client = httpx.AsyncClient(
                    base_url=self.config.base_url,
                    timeout=httpx.Timeout(self.config.timeout_seconds),
                    headers={"Authorization": f"Bearer {self.config.bot_token}"},
                )

        return self._client

    async def _call(
        self,
        method: str,
        *,
        json_data: Mapping[str, Any] | None = None,
        params: Mapping[str, Any] | None = None,
    ) -> dict[str, Any]:
        """Invoke a Web API method and return its JSON body.

        Write methods are sent as JSON POSTs; read methods pass ``params`` as a
        query string because Slack ignores JSON bodies on them.
        """
        if self._circuit_breaker.is_open():
            raise SlackError("Slack circuit breaker is open - service unavailable")

        client = await self._ensure_client()

        start_time = time.time()
        success = False
        error_type: str | None = None

        try:
            if params is not None:
                response = await client.get(f"/{method}", params=params)
            else:
                response = await client.post(f"/{method}", json=dict(json_data or {}))

            if response.status_code == HTTP_TOO_MANY_REQUESTS:
                error_type = "rate_limited"
                raise SlackError(
                    f"{method} rate limited (retry after {response.headers.get('Retry-After')}s)"
                )
            if response.status_code >= HTTP_INTERNAL_SERVER_ERROR:
                self._circuit_breaker.record_failure()
                error_type = f"http_{response.status_code}"
                raise SlackError(f"Slack responded with {response.status_code} to {method}")

            self._circuit_breaker.record_success()
            body = response.json()
            if not body.get("ok", False):
                error_type = str(body.get("error", "unknown_error"))
                raise SlackApiError(method, error_type)

            success = True
            return body
        except httpx.HTTPError as exc:
            self._circuit_breaker.record_failure()
            error_type = "timeout" if isinstance(exc, httpx.TimeoutException) else "network_error"
            raise SlackError(f"Slack request {method} failed: {exc}") from exc
        except ValueError as exc:
            error_type = "invalid_json"
            raise SlackError(f"Slack returned a non-JSON body for {method}") from exc
        finally:
            self._metrics.record_request(method, time.time() - start_time, success, error_type)

    async def create_channel(self, name: str) -> SlackChannel:
        """Create a conversation named ``name``."""
        body = await self._call(
            "conversations.create",
            json_data={"name": name, "is_private": self.config.private_channels},
        )
        channel = body.get("channel") or {}
        if not channel.get("id"):
            raise SlackError("conversations.create returned no channel id")
        return SlackChannel(id=channel["id"], name=channel.get("name", name))

    async def archive_channel(self, channel_id: str) -> None:
        await self._call("conversations.archive", json_data={"channel": channel_id})

    async def invite_user(self, channel_id: str, user_id: str) -> None:
        await self._call(
            "conversations.invite",
            json_data={"channel": channel_id, "users": user_id},
        )

    async def set_topic(self, channel_id: str, topic: str) -> None:
        await self._call(
            "conversations.setTopic",
            json_data={"channel": channel_id, "topic": topic},
        )

    async def channel_info(self, channel_id: str) -> SlackChannel:
        """Fetch a conversation's name and archive state."""
        body = await self._call("conversations.info", params={"channel": channel_id})
        channel = body.get("channel") or {}
        return SlackChannel(
            id=channel.get("id", channel_id),
            name=channel.get("name", ""),
            is_archived=bool(channel.get("is_archived", False)),
        )

    async def post_message(self, channel_id: str, text: str) -> str:
        """Post ``text`` into ``channel_id`` and return the message ``ts``."""
        body = await self._call(
            "chat.postMessage",
            json_data={"channel": channel_id, "text": text},
        )
        return str(body.get("ts", ""))

    async def user_name(self, user_id: str) -> str:
        """Return a display name for ``user_id``, cached for the process lifetime.

        Falls back to the raw id when Slack cannot be asked.
        """
        cached = self._user_names.get(user_id)
        if cached is not None:
            return cached

        try:
            body = await self._call("users.info", params={"user": user_id})
        except SlackError as exc:
            logger.warning("Could not resolve Slack user %s: %s", user_id, exc)
            return user_id

        user = body.get("user") or {}
        profile = user.get("profile") or {}
        name = (
            profile.get("display_name")
            or profile.get("real_name")
            or user.get("real_name")
            or user.get("name")
            or user_id
        )
        self._user_names[user_id] = name
        return name

    async def health_check(self) -> dict[str, Any]:
        """Check Slack reachability and token validity via ``auth.test``."""
        if not self.enabled:
            return {"status": "disabled", "enabled": False}

        try:
            body = await self._call("auth.test")
        except SlackError as exc:
            return {
                "status": "unhealthy",
                "enabled": True,
                "error": str(exc),
                "circuit_breaker": self.get_circuit_breaker_status(),
            }

        return {
            "status": "healthy",
            "enabled": True,
            "team": body.get("team"),
            "bot_user_id": body.get("user_id"),
            "circuit_breaker": self.get_circuit_breaker_status(),
        }

    def get_circuit_breaker_status(self) -> dict[str, Any]:
        return {
            "state": self._circuit_breaker.get_state().value,
            "failure_count": self._circuit_breaker.get_failure_count(),
        }

    def get_metrics(self) -> dict[str, Any]:
        """Get Slack call metrics."""
        return {
            "request_count": self._metrics.request_count,
            "success_count": self._metrics.success_count,
            "error_count": self._metrics.error_count,
            "success_rate": self._metrics.get_success_rate(),
            "average_response_time": self._metrics.get_average_response_time(),
            "min_response_time": (
                self._metrics.min_response_time
                if self._metrics.min_response_time != float('inf')
                else 0.0
            ),
            "max_response_time": self._metrics.max_response_time,
            "error_counts_by_type": dict(self._metrics.error_counts_by_type),
            "method_counts": dict(self._metrics.method_counts),
        }

    async def close(self) -> None:
        """Clean up underlying HTTP client resources."""

        async with self._client_lock:
            if self._client is not None:
                await self._client.aclose()
                self._client = None
