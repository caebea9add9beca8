"""Version 1 API endpoints."""

from .endpoints import (
    default_users_router,
    messages_router,
    push_router,
    slack_events_router,
    system_router,
    user_channels_router,
)

__all__ = [
    "messages_router",
    "user_channels_router",
    "slack_events_router",
    "default_users_router",
    "push_router",
    "system_router",
]
