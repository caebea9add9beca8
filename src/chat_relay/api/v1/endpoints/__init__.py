"""API endpoint modules for version 1."""

from .default_users import router as default_users_router
from .messages import router as messages_router
from .push import router as push_router
from .slack_events import router as slack_events_router
from .system import router as system_router
from .user_channels import router as user_channels_router

__all__ = [
    "default_users_router",
    "messages_router",
    "push_router",
    "slack_events_router",
    "system_router",
    "user_channels_router",
]
