"""Application settings and configuration.

This module defines all configuration options for the chat relay.
Settings are loaded from environment variables with sensible defaults.
"""

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class Settings(BaseSettings):
    """Application settings loaded from environment variables.

    Settings can be overridden via environment variables or .env files.
    """

    # Application metadata
    app_name: str = Field(default="Chat Relay", alias="APP_NAME")
    app_version: str = Field(default="0.1.0", alias="APP_VERSION")
    debug: bool = Field(default=False, alias="DEBUG")
    log_level: str = Field(default="INFO", alias="LOG_LEVEL")

    # Replay buffers (one for local chat, one for Slack traffic)
    recent_window_size: int = Field(default=50, alias="RECENT_WINDOW_SIZE")

    # Push transport
    push_path: str = Field(default="/ws", alias="PUSH_PATH")
    push_welcome_message: str = Field(
        default="Welcome to the chat relay!",
        alias="PUSH_WELCOME_MESSAGE",
    )

    # Broadcast retry policy used while the push hub is not registered
    broadcast_max_retries: int = Field(default=5, alias="BROADCAST_MAX_RETRIES")
    broadcast_retry_base_delay_seconds: float = Field(
        default=0.1,
        alias="BROADCAST_RETRY_BASE_DELAY_SECONDS",
    )
    broadcast_retry_max_delay_seconds: float = Field(
        default=3.0,
        alias="BROADCAST_RETRY_MAX_DELAY_SECONDS",
    )

    # Slack integration settings
    slack_bot_token: str | None = Field(default=None, alias="SLACK_BOT_TOKEN")
    slack_signing_secret: str | None = Field(default=None, alias="SLACK_SIGNING_SECRET")
    slack_api_base_url: str = Field(
        default="https://slack.com/api",
        alias="SLACK_API_BASE_URL",
    )
    slack_http_timeout_seconds: float = Field(
        default=10.0,
        alias="SLACK_HTTP_TIMEOUT_SECONDS",
    )
    slack_default_channel_id: str | None = Field(
        default=None,
        alias="SLACK_DEFAULT_CHANNEL_ID",
    )
    slack_default_users: list[str] = Field(
        default_factory=list,
        alias="SLACK_DEFAULT_USERS",
    )
    slack_channel_prefix: str = Field(default="user", alias="SLACK_CHANNEL_PREFIX")
    slack_channel_name_max_length: int = Field(
        default=80,
        alias="SLACK_CHANNEL_NAME_MAX_LENGTH",
    )
    slack_private_channels: bool = Field(default=False, alias="SLACK_PRIVATE_CHANNELS")
    slack_signature_max_age_seconds: int = Field(
        default=300,
        alias="SLACK_SIGNATURE_MAX_AGE_SECONDS",
    )

    # CORS configuration for web frontend access
    cors_origins: list[str] = Field(
        default=["*"],
        alias="CORS_ORIGINS",
    )
    cors_allow_credentials: bool = Field(default=True, alias="CORS_ALLOW_CREDENTIALS")
    cors_allow_methods: list[str] = Field(
        default=["GET", "POST", "DELETE", "OPTIONS"],
        alias="CORS_ALLOW_METHODS",
    )
    cors_allow_headers: list[str] = Field(
        default=["*"],
        alias="CORS_ALLOW_HEADERS",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        validate_assignment=True,
        extra="ignore",
        populate_by_name=True,
    )


settings = Settings()
