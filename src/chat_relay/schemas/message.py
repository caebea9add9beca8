"""Message-related Pydantic schemas."""
from __future__ import annotations

from datetime import UTC, datetime
from enum import Enum

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, computed_field, field_validator
from pydantic.alias_generators import to_camel


class Provenance(str, Enum):
    """Which ingress path produced a message."""

    LOCAL = "local"
    EXTERNAL = "external"


class Ingress(str, Enum):
    """Entry point a local message arrived through."""

    PUSH = "push"
    HTTP = "http"


def utc_now_iso() -> str:
    """Return the current UTC time as an ISO-8601 string."""
    return datetime.now(UTC).isoformat()


class Message(BaseModel):
    """A chat message as stored in the replay buffers and sent on the wire."""

    id: str
    text: str
    sender: str
    timestamp: str = Field(default_factory=utc_now_iso)
    provenance: Provenance = Provenance.LOCAL
    contact_address: str | None = None
    channel_id: str | None = None
    target_user: str | None = None
    target_contact: str | None = None
    user_id: str | None = None
    thread_ts: str | None = None

    model_config = ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
    )

    @computed_field(alias="isFromSlack")  # type: ignore[prop-decorator]
    @property
    def is_from_slack(self) -> bool:
        """Legacy wire flag consumed by the browser client."""
        return self.provenance is Provenance.EXTERNAL

    def to_wire(self) -> dict[str, object]:
        """Serialize using camelCase keys and plain enum values."""
        return self.model_dump(mode="json", by_alias=True)


class ChatMessageCreate(BaseModel):
    """Body of ``POST /messages`` and of the ``chat_message`` push event.

    Push clients emit the ``Message`` shape (``text``/``id``/``contactAddress``)
    while the HTTP fallback posts ``message``/``clientMessageId``/``contact``;
    both spellings are accepted.
    """

    message: str = Field(
        ...,
        validation_alias=AliasChoices("message", "text"),
        description="Message text",
    )
    sender: str = Field(..., description="Display name of the sender")
    contact: str | None = Field(
        None,
        validation_alias=AliasChoices("contact", "contactAddress", "email"),
        description="Contact address, usually an email",
    )
    client_message_id: str | None = Field(
        None,
        validation_alias=AliasChoices("clientMessageId", "id"),
        description="Client-generated id used for deduplication",
    )

    model_config = ConfigDict(populate_by_name=True, coerce_numbers_to_str=True)

    @field_validator("message", "sender")
    @classmethod
    def _require_text(cls, value: str) -> str:
        if not value or not value.strip():
            raise ValueError("must not be empty")
        return value

    @field_validator("contact", "client_message_id")
    @classmethod
    def _blank_to_none(cls, value: str | None) -> str | None:
        if value is None or not value.strip():
            return None
        return value.strip()


class SlackStatus(BaseModel):
    """Outcome of relaying a local message to Slack."""

    success: bool
    channel_id: str | None = None
    ts: str | None = None
    fallback: bool = False
    error: str | None = None

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class DefaultUsersUpdate(BaseModel):
    """Body of ``POST /default-users``."""

    user_ids: list[str] = Field(..., alias="userIds")

    model_config = ConfigDict(populate_by_name=True)
