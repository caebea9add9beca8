"""Decide which broadcast messages belong to a given viewer."""

from __future__ import annotations

from collections.abc import Iterable
from dataclasses import dataclass
from datetime import UTC, datetime

from chat_relay.schemas.message import Message, Provenance
from chat_relay.services.registry import UserChannelRegistry, UserKey


@dataclass(frozen=True)
class Viewer:
    """The person looking at the chat window."""

    name: str
    contact: str | None = None
    channel_id: str | None = None


def viewer_for(registry: UserChannelRegistry, name: str, contact: str | None) -> Viewer:
    """Build a viewer, attaching the channel currently bound to them."""
    channel_id = None
    if name and contact:
        channel_id = registry.lookup(UserKey(name, contact))
    return Viewer(name=name, contact=contact, channel_id=channel_id)


def _same_contact(left: str | None, right: str | None) -> bool:
    if left is None or right is None:
        return True
    return left.lower() == right.lower()


def is_relevant(message: Message, viewer: Viewer) -> bool:
    """Return True if ``viewer`` should see ``message``.

    Local messages are shown to their sender. Slack messages are shown when
    they came from the viewer's channel or were tagged for the viewer.
    """
    if message.provenance is Provenance.LOCAL:
        return message.sender == viewer.name and _same_contact(
            message.contact_address, viewer.contact
        )

    if viewer.channel_id and message.channel_id == viewer.channel_id:
        return True
    # Display names are not unique; the owner's contact must agree too.
    return (
        message.target_user is not None
        and message.target_user == viewer.name
        and _same_contact(message.target_contact, viewer.contact)
    )


def filter_relevant(messages: Iterable[Message], viewer: Viewer) -> list[Message]:
    return [message for message in messages if is_relevant(message, viewer)]


def _sort_key(message: Message) -> datetime:
    try:
        parsed = datetime.fromisoformat(message.timestamp.replace("Z", "+00:00"))
    except ValueError:
        return datetime.min.replace(tzinfo=UTC)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed


def sort_by_timestamp(messages: Iterable[Message]) -> list[Message]:
    """Order messages for display; sources can race so arrival order is not used."""
    return sorted(messages, key=_sort_key)
