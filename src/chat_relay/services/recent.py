"""Bounded replay buffers for recently relayed messages."""

from __future__ import annotations

from collections import deque

from chat_relay.schemas.message import Message

DEFAULT_CAPACITY = 50


class RecentMessages:
    """FIFO cache of the last ``capacity`` messages, deduplicated by id."""

    def __init__(self, capacity: int = DEFAULT_CAPACITY) -> None:
        if capacity <= 0:
            raise ValueError("capacity must be positive")
        self.capacity = capacity
        self._messages: deque[Message] = deque()
        self._ids: set[str] = set()

    def append(self, message: Message) -> bool:
        """Store ``message`` unless its id is already buffered.

        Returns:
            True if the message was stored, False if it was a duplicate.
        """
        if message.id in self._ids:
            return False
        self._messages.append(message)
        self._ids.add(message.id)
        while len(self._messages) > self.capacity:
            evicted = self._messages.popleft()
            self._ids.discard(evicted.id)
        return True

    def contains(self, message_id: str) -> bool:
        return message_id in self._ids

    def get(self, message_id: str) -> Message | None:
        """Return the buffered message with ``message_id`` if present."""
        if message_id not in self._ids:
            return None
        for message in self._messages:
            if message.id == message_id:
                return message
        return None

    def snapshot(self) -> list[Message]:
        """Return a copy of the buffer, oldest first."""
        return list(self._messages)

    def clear(self) -> None:
        self._messages.clear()
        self._ids.clear()

    def __len__(self) -> int:
        return len(self._messages)
