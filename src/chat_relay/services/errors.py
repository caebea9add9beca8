"""Relay-level exceptions mapped to HTTP errors at the API boundary."""


class RelayError(RuntimeError):
    """Base exception for relay failures surfaced to callers."""


class MessageValidationError(RelayError, ValueError):
    """Raised when an inbound message lacks required fields."""


class ChannelNotFoundError(RelayError):
    """Raised when a user key has no channel binding."""


class ConfirmationMismatchError(RelayError, ValueError):
    """Raised when a deletion confirmation does not match the display name."""
