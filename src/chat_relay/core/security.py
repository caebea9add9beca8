"""Slack request signature verification."""
from __future__ import annotations

import hashlib
import hmac
import time

SIGNATURE_VERSION = "v0"
DEFAULT_MAX_AGE_SECONDS = 300


def compute_slack_signature(secret: str, timestamp: str, body: bytes) -> str:
    """Return the ``v0=<hex>`` signature Slack would send for ``body``."""
    basestring = f"{SIGNATURE_VERSION}:{timestamp}:".encode() + body
    digest = hmac.new(secret.encode("utf-8"), basestring, hashlib.sha256).hexdigest()
    return f"{SIGNATURE_VERSION}={digest}"


def verify_slack_signature(
    secret: str,
    timestamp: str | None,
    body: bytes,
    signature: str | None,
    *,
    now: float | None = None,
    max_age_seconds: int = DEFAULT_MAX_AGE_SECONDS,
) -> bool:
    """Verify a Slack request signature.

    Args:
        secret: Shared signing secret.
        timestamp: Value of the ``X-Slack-Request-Timestamp`` header.
        body: Raw request body exactly as received.
        signature: Value of the ``X-Slack-Signature`` header.
        now: Current unix time; defaults to ``time.time()``.
        max_age_seconds: Maximum allowed skew between ``timestamp`` and ``now``.

    Returns:
        True if the timestamp is fresh and the signature matches; False otherwise.
        A stale timestamp is rejected even when the signature is valid.
    """
    if not secret or not timestamp or not signature:
        return False

    try:
        sent_at = int(timestamp)
    except ValueError:
        return False

    current = time.time() if now is None else now
    if abs(current - sent_at) > max_age_seconds:
        return False

    expected = compute_slack_signature(secret, timestamp, body)
    return hmac.compare_digest(expected.encode("utf-8"), signature.encode("utf-8"))
