# tests/test_signature.py
from chat_relay.core.security import compute_slack_signature, verify_slack_signature

SECRET = "8f742231b10e8888abcd99yyyzzz85a5"
BODY = b"token=xyzz0WbapA4vBCDEFasx0q6G&team_id=T1DC2JH3J"
NOW = 1_700_000_000


def test_valid_signature_is_accepted() -> None:
    signature = compute_slack_signature(SECRET, str(NOW), BODY)
    assert signature.startswith("v0=")
    assert verify_slack_signature(SECRET, str(NOW), BODY, signature, now=NOW + 10)


def test_stale_timestamp_is_rejected_even_with_valid_signature() -> None:
    timestamp = str(NOW - 301)
    signature = compute_slack_signature(SECRET, timestamp, BODY)
    assert verify_slack_signature(SECRET, timestamp, BODY, signature, now=NOW) is False


def test_tampered_body_is_rejected() -> None:
    signature = compute_slack_signature(SECRET, str(NOW), BODY)
    assert verify_slack_signature(SECRET, str(NOW), BODY + b"x", signature, now=NOW) is False


def test_verify_signature_rejects_bad_inputs() -> None:
    """Missing headers and non-numeric timestamps never verify."""
    assert verify_slack_signature(SECRET, None, BODY, "v0=abc", now=NOW) is False
    assert verify_slack_signature(SECRET, str(NOW), BODY, None, now=NOW) is False
    assert verify_slack_signature(SECRET, "yesterday", BODY, "v0=abc", now=NOW) is False
    assert verify_slack_signature("", str(NOW), BODY, "v0=abc", now=NOW) is False
