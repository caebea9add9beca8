# src/chat_relay/api/v1/endpoints/slack_events.py
"""Slack Events API webhook."""

from __future__ import annotations

import json
import logging
from typing import Any

from fastapi import APIRouter, HTTPException, Request, status

from chat_relay.core.security import verify_slack_signature
from chat_relay.schemas.slack import ExternalMessageEvent
from chat_relay.services.relay import Relay

from ..dependencies import RelayDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/slack", tags=["slack"])

CHANNEL_REMOVED_EVENTS = frozenset({"channel_archive", "channel_deleted"})


def _check_signature(relay: Relay, request: Request, body: bytes) -> None:
    secret = relay.settings.slack_signing_secret
    if not secret:
        if relay.settings.debug:
            logger.warning("Accepting unsigned Slack request: no signing secret in debug mode")
            return
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Slack signing secret is not configured",
        )

    if not verify_slack_signature(
        secret,
        request.headers.get("X-Slack-Request-Timestamp"),
        body,
        request.headers.get("X-Slack-Signature"),
        max_age_seconds=relay.settings.slack_signature_max_age_seconds,
    ):
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Slack signature",
        )


@router.post("/events")
async def slack_events(request: Request, relay: RelayDep) -> dict[str, Any]:
    """Receive Events API callbacks.

    The signature is checked against the raw body before anything is parsed.
    """
    body = await request.body()
    _check_signature(relay, request, body)

    try:
        payload = json.loads(body)
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Request body must be JSON",
        ) from exc
    if not isinstance(payload, dict):
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Request body must be a JSON object",
        )

    if payload.get("type") == "url_verification":
        return {"challenge": payload.get("challenge", "")}

    if payload.get("type") != "event_callback":
        logger.debug("Ignoring Slack payload of type %s", payload.get("type"))
        return {"ok": True}

    event = payload.get("event") or {}
    event_type = event.get("type")

    if event_type == "message":
        try:
            external = ExternalMessageEvent.from_slack(event)
        except ValueError as exc:
            logger.warning("Malformed Slack message event: %s", exc)
            return {"ok": True}
        message = await relay.dispatcher.dispatch_external(external)
        return {"ok": True, "relayed": message is not None}

    if event_type in CHANNEL_REMOVED_EVENTS:
        channel_id = event.get("channel")
        if channel_id:
            relay.dispatcher.handle_channel_removed(str(channel_id))
        return {"ok": True}

    logger.debug("Ignoring Slack event type %s", event_type)
    return {"ok": True}
