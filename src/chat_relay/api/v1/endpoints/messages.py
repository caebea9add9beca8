# src/chat_relay/api/v1/endpoints/messages.py
"""HTTP fallback for the chat: read Slack traffic and post local messages."""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, Body, HTTPException, Query, status

from chat_relay.schemas.message import Ingress
from chat_relay.services.errors import MessageValidationError
from chat_relay.services.relevance import filter_relevant, sort_by_timestamp, viewer_for

from ..dependencies import RelayDep

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/messages", tags=["messages"])


@router.get("")
async def list_messages(
    relay: RelayDep,
    user: Annotated[str | None, Query()] = None,
    contact: Annotated[str | None, Query()] = None,
) -> dict[str, Any]:
    """Return buffered Slack messages relevant to ``user``, oldest first.

    Without ``user`` every buffered Slack message is returned.
    """
    messages = relay.state.slack_messages.snapshot()
    if user:
        viewer = viewer_for(relay.state.channels, user, contact)
        messages = filter_relevant(messages, viewer)

    return {
        "messages": [message.to_wire() for message in sort_by_timestamp(messages)],
        "status": "success",
        "slackEnabled": relay.client.enabled,
    }


@router.post("")
async def post_message(
    relay: RelayDep,
    payload: Annotated[dict[str, Any], Body()],
) -> dict[str, Any]:
    """Accept a chat message over HTTP and relay it to Slack.

    Unlike the push path the Slack relay is awaited so the caller learns the
    outcome in ``slackStatus``.
    """
    try:
        result = await relay.dispatcher.dispatch_local(payload, Ingress.HTTP)
    except MessageValidationError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc

    slack_status = None
    if not result.duplicate:
        outcome = await relay.dispatcher.relay_to_slack(result.message)
        slack_status = outcome.model_dump(by_alias=True)

    return {
        "success": True,
        "message": result.message.to_wire(),
        "duplicate": result.duplicate,
        "slackStatus": slack_status,
    }
