# src/chat_relay/api/v1/endpoints/user_channels.py
"""Look up and delete the Slack channel bound to a chat user."""

from __future__ import annotations

import logging
from typing import Annotated, Any

from fastapi import APIRouter, HTTPException, Query, status

from chat_relay.services.errors import ChannelNotFoundError, ConfirmationMismatchError
from chat_relay.services.slack import SlackDisabledError, SlackError

from ..dependencies import RelayDep, user_key_from

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/user-channel", tags=["user-channels"])

UsernameQuery = Annotated[str, Query(min_length=1)]
EmailQuery = Annotated[str, Query(min_length=1)]


@router.get("")
async def get_user_channel(
    relay: RelayDep,
    username: UsernameQuery,
    email: EmailQuery,
) -> dict[str, Any]:
    """Return the channel bound to the user, with its Slack name when available."""
    user_key = user_key_from(username, email)
    channel_id = relay.state.channels.lookup(user_key)
    if channel_id is None:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="Channel not found for user, it will be created on first message",
        )

    body: dict[str, Any] = {
        "success": True,
        "channelId": channel_id,
        "userKey": str(user_key),
    }
    if not relay.client.enabled:
        body["message"] = "Channel found for user (Slack integration disabled)"
        return body

    try:
        channel = await relay.client.channel_info(channel_id)
    except SlackError as exc:
        logger.warning("Could not fetch info for channel %s: %s", channel_id, exc)
        body["message"] = "Channel ID exists but could not get details"
        return body

    body["channelName"] = channel.name
    body["isArchived"] = channel.is_archived
    body["message"] = "Channel found for user"
    return body


@router.delete("")
async def delete_user_channel(
    relay: RelayDep,
    username: UsernameQuery,
    email: EmailQuery,
    confirm: bool = False,
    confirmation: str | None = None,
) -> dict[str, Any]:
    """Archive the user's channel and forget the binding.

    ``confirm=true`` is mandatory. ``confirmation`` defaults to ``username``
    and must match it.
    """
    if not confirm:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Confirmation required",
        )

    user_key = user_key_from(username, email)
    token = confirmation if confirmation is not None else user_key.name
    try:
        channel_id = await relay.provisioner.delete_channel(user_key, token)
    except ConfirmationMismatchError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail=str(exc),
        ) from exc
    except ChannelNotFoundError as exc:
        raise HTTPException(
            status_code=status.HTTP_404_NOT_FOUND,
            detail="No channel found for this user",
        ) from exc
    except SlackDisabledError as exc:
        raise HTTPException(
            status_code=status.HTTP_503_SERVICE_UNAVAILABLE,
            detail="Slack integration is disabled",
        ) from exc
    except SlackError as exc:
        logger.error("Archiving channel for %s failed: %s", user_key, exc)
        raise HTTPException(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            detail="Failed to archive channel",
        ) from exc

    return {
        "success": True,
        "channelId": channel_id,
        "message": f"Channel for user {user_key.name} has been archived",
    }
