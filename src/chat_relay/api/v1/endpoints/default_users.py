# src/chat_relay/api/v1/endpoints/default_users.py
"""Slack users invited into every newly provisioned channel."""

from typing import Any

from fastapi import APIRouter

from chat_relay.schemas.message import DefaultUsersUpdate

from ..dependencies import RelayDep

router = APIRouter(prefix="/default-users", tags=["default-users"])


@router.get("")
async def get_default_users(relay: RelayDep) -> dict[str, Any]:
    return {"success": True, "defaultUsers": list(relay.state.default_users)}


@router.post("")
async def set_default_users(update: DefaultUsersUpdate, relay: RelayDep) -> dict[str, Any]:
    """Replace the list. Channels that already exist are not touched."""
    users = relay.state.set_default_users(update.user_ids)
    return {
        "success": True,
        "defaultUsers": users,
        "message": "Default users updated successfully",
    }
