"""Shared API dependencies."""

from typing import Annotated

from fastapi import Depends, HTTPException, status
from starlette.requests import HTTPConnection

from chat_relay.services.registry import UserKey
from chat_relay.services.relay import Relay


def get_relay(connection: HTTPConnection) -> Relay:
    """Return the relay owned by the running application.

    Works for both HTTP requests and WebSocket connections.
    """
    return connection.app.state.relay


RelayDep = Annotated[Relay, Depends(get_relay)]


def user_key_from(name: str, contact: str) -> UserKey:
    """Build a ``UserKey`` from query parameters.

    Raises:
        HTTPException: If either component is blank.
    """
    try:
        return UserKey(name.strip(), contact.strip())
    except ValueError as exc:
        raise HTTPException(
            status_code=status.HTTP_400_BAD_REQUEST,
            detail="Username and email are required",
        ) from exc
