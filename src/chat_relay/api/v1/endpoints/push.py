# src/chat_relay/api/v1/endpoints/push.py
"""WebSocket push transport and its status endpoint."""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import Any

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from chat_relay.services.hub import ERROR

from ..dependencies import RelayDep

logger = logging.getLogger(__name__)

router = APIRouter(tags=["push"])


async def push_socket(websocket: WebSocket, relay: RelayDep) -> None:
    """Serve one push client until it disconnects.

    Mounted by the application factory at the configured push path.
    """
    session = await relay.hub.connect(websocket)
    try:
        await relay.lifecycle.on_connect(session)
        while True:
            try:
                raw = await websocket.receive_json()
            except ValueError:
                # Undecodable text frame; handle_frame answers with an error event
                raw = None
            try:
                await relay.lifecycle.handle_frame(session, raw)
            except Exception:
                logger.exception("Failed to handle frame from %s", session.session_id)
                await relay.hub.send(session, ERROR, {"message": "Could not process frame"})
    except WebSocketDisconnect:
        logger.debug("Push client %s went away", session.session_id)
    finally:
        await relay.lifecycle.on_disconnect(session)


@router.get("/socket-status")
async def socket_status(relay: RelayDep) -> dict[str, Any]:
    """Report whether the push hub is registered and how many clients it has."""
    return {
        "status": "initialized" if relay.started else "not_initialized",
        "socketServerExists": relay.started,
        "connectionCount": relay.hub.connection_count,
        "timestamp": datetime.now(UTC).isoformat(),
    }
