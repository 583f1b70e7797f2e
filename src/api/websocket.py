"""WebSocket endpoint for real-time list synchronization.

One socket per client session. The token is checked once, at handshake; after that the
client joins and leaves list rooms with ``joinList``/``leaveList`` messages. Every
socket is always in its user's private room.
"""

import asyncio
import logging
from typing import Annotated

import pydantic
from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect
from sqlalchemy.orm import sessionmaker
from starlette.websockets import WebSocketState

from src.config import get_settings
from src.database import get_session_factory
from src.exceptions import AuthenticationError
from src.schemas.events import (
    PING_FRAME,
    PONG_FRAME,
    JoinList,
    LeaveList,
    Ping,
    client_message_adapter,
)
from src.services.access import can_join_list
from src.services.auth import verify_token
from src.services.realtime import Connection, get_hub, list_room

logger = logging.getLogger(__name__)
settings = get_settings()
router = APIRouter(prefix="/api/v1", tags=["websocket"])


def _extract_token(websocket: WebSocket, token: str | None) -> str | None:
    """Token from ``?token=`` or, failing that, an ``Authorization: Bearer`` header."""
    if token:
        return token
    header = websocket.headers.get("authorization", "")
    scheme, _, value = header.partition(" ")
    if scheme.lower() == "bearer" and value:
        return value
    return None


def handle_client_message(sessions: sessionmaker, connection: Connection, raw: str) -> None:
    """Apply one client message to the connection's room membership."""
    hub = get_hub()
    try:
        message = client_message_adapter.validate_json(raw)
    except pydantic.ValidationError:
        logger.warning(f"Ignoring malformed message from conn={connection.id}: {raw[:200]!r}")
        return

    if isinstance(message, JoinList):
        room = list_room(message.list_id)
        with sessions() as db:
            allowed = can_join_list(db, message.list_id, connection.user_id)
        if allowed:
            hub.join(connection, room)
            logger.info(f"User {connection.user_id} joined {room}")
        else:
            # Denied silently: the client gets nothing for this room
            logger.warning(f"Join denied: user={connection.user_id}, room={room}")
    elif isinstance(message, LeaveList):
        hub.leave(connection, list_room(message.list_id))
    elif isinstance(message, Ping):
        # Goes through the outbox, so it arrives after everything queued before it
        connection.send(PONG_FRAME)


@router.websocket("/ws")
async def websocket_sync(
    websocket: WebSocket,
    sessions: Annotated[sessionmaker, Depends(get_session_factory)],
    token: str | None = Query(default=None),
) -> None:
    """Authenticated realtime channel.

    Authentication via token query parameter (browsers can't set WebSocket headers).
    Refused sockets are closed right after accept with 4001 (log in again) or 4002
    (token expired) and the failure reason as close reason.
    """
    try:
        identity = verify_token(_extract_token(websocket, token))
    except AuthenticationError as e:
        # Accept first: a close before accept reaches browsers as a bare HTTP 403
        await websocket.accept()
        await websocket.close(code=e.reason.close_code, reason=e.reason.value)
        logger.info(f"WebSocket refused: {e.reason.value}")
        return

    await websocket.accept()
    hub = get_hub()
    connection = hub.register(identity)

    async def handle_outbox() -> None:
        """Forward queued frames to the socket."""
        while True:
            payload = await connection.outbox.get()
            await websocket.send_text(payload)

    async def handle_ping() -> None:
        """Send periodic pings to keep connection alive."""
        while True:
            await asyncio.sleep(settings.ws_ping_interval_seconds)
            connection.send(PING_FRAME)

    async def handle_client() -> None:
        """Handle incoming messages from client."""
        while True:
            raw = await websocket.receive_text()
            handle_client_message(sessions, connection, raw)

    tasks = [
        asyncio.create_task(handle_outbox()),
        asyncio.create_task(handle_ping()),
        asyncio.create_task(handle_client()),
    ]
    try:
        done, pending = await asyncio.wait(tasks, return_when=asyncio.FIRST_COMPLETED)
        for task in done:
            exc = task.exception()
            if exc is not None and not isinstance(exc, WebSocketDisconnect):
                logger.error(f"WebSocket error: conn={connection.id}: {exc}", exc_info=exc)
    finally:
        for task in tasks:
            task.cancel()
        await asyncio.gather(*tasks, return_exceptions=True)
        hub.unregister(connection)
        if websocket.client_state == WebSocketState.CONNECTED:
            await websocket.close()
        logger.info(f"WebSocket disconnected: user={identity.user_id}, conn={connection.id}")
