"""
WebSocket connection manager for the live-update channel.

Binds each accepted WebSocket connection to a viewer of the broadcast
hub and forwards every published reading to the remote peer as a
``newLocation`` message.
"""

import asyncio
import json
import logging
from datetime import datetime, timezone
from typing import Any, Dict

from fastapi import WebSocket
from starlette.websockets import WebSocketState

from broadcast.hub import BroadcastHub, ViewerHandle
from models.reading import StoredReading, format_instant


logger = logging.getLogger(__name__)


NEW_LOCATION_EVENT = "newLocation"


def _now() -> str:
    return format_instant(datetime.now(timezone.utc))


def new_location_message(reading: StoredReading) -> Dict[str, Any]:
    """Build the message pushed to viewers for one stored reading."""
    return {"type": NEW_LOCATION_EVENT, "data": reading.to_record()}


class ConnectionManager:
    """
    Manager for live-update WebSocket connections.

    Connection lifecycle (accept, subscribe, unsubscribe) is handled here;
    fan-out, ordering and failure isolation are the hub's job. Every frame
    sent on a socket goes through that socket's send lock, so a pong never
    interleaves with a hub delivery.

    Attributes:
        hub: The broadcast hub viewers are registered with
    """

    def __init__(self, hub: BroadcastHub):
        self.hub = hub
        self._send_locks: Dict[str, asyncio.Lock] = {}

    async def connect(self, websocket: WebSocket) -> ViewerHandle:
        """
        Accept a WebSocket connection and register it as a viewer.

        The connection confirmation is sent before the viewer is
        subscribed, so it is always the first message on the socket. If
        the hub drops the viewer, the socket is closed with code 1013 so
        the client reconnects and backfills from the recent endpoint.

        Args:
            websocket: The WebSocket connection to accept

        Returns:
            The viewer handle to pass to ``disconnect``
        """
        await websocket.accept()
        await websocket.send_json({
            "type": "connection",
            "status": "connected",
            "message": "Connected to live location updates",
            "timestamp": _now(),
        })

        send_lock = asyncio.Lock()

        async def send(reading: StoredReading) -> None:
            async with send_lock:
                await websocket.send_json(new_location_message(reading))

        async def close_dropped() -> None:
            async with send_lock:
                await websocket.close(code=1013, reason="Viewer fell behind")

        handle = await self.hub.subscribe(send, on_drop=close_dropped)
        self._send_locks[handle.id] = send_lock

        logger.info(
            f"WebSocket viewer connected. Total viewers: {self.get_connection_count()}",
            extra={"extra_data": {
                "viewer_id": handle.id,
                "client_host": websocket.client.host if websocket.client else "unknown",
            }}
        )
        return handle

    async def disconnect(self, handle: ViewerHandle) -> None:
        """
        Deregister a viewer whose connection has closed.

        Args:
            handle: The handle returned by ``connect``
        """
        await self.hub.unsubscribe(handle)
        self._send_locks.pop(handle.id, None)

        logger.info(
            f"WebSocket viewer disconnected. Total viewers: {self.get_connection_count()}",
            extra={"extra_data": {"viewer_id": handle.id}}
        )

    async def handle_client_message(
        self, handle: ViewerHandle, websocket: WebSocket, data: str
    ) -> None:
        """
        React to a text frame sent by a viewer.

        Viewers only ever send keep-alive pings; anything else is logged
        and ignored.
        """
        try:
            message = json.loads(data)
        except json.JSONDecodeError:
            logger.debug(f"Received non-JSON WebSocket message: {data[:100]}")
            return

        message_type = message.get("type", "unknown") if isinstance(message, dict) else "unknown"
        if message_type == "ping":
            send_lock = self._send_locks.get(handle.id)
            if send_lock is None:
                return
            async with send_lock:
                # The hub may have closed the socket after dropping this viewer
                if websocket.application_state != WebSocketState.CONNECTED:
                    return
                await websocket.send_json({"type": "pong", "timestamp": _now()})
        else:
            logger.debug(
                f"Received unknown WebSocket message type: {message_type}",
                extra={"extra_data": {"message": message}}
            )

    def get_connection_count(self) -> int:
        """Number of currently subscribed viewers."""
        return self.hub.viewer_count
