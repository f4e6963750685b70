"""WebSocket connection manager for real-time incident updates."""

import asyncio
import logging
import uuid
from datetime import datetime, timezone
from typing import Dict, Optional

from fastapi import WebSocket

logger = logging.getLogger(__name__)

NEW_INCIDENT = "new_incident"
INCIDENT_STATUS = "incident_status"


def _timestamp() -> str:
    return datetime.now(timezone.utc).isoformat()


class WebSocketManager:
    """Tracks dashboard connections and fans incident changes out to them."""

    def __init__(self):
        self.active_connections: Dict[str, WebSocket] = {}
        self.connection_metadata: Dict[str, dict] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, client_id: Optional[str] = None) -> str:
        """
        Accept a new WebSocket connection.

        Args:
            websocket: WebSocket connection
            client_id: Optional client ID (generated if not provided)

        Returns:
            Client ID
        """
        await websocket.accept()

        if client_id is None:
            client_id = str(uuid.uuid4())

        async with self._lock:
            self.active_connections[client_id] = websocket
            self.connection_metadata[client_id] = {
                "connected_at": _timestamp(),
                "last_heartbeat": _timestamp(),
            }

        logger.info(f"WebSocket client connected: {client_id}")
        return client_id

    async def disconnect(self, client_id: str):
        async with self._lock:
            self.active_connections.pop(client_id, None)
            self.connection_metadata.pop(client_id, None)

        logger.info(f"WebSocket client disconnected: {client_id}")

    async def send_personal_message(self, message: dict, client_id: str):
        websocket = self.active_connections.get(client_id)
        if websocket is None:
            logger.warning(f"Client {client_id} not found in active connections")
            return

        try:
            await websocket.send_json(message)
        except Exception as e:
            logger.error(f"Error sending message to client {client_id}: {str(e)}")
            await self.disconnect(client_id)

    async def broadcast(self, message: dict, exclude_client: Optional[str] = None):
        """
        Broadcast a message to all connected clients.

        Clients whose socket fails are dropped after the broadcast.
        """
        disconnected_clients = []

        async with self._lock:
            clients_to_send = [
                (client_id, ws)
                for client_id, ws in self.active_connections.items()
                if client_id != exclude_client
            ]

        for client_id, websocket in clients_to_send:
            try:
                await websocket.send_json(message)
            except Exception as e:
                logger.error(f"Error broadcasting to client {client_id}: {str(e)}")
                disconnected_clients.append(client_id)

        for client_id in disconnected_clients:
            await self.disconnect(client_id)

    async def broadcast_incident(self, incident: dict):
        """Announce a freshly created incident (never a suppressed duplicate)."""
        await self.broadcast({"type": NEW_INCIDENT, "data": incident, "timestamp": _timestamp()})
        logger.info(
            f"Broadcasted incident {incident.get('id')} to {self.get_connection_count()} clients"
        )

    async def broadcast_status(self, incident: dict):
        await self.broadcast(
            {"type": INCIDENT_STATUS, "data": incident, "timestamp": _timestamp()}
        )

    async def send_heartbeat(self, client_id: str):
        await self.send_personal_message(
            {"type": "heartbeat", "timestamp": _timestamp()}, client_id
        )

        async with self._lock:
            if client_id in self.connection_metadata:
                self.connection_metadata[client_id]["last_heartbeat"] = _timestamp()

    def get_connection_count(self) -> int:
        return len(self.active_connections)
