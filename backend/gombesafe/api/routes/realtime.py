"""Real-time WebSocket endpoint for incident updates."""

import asyncio
import logging

from fastapi import APIRouter, WebSocket, WebSocketDisconnect

from gombesafe.services.realtime.websocket_manager import WebSocketManager

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/realtime", tags=["Realtime"])


@router.websocket("/incidents")
async def websocket_incidents(websocket: WebSocket):
    """
    WebSocket endpoint for live incident updates.

    Connected clients receive ``new_incident`` for every fresh report,
    ``incident_status`` for every status change, and periodic heartbeats.
    """
    settings = websocket.app.state.settings
    if not settings.realtime_enabled:
        await websocket.close(code=1003, reason="Real-time updates disabled")
        return

    websocket_manager: WebSocketManager = websocket.app.state.websocket_manager
    client_id = await websocket_manager.connect(websocket)

    heartbeat_task = asyncio.create_task(
        _heartbeat_loop(websocket_manager, client_id, settings.websocket_heartbeat_interval)
    )
    try:
        while True:
            data = await websocket.receive_text()
            logger.debug(f"Received message from client {client_id}: {data}")
    except WebSocketDisconnect:
        logger.info(f"Client {client_id} disconnected")
    except Exception as e:
        logger.error(f"WebSocket error for client {client_id}: {str(e)}", exc_info=True)
    finally:
        heartbeat_task.cancel()
        try:
            await heartbeat_task
        except asyncio.CancelledError:
            pass
        await websocket_manager.disconnect(client_id)


async def _heartbeat_loop(websocket_manager: WebSocketManager, client_id: str, interval: int):
    """
    Send periodic heartbeat messages to a client.

    Args:
        websocket_manager: WebSocket manager instance
        client_id: Client ID
        interval: Heartbeat interval in seconds
    """
    try:
        while True:
            await asyncio.sleep(interval)
            await websocket_manager.send_heartbeat(client_id)
    except asyncio.CancelledError:
        logger.debug(f"Heartbeat loop cancelled for client {client_id}")
        raise
