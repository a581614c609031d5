"""
WebSocket routes for real-time claim updates.
"""
from fastapi import APIRouter, WebSocket, WebSocketDisconnect, Query

from roadside.services.websocket_manager import get_websocket_manager
from roadside.core.logging import get_logger

logger = get_logger(__name__)

router = APIRouter()


def _valid_channel(channel: str) -> bool:
    return channel == "claims" or (channel.startswith("claim:") and len(channel) > len("claim:"))


@router.websocket("/claims")
async def websocket_claims(
    websocket: WebSocket,
    channel: str = Query(default="claims"),
):
    """
    WebSocket endpoint for real-time claim updates.

    Query params:
    - channel: Channel to subscribe to (claims, claim:{claim_id})

    Message types received:
    - connected: Connection confirmation
    - claim_created: New claim opened
    - claim_update: Committed claim snapshot
    - notifications_queued: Notifications created during a turn
    """
    if not _valid_channel(channel):
        await websocket.close(code=4004, reason="Unknown channel")
        return

    manager = get_websocket_manager()

    try:
        await manager.connect(websocket, channel)

        while True:
            data = await websocket.receive_json()
            if data.get("type") == "ping":
                await websocket.send_json({"type": "pong"})

    except WebSocketDisconnect:
        await manager.disconnect(websocket)
    except Exception as e:
        logger.error(f"WebSocket error: {e}")
        await manager.disconnect(websocket)


@router.get("/claims/status")
async def get_websocket_status():
    """Current WebSocket subscriber counts."""
    manager = get_websocket_manager()
    return {"channels": manager.get_all_channel_counts()}
