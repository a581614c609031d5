"""
WebSocket Manager for real-time claim updates.

Mirrors committed claim snapshots and queued notifications to UI observers.
"""
import asyncio
from typing import Dict, Set, Any, List, Optional
from datetime import datetime
from fastapi import WebSocket
from roadside.core.logging import get_logger

logger = get_logger(__name__)


class ConnectionManager:
    """
    Manages WebSocket connections for real-time claim updates.

    Supports multiple channels:
    - 'claims': Updates for every claim
    - 'claim:{claim_id}': Updates for a specific claim
    """

    def __init__(self):
        self.active_connections: Dict[str, Set[WebSocket]] = {}
        self.connection_info: Dict[WebSocket, Dict[str, Any]] = {}
        self._lock = asyncio.Lock()

    async def connect(self, websocket: WebSocket, channel: str = "claims"):
        """Accept and register a WebSocket connection to a channel."""
        await websocket.accept()

        async with self._lock:
            if channel not in self.active_connections:
                self.active_connections[channel] = set()
            self.active_connections[channel].add(websocket)

            self.connection_info[websocket] = {
                "channel": channel,
                "connected_at": datetime.utcnow().isoformat(),
            }

        logger.info(f"WebSocket connected to channel '{channel}'")

        await websocket.send_json({
            "type": "connected",
            "channel": channel,
            "timestamp": datetime.utcnow().isoformat(),
        })

    async def disconnect(self, websocket: WebSocket):
        """Remove a WebSocket connection."""
        async with self._lock:
            info = self.connection_info.pop(websocket, {})
            channel = info.get("channel", "claims")

            if channel in self.active_connections:
                self.active_connections[channel].discard(websocket)
                if not self.active_connections[channel]:
                    del self.active_connections[channel]

        logger.info(f"WebSocket disconnected from channel '{channel}'")

    async def broadcast_to_channel(self, channel: str, message: Dict[str, Any]):
        """Broadcast a message to all connections in a channel."""
        if channel not in self.active_connections:
            return

        if "timestamp" not in message:
            message["timestamp"] = datetime.utcnow().isoformat()

        disconnected = set()

        for connection in self.active_connections[channel].copy():
            try:
                await connection.send_json(message)
            except Exception as e:
                logger.warning(f"Failed to send to WebSocket: {e}")
                disconnected.add(connection)

        for conn in disconnected:
            await self.disconnect(conn)

    async def broadcast_claim_update(self, claim_id: str, snapshot: Dict[str, Any]):
        """Broadcast a committed claim snapshot."""
        message = {
            "type": "claim_update",
            "claim_id": claim_id,
            "data": snapshot,
        }

        await self.broadcast_to_channel("claims", message)
        await self.broadcast_to_channel(f"claim:{claim_id}", dict(message))

    async def broadcast_claim_created(self, snapshot: Dict[str, Any]):
        """Broadcast when a new claim is opened."""
        await self.broadcast_to_channel("claims", {
            "type": "claim_created",
            "claim_id": snapshot.get("id"),
            "data": snapshot,
        })

    async def broadcast_notifications(self, claim_id: str, notifications: List[Dict[str, Any]]):
        """Broadcast notifications queued during a turn."""
        if not notifications:
            return
        message = {
            "type": "notifications_queued",
            "claim_id": claim_id,
            "data": notifications,
        }
        await self.broadcast_to_channel("claims", message)
        await self.broadcast_to_channel(f"claim:{claim_id}", dict(message))

    def get_channel_count(self, channel: str) -> int:
        """Get the number of connections in a channel."""
        return len(self.active_connections.get(channel, set()))

    def get_all_channel_counts(self) -> Dict[str, int]:
        """Get connection counts for all channels."""
        return {
            channel: len(connections)
            for channel, connections in self.active_connections.items()
        }


# Global instance
_manager: Optional[ConnectionManager] = None


def get_websocket_manager() -> ConnectionManager:
    """Get or create the global WebSocket manager."""
    global _manager
    if _manager is None:
        _manager = ConnectionManager()
    return _manager


async def publish_claim_state(
    snapshot: Dict[str, Any],
    notifications: Optional[List[Dict[str, Any]]] = None,
    created: bool = False,
) -> None:
    """
    Publish committed claim state to observers.

    Broadcast failures are logged and never propagate to the caller.
    """
    manager = get_websocket_manager()
    claim_id = snapshot.get("id")
    try:
        if created:
            await manager.broadcast_claim_created(snapshot)
        else:
            await manager.broadcast_claim_update(claim_id, snapshot)
        await manager.broadcast_notifications(claim_id, notifications or [])
    except Exception as e:
        logger.warning(f"Failed to publish state for claim {claim_id}: {e}")
