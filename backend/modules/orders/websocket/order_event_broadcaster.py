# backend/modules/orders/websocket/order_event_broadcaster.py

"""
Fan-out of order events to connected station displays.

Every committed order mutation is announced as a JSON ``{type, data}``
envelope to every connected client; displays filter by station themselves.
Delivery is best-effort: nothing is persisted or replayed, and a client that
reconnects is expected to refetch its working set.
"""

from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any, Dict, Optional, Union
import asyncio
import json
import logging

from fastapi import WebSocket
from fastapi.encoders import jsonable_encoder
from pydantic import BaseModel

from ..enums.order_enums import OrderEventType

logger = logging.getLogger(__name__)

GREETING = {"type": "connected", "message": "Connected to RestaurantPOS"}


@dataclass
class ConnectionInfo:
    user_id: Optional[int] = None
    role: Optional[str] = None
    connected_at: datetime = field(default_factory=lambda: datetime.now(timezone.utc))


class OrderEventBroadcaster:
    """Registry of live order-feed connections, one per application"""

    def __init__(self, send_timeout: float = 2.0):
        self.send_timeout = send_timeout
        self.active_connections: Dict[WebSocket, ConnectionInfo] = {}

    async def connect(
        self,
        websocket: WebSocket,
        user_id: Optional[int] = None,
        role: Optional[str] = None,
    ):
        """Accept a connection, register it and greet it"""
        await websocket.accept()
        self.active_connections[websocket] = ConnectionInfo(user_id=user_id, role=role)
        logger.info(
            f"Order feed client connected (user={user_id}). "
            f"Total connections: {len(self.active_connections)}"
        )
        if not await self._send(websocket, json.dumps(GREETING)):
            self.disconnect(websocket)

    def disconnect(self, websocket: WebSocket):
        if self.active_connections.pop(websocket, None) is not None:
            logger.info(
                f"Order feed client disconnected. "
                f"Total connections: {len(self.active_connections)}"
            )

    def handle_incoming(self, websocket: WebSocket, message: Union[str, bytes, None]):
        """The feed is server-to-client only; inbound messages are just logged"""
        info = self.active_connections.get(websocket)
        user_id = info.user_id if info else None
        logger.debug(f"Received from order feed client (user={user_id}): {message}")

    async def _send(self, websocket: WebSocket, message_text: str) -> bool:
        try:
            await asyncio.wait_for(
                websocket.send_text(message_text), timeout=self.send_timeout
            )
            return True
        except asyncio.TimeoutError:
            logger.warning("Order feed client timed out; dropping connection")
        except Exception as e:
            logger.error(f"Error sending to order feed client: {str(e)}")
        return False

    async def broadcast(
        self,
        event_type: Union[OrderEventType, str],
        payload: Any,
    ) -> int:
        """
        Send ``{type, data}`` to every connected client.

        Each client is sent to concurrently with its own timeout so one
        stalled display cannot hold up the others. Never raises; returns the
        number of clients the event reached.
        """
        try:
            type_value = (
                event_type.value if isinstance(event_type, OrderEventType)
                else str(event_type)
            )
            if isinstance(payload, BaseModel):
                data = payload.model_dump(mode="json", by_alias=True)
            else:
                data = jsonable_encoder(payload)
            message_text = json.dumps({"type": type_value, "data": data})

            connections = list(self.active_connections)
            if not connections:
                logger.debug(f"No order feed clients for {type_value}")
                return 0

            results = await asyncio.gather(
                *(self._send(ws, message_text) for ws in connections),
                return_exceptions=True,
            )

            delivered = 0
            for websocket, result in zip(connections, results):
                if result is True:
                    delivered += 1
                else:
                    self.disconnect(websocket)

            logger.info(
                f"Broadcasted {type_value} to {delivered}/{len(connections)} clients"
            )
            return delivered
        except Exception:
            logger.exception(f"Failed to broadcast {event_type}")
            return 0

    def get_connection_count(self) -> int:
        return len(self.active_connections)

    async def close_all_connections(self):
        """Close every connection, used at shutdown"""
        connections = list(self.active_connections)
        self.active_connections.clear()
        if connections:
            await asyncio.gather(
                *(ws.close() for ws in connections), return_exceptions=True
            )
        logger.info("All order feed connections closed")
