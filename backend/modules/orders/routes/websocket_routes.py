"""
Order feed WebSocket endpoint.

Station displays, cashier screens and server tablets subscribe here to every
order event. A token may be passed as ``?token=``; when present it must be
valid, when absent the client joins the feed anonymously.
"""

import logging
from typing import Optional

from fastapi import APIRouter, Depends, Query, WebSocket, WebSocketDisconnect, status
from sqlalchemy.orm import Session

from core.auth import resolve_user_from_token
from core.database import get_db
from core.exceptions import AuthenticationError

logger = logging.getLogger(__name__)

router = APIRouter(tags=["Order Feed"])


@router.websocket("/ws/orders")
async def order_feed(
    websocket: WebSocket,
    token: Optional[str] = Query(None),
    db: Session = Depends(get_db),
):
    broadcaster = getattr(websocket.app.state, "order_broadcaster", None)
    if broadcaster is None:
        logger.error("Order feed requested before the broadcaster was started")
        await websocket.close(code=status.WS_1011_INTERNAL_ERROR)
        return

    user_id = None
    role = None
    if token:
        try:
            user = resolve_user_from_token(db, token)
        except AuthenticationError as e:
            logger.warning(f"Order feed connection rejected: {e.detail}")
            await websocket.close(code=status.WS_1008_POLICY_VIOLATION)
            return
        user_id = user.id
        role = user.role.value

    await broadcaster.connect(websocket, user_id=user_id, role=role)
    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break
            broadcaster.handle_incoming(
                websocket, message.get("text") or message.get("bytes")
            )
    except WebSocketDisconnect:
        pass
    finally:
        broadcaster.disconnect(websocket)
