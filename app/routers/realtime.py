import json
import logging
from typing import Optional
from fastapi import APIRouter, WebSocket, WebSocketDisconnect
from fastapi.concurrency import run_in_threadpool
from app.database import SessionLocal
from app.auth.auth_service import user_id_from_token
from app.crud import notification as notification_crud
from app.schemas import notification as notification_schemas

logger = logging.getLogger(__name__)

router = APIRouter(tags=["realtime"])

def _unread_count(user_id: str) -> int:
    # Session is scoped to this call, not to the socket
    db = SessionLocal()
    try:
        return notification_crud.get_unread_count(db, user_id)
    finally:
        db.close()

@router.websocket("/ws/notifications")
async def notifications_socket(websocket: WebSocket, token: Optional[str] = None):
    user_id = user_id_from_token(token)
    if not user_id:
        await websocket.close(code=4001)
        return

    hub = websocket.app.state.hub
    conn = await hub.connect(user_id, websocket)
    try:
        count = await run_in_threadpool(_unread_count, user_id)
        await websocket.send_json({"event": notification_schemas.EVENT_UNREAD_COUNT, "data": {"count": count}})

        while True:
            raw = await websocket.receive_text()
            try:
                message = json.loads(raw)
            except json.JSONDecodeError:
                continue
            if isinstance(message, dict) and message.get("event") == "ping":
                await websocket.send_json({"event": "pong", "data": {}})
    except WebSocketDisconnect:
        pass
    finally:
        hub.disconnect(user_id, conn)
