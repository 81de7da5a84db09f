import asyncio
import logging
from fastapi import WebSocket
from app.exceptions import TransportError
from app.services.connection_registry import ConnectionRegistry

logger = logging.getLogger(__name__)


def room_name(user_id: str) -> str:
    return f"user_{user_id}"


class Connection:
    """A live socket and the event loop that owns it."""

    def __init__(self, websocket: WebSocket, loop: asyncio.AbstractEventLoop):
        self.websocket = websocket
        self.loop = loop


class WebSocketHub:
    """
    Per-user rooms over WebSockets. publish() is safe to call from sync
    endpoints running in the threadpool: sends are scheduled on the socket's
    event loop and publish returns without waiting for them.
    """

    def __init__(self, registry: ConnectionRegistry):
        self.registry = registry

    async def connect(self, user_id: str, websocket: WebSocket) -> Connection:
        await websocket.accept()
        conn = Connection(websocket, asyncio.get_running_loop())
        self.registry.register(user_id, conn)
        return conn

    def disconnect(self, user_id: str, conn: Connection) -> None:
        self.registry.unregister(user_id, conn)

    def publish(self, user_id: str, event: str, data: dict) -> int:
        """Queues one frame for every connection in the user's room. Returns the number queued."""
        frame = {"event": event, "data": data}
        queued = 0
        failed = 0
        for conn in self.registry.connections(user_id):
            send = self._send(user_id, conn, frame)
            try:
                asyncio.run_coroutine_threadsafe(send, conn.loop)
                queued += 1
            except RuntimeError:
                # Loop already closed, the socket is gone
                send.close()
                self.registry.unregister(user_id, conn)
                failed += 1

        if failed and not queued:
            raise TransportError(f"Could not deliver '{event}' to {room_name(user_id)}")
        return queued

    async def _send(self, user_id: str, conn: Connection, frame: dict) -> None:
        try:
            await conn.websocket.send_json(frame)
        except Exception as e:
            logger.warning(f"Dropping connection in {room_name(user_id)} after send failure: {e}")
            self.registry.unregister(user_id, conn)
