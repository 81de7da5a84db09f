import threading
import logging
from typing import Dict, List, Set, Any

logger = logging.getLogger(__name__)


class ConnectionRegistry:
    """
    Tracks live connections per user. One user can hold several connections
    (tabs, devices); the user counts as online while any of them is open.

    In-process only. A multi-process deployment swaps this for a registry
    backed by a shared store with the same register/unregister/is_online API.
    """

    def __init__(self):
        self._lock = threading.Lock()
        self._connections: Dict[str, Set[Any]] = {}

    def register(self, user_id: str, connection) -> None:
        with self._lock:
            self._connections.setdefault(user_id, set()).add(connection)
        logger.info(f"User {user_id} connected")

    def unregister(self, user_id: str, connection) -> None:
        with self._lock:
            conns = self._connections.get(user_id)
            if not conns:
                return
            conns.discard(connection)
            if not conns:
                del self._connections[user_id]
        logger.info(f"User {user_id} disconnected")

    def is_online(self, user_id: str) -> bool:
        with self._lock:
            return bool(self._connections.get(user_id))

    def connections(self, user_id: str) -> List[Any]:
        with self._lock:
            return list(self._connections.get(user_id, ()))

    def online_users(self) -> List[str]:
        with self._lock:
            return list(self._connections)
