import logging
from typing import Any, Callable, Optional, Protocol
from app.client.api import NotificationsApi, AuthExpired, TransientFetchError
from app.client.cache import ReconciliationCache, FOLLOW_REQUEST
from app.client.delivery import DeliveryPolicy
from app.schemas import notification as notification_schemas

logger = logging.getLogger(__name__)


class EventSource(Protocol):
    def on(self, event: str, handler: Callable[[Any], None]) -> None: ...
    def off(self, event: str, handler: Callable[[Any], None]) -> None: ...


class NotificationSession:
    """
    Glue between the REST api, the live socket and the local cache for one
    signed-in user.
    """

    def __init__(
        self,
        api: NotificationsApi,
        cache: Optional[ReconciliationCache] = None,
        delivery: Optional[DeliveryPolicy] = None,
        on_logout: Optional[Callable[[], None]] = None,
    ):
        self.api = api
        self.cache = cache or ReconciliationCache()
        self.delivery = delivery
        self.on_logout = on_logout
        self.last_error: Optional[str] = None
        self.has_more = False
        self.page = 1
        self.limit = 20
        self._detach: Optional[Callable[[], None]] = None

    # --- error handling -------------------------------------------------

    def _call(self, action: str, fn, *args):
        try:
            return True, fn(*args)
        except AuthExpired:
            logger.info(f"Session expired during {action}; signing out")
            self.api.credentials.clear()
            if self.on_logout:
                self.on_logout()
        except TransientFetchError as e:
            logger.warning(f"Failed to {action}: {e}")
            self.last_error = str(e)
        return False, None

    def dismiss_error(self) -> None:
        self.last_error = None

    # --- REST -------------------------------------------------------------

    def refresh(self, limit: int = 20) -> bool:
        """Reloads the first page, replacing the cached list."""
        ok, result = self._call("fetch notifications", self.api.fetch, 1, limit)
        if not ok:
            return False
        self.cache.replace_from_fetch(result.notifications)
        self.cache.apply_unread_count(result.unread_count)
        self.page = 1
        self.limit = limit
        self.has_more = result.has_more
        self.last_error = None
        return True

    def load_more(self) -> bool:
        if not self.has_more:
            return False
        ok, result = self._call("fetch more notifications", self.api.fetch, self.page + 1, self.limit)
        if not ok:
            return False
        self.cache.merge_page(result.notifications)
        self.cache.apply_unread_count(result.unread_count)
        self.page += 1
        self.has_more = result.has_more
        self.last_error = None
        return True

    def mark_read(self, notification_id: str) -> bool:
        ok, unread_count = self._call("mark notification as read", self.api.mark_read, notification_id)
        if ok:
            self.cache.mark_read(notification_id)
            self.cache.apply_unread_count(unread_count)
        return ok

    def mark_all_read(self) -> bool:
        ok, _ = self._call("mark all notifications as read", self.api.mark_all_read)
        if not ok:
            return False
        self.cache.mark_all_read()
        # Recount on the server; pushes may have landed since the bulk update
        ok, count = self._call("refresh unread count", self.api.unread_count)
        if ok:
            self.cache.apply_unread_count(count)
        return True

    def delete(self, notification_id: str) -> bool:
        ok, _ = self._call("delete notification", self.api.delete, notification_id)
        if ok:
            self.cache.remove(notification_id)
        return ok

    def _respond(self, notification_id: str, accept: bool) -> bool:
        entry = self.cache.find(notification_id)
        if entry is None or entry.type != FOLLOW_REQUEST or entry.sender is None:
            return False

        flag = "is_accepted" if accept else "is_rejected"
        self.cache.set_flags(notification_id, **{flag: True})
        call = self.api.accept_follow_request if accept else self.api.reject_follow_request
        ok, _ = self._call("respond to follow request", call, entry.sender.username)
        if not ok:
            self.cache.set_flags(notification_id, **{flag: False})
            return False

        self.cache.apply_removed({"type": FOLLOW_REQUEST, "sender_id": entry.sender.id})
        return True

    def accept_request(self, notification_id: str) -> bool:
        return self._respond(notification_id, accept=True)

    def reject_request(self, notification_id: str) -> bool:
        return self._respond(notification_id, accept=False)

    # --- live events ------------------------------------------------------

    def handle_event(self, event: str, data: dict) -> None:
        if event == notification_schemas.EVENT_NOTIFICATION:
            entry = self.cache.apply_push(data)
            if entry is not None and self.delivery is not None:
                self.delivery.deliver(data)
        elif event == notification_schemas.EVENT_NOTIFICATION_REMOVED:
            self.cache.apply_removed(data)
        elif event == notification_schemas.EVENT_UNREAD_COUNT:
            self.cache.apply_unread_count(data)
        else:
            logger.debug(f"Ignoring unknown event '{event}'")

    def attach(self, source: EventSource) -> Callable[[], None]:
        """Subscribes to the live events. The returned callable (or close()) unsubscribes."""
        self.close()
        handlers = {
            event: (lambda data, event=event: self.handle_event(event, data))
            for event in (
                notification_schemas.EVENT_NOTIFICATION,
                notification_schemas.EVENT_NOTIFICATION_REMOVED,
                notification_schemas.EVENT_UNREAD_COUNT,
            )
        }
        for event, handler in handlers.items():
            source.on(event, handler)

        def detach():
            for event, handler in handlers.items():
                source.off(event, handler)
        self._detach = detach
        return detach

    def close(self) -> None:
        if self._detach is not None:
            self._detach()
            self._detach = None
