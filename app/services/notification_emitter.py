import logging
from typing import Optional, Protocol
from fastapi import Request
from sqlalchemy.orm import Session
from app import models
from app.crud import notification as crud_notification
from app.schemas import notification as notification_schemas
from app.services.connection_registry import ConnectionRegistry

logger = logging.getLogger(__name__)


class Transport(Protocol):
    def publish(self, user_id: str, event: str, data: dict) -> int: ...


class NotificationEmitter:
    """
    Pushes store changes to the recipient's channel. Delivery is
    fire-and-forget: an offline recipient picks the record up on the next
    fetch, so transport failures are logged and never raised.
    """

    def __init__(self, transport: Transport, registry: Optional[ConnectionRegistry] = None):
        self.transport = transport
        self.registry = registry

    def emit(self, db: Session, notification: models.Notification) -> None:
        payload = notification_schemas.Notification.from_record(notification)
        if self.registry is not None and not self.registry.is_online(notification.recipient_id):
            logger.debug(f"Recipient {notification.recipient_id} offline; notification {notification.id} is store-only until next fetch")

        self._publish(notification.recipient_id, notification_schemas.EVENT_NOTIFICATION, payload.model_dump(mode="json"))
        self.emit_unread_count(db, notification.recipient_id)

    def emit_removed(self, recipient_id: str, type: str, sender_id: str, sender_username: Optional[str] = None) -> None:
        payload = notification_schemas.NotificationRemoved(
            type=type,
            sender_id=sender_id,
            sender_username=sender_username
        )
        self._publish(recipient_id, notification_schemas.EVENT_NOTIFICATION_REMOVED, payload.model_dump(mode="json"))

    def emit_unread_count(self, db: Session, recipient_id: str) -> int:
        count = crud_notification.get_unread_count(db, recipient_id)
        self._publish(recipient_id, notification_schemas.EVENT_UNREAD_COUNT, {"count": count})
        return count

    def _publish(self, recipient_id: str, event: str, data: dict) -> None:
        try:
            self.transport.publish(recipient_id, event, data)
        except Exception as e:
            logger.warning(f"Failed to emit '{event}' to user {recipient_id}: {e}")


def get_emitter(request: Request) -> NotificationEmitter:
    return request.app.state.emitter
