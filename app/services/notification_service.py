from sqlalchemy.orm import Session
from typing import Optional
from app import models
from app.crud import notification as crud_notification
from app.services.notification_emitter import NotificationEmitter
import logging

# Configure logging
logger = logging.getLogger(__name__)

MESSAGE_TEMPLATES = {
    "like": "{username} liked your post",
    "comment": "{username} commented on your post",
    "follow": "{username} started following you",
    "follow_request": "{username} requested to follow you",
    "follow_accept": "{username} accepted your follow request",
    "mention": "{username} mentioned you in a comment",
}

def build_message(type: str, sender_username: str) -> str:
    return MESSAGE_TEMPLATES[type].format(username=sender_username)

def notify(
    db: Session,
    emitter: NotificationEmitter,
    recipient_id: str,
    sender_id: str,
    type: str,
    message: str,
    subject=None,
    comment_text: Optional[str] = None
) -> Optional[models.Notification]:
    """
    Stores a notification and pushes it to the recipient.

    Best-effort relative to the action that triggered it: a failure here is
    logged and swallowed so the like/comment/follow itself still succeeds.
    """
    if recipient_id == sender_id:
        return None

    try:
        notification = crud_notification.create_notification(
            db=db,
            recipient_id=recipient_id,
            sender_id=sender_id,
            type=type,
            message=message,
            subject=subject,
            comment_text=comment_text
        )
        emitter.emit(db, notification)
    except Exception as e:
        logger.error(f"Create notification error ({type} {sender_id} -> {recipient_id}): {e}", exc_info=True)
        return None

    return notification

def withdraw(
    db: Session,
    emitter: NotificationEmitter,
    recipient_id: str,
    sender_id: str,
    type: str,
    sender_username: Optional[str] = None
) -> int:
    """
    Hard-deletes every notification of `type` from sender to recipient and
    tells the recipient's clients to drop them.

    Best-effort like notify(): the follow change that triggered it is already
    committed, so a failure is logged and reported as zero deletions.
    """
    try:
        deleted = crud_notification.delete_notifications_from(db, recipient_id, sender_id, type)
        emitter.emit_removed(recipient_id, type, sender_id, sender_username)
        emitter.emit_unread_count(db, recipient_id)
    except Exception as e:
        db.rollback()
        logger.error(f"Withdraw notification error ({type} {sender_id} -> {recipient_id}): {e}", exc_info=True)
        return 0

    return deleted

def withdraw_follow_request(
    db: Session,
    emitter: NotificationEmitter,
    recipient_id: str,
    sender_id: str,
    sender_username: Optional[str] = None
) -> int:
    """Used for accept, reject and cancel."""
    return withdraw(db, emitter, recipient_id, sender_id, "follow_request", sender_username)
