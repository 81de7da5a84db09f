from sqlalchemy.orm import Session
from sqlalchemy.exc import SQLAlchemyError
from app import models
from app.exceptions import ValidationError, NotFoundError
import datetime
import logging
import os
import uuid
from typing import Optional, List, Tuple

logger = logging.getLogger(__name__)

RETENTION_DAYS = int(os.getenv("NOTIFICATION_RETENTION_DAYS", "90"))
FOLLOW_REQUEST = "follow_request"


def retention_cutoff(now: Optional[datetime.datetime] = None) -> datetime.datetime:
    now = now or models._utcnow()
    return now - datetime.timedelta(days=RETENTION_DAYS)

def _subject_columns(subject) -> Tuple[str, Optional[str]]:
    if subject is None or subject.kind == "none":
        return "none", None
    return subject.kind, subject.ref

def _validate(recipient_id, sender_id, type, message):
    missing = [name for name, value in (
        ("recipient_id", recipient_id),
        ("sender_id", sender_id),
        ("type", type),
        ("message", message),
    ) if not value]
    if missing:
        raise ValidationError(f"Missing required notification fields: {', '.join(missing)}")
    if type not in models.NOTIFICATION_TYPES:
        raise ValidationError(f"Unknown notification type: {type}")

def create_notification(
    db: Session,
    recipient_id: str,
    sender_id: str,
    type: str,
    message: str,
    subject=None,
    comment_text: Optional[str] = None
):
    """
    Persists a notification. A follow_request supersedes any earlier
    follow_request from the same sender in the same transaction, so exactly
    one record (the new one) survives for the pair.
    """
    _validate(recipient_id, sender_id, type, message)
    subject_kind, subject_ref = _subject_columns(subject)

    db_notif = models.Notification(
        id=str(uuid.uuid4()),
        recipient_id=recipient_id,
        sender_id=sender_id,
        type=type,
        message=message,
        subject_kind=subject_kind,
        subject_ref=subject_ref,
        comment_text=comment_text,
        is_read=False,
        created_at=models._utcnow()
    )
    db.add(db_notif)
    try:
        if type == FOLLOW_REQUEST:
            db.flush()
            cleanup_duplicate_follow_requests(db, recipient_id, sender_id, keep_id=db_notif.id, commit=False)
        db.commit()
    except SQLAlchemyError as e:
        db.rollback()
        logger.error(f"Error saving notification to DB: {e}")
        raise

    db.refresh(db_notif)
    return db_notif

def cleanup_duplicate_follow_requests(
    db: Session,
    recipient_id: str,
    sender_id: str,
    keep_id: Optional[str] = None,
    commit: bool = True
) -> int:
    """Deletes every follow_request for the pair except keep_id (default: the newest)."""
    existing = db.query(models.Notification).filter(
        models.Notification.recipient_id == recipient_id,
        models.Notification.sender_id == sender_id,
        models.Notification.type == FOLLOW_REQUEST
    ).order_by(models.Notification.created_at.desc()).all()

    if not existing:
        return 0
    if keep_id is None:
        keep_id = existing[0].id

    stale = [n for n in existing if n.id != keep_id]
    for notif in stale:
        db.delete(notif)
    if commit:
        db.commit()

    if stale:
        logger.info(f"Cleaned up {len(stale)} duplicate follow request notifications for {recipient_id} from {sender_id}")
    return len(stale)

def delete_notifications_from(db: Session, recipient_id: str, sender_id: str, type: str, commit: bool = True) -> int:
    deleted = db.query(models.Notification).filter(
        models.Notification.recipient_id == recipient_id,
        models.Notification.sender_id == sender_id,
        models.Notification.type == type
    ).delete(synchronize_session=False)
    if commit:
        db.commit()
    return deleted

def delete_follow_requests(db: Session, recipient_id: str, sender_id: str, commit: bool = True) -> int:
    return delete_notifications_from(db, recipient_id, sender_id, FOLLOW_REQUEST, commit=commit)

def get_notifications(db: Session, user_id: str, page: int = 1, limit: int = 20) -> Tuple[List[models.Notification], bool]:
    page = max(page, 1)
    notifications = db.query(models.Notification).filter(
        models.Notification.recipient_id == user_id,
        models.Notification.created_at >= retention_cutoff()
    ).order_by(models.Notification.created_at.desc()).offset((page - 1) * limit).limit(limit).all()
    return notifications, len(notifications) == limit

def get_unread_count(db: Session, user_id: str) -> int:
    return db.query(models.Notification).filter(
        models.Notification.recipient_id == user_id,
        models.Notification.is_read == False,
        models.Notification.created_at >= retention_cutoff()
    ).count()

def mark_notification_read(db: Session, notification_id: str, user_id: str):
    notif = db.query(models.Notification).filter(
        models.Notification.id == notification_id,
        models.Notification.recipient_id == user_id
    ).first()

    if not notif:
        raise NotFoundError("Notification not found")

    if not notif.is_read:
        notif.is_read = True
        db.commit()
        db.refresh(notif)
    return notif

def mark_all_notifications_read(db: Session, user_id: str) -> int:
    updated = db.query(models.Notification).filter(
        models.Notification.recipient_id == user_id,
        models.Notification.is_read == False
    ).update({"is_read": True}, synchronize_session=False)
    db.commit()
    return updated

def delete_notification(db: Session, notification_id: str, user_id: str) -> None:
    deleted = db.query(models.Notification).filter(
        models.Notification.id == notification_id,
        models.Notification.recipient_id == user_id
    ).delete(synchronize_session=False)

    if not deleted:
        db.rollback()
        raise NotFoundError("Notification not found")
    db.commit()

def purge_expired_notifications(db: Session, now: Optional[datetime.datetime] = None) -> int:
    purged = db.query(models.Notification).filter(
        models.Notification.created_at < retention_cutoff(now)
    ).delete(synchronize_session=False)
    db.commit()
    return purged
