from fastapi import APIRouter, Depends, Query
from sqlalchemy.orm import Session
from typing import Annotated
from app.database import get_db
from app.auth.auth_service import get_current_user
from app.services.notification_emitter import NotificationEmitter, get_emitter

from app.schemas import notification as notification_schemas
from app.schemas import user as user_schemas
from app.crud import notification as notification_crud

router = APIRouter(
    prefix="/notifications",
    tags=["notifications"]
)

@router.get("/", response_model=notification_schemas.NotificationPage)
def get_my_notifications(
    current_user: Annotated[user_schemas.User, Depends(get_current_user)],
    db: Session = Depends(get_db),
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=100)
):
    notifications, has_more = notification_crud.get_notifications(db, current_user.id, page=page, limit=limit)
    return notification_schemas.NotificationPage(
        notifications=[notification_schemas.Notification.from_record(n) for n in notifications],
        unread_count=notification_crud.get_unread_count(db, current_user.id),
        has_more=has_more
    )

@router.get("/unread-count", response_model=notification_schemas.UnreadCount)
def get_unread_count(
    current_user: Annotated[user_schemas.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    return notification_schemas.UnreadCount(count=notification_crud.get_unread_count(db, current_user.id))

@router.patch("/{notification_id}/read", response_model=notification_schemas.ReadResponse)
def mark_as_read(
    notification_id: str,
    current_user: Annotated[user_schemas.User, Depends(get_current_user)],
    db: Session = Depends(get_db),
    emitter: NotificationEmitter = Depends(get_emitter)
):
    notification_crud.mark_notification_read(db, notification_id, current_user.id)
    unread_count = emitter.emit_unread_count(db, current_user.id)
    return notification_schemas.ReadResponse(message="Notification marked as read", unread_count=unread_count)

@router.post("/mark-all-read", response_model=notification_schemas.MarkAllReadResponse)
def mark_all_as_read(
    current_user: Annotated[user_schemas.User, Depends(get_current_user)],
    db: Session = Depends(get_db),
    emitter: NotificationEmitter = Depends(get_emitter)
):
    updated = notification_crud.mark_all_notifications_read(db, current_user.id)
    emitter.emit_unread_count(db, current_user.id)
    return notification_schemas.MarkAllReadResponse(message="All notifications marked as read", updated=updated)

@router.delete("/{notification_id}", response_model=notification_schemas.MessageResponse)
def delete_notification(
    notification_id: str,
    current_user: Annotated[user_schemas.User, Depends(get_current_user)],
    db: Session = Depends(get_db),
    emitter: NotificationEmitter = Depends(get_emitter)
):
    notification_crud.delete_notification(db, notification_id, current_user.id)
    emitter.emit_unread_count(db, current_user.id)
    return notification_schemas.MessageResponse(message="Notification deleted")
