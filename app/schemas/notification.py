from pydantic import BaseModel, Field
from datetime import datetime
from typing import Optional, List, Literal, Union, Annotated
from .user import PublicUser

NotificationType = Literal["like", "comment", "follow", "follow_request", "follow_accept", "mention"]

# Event names pushed on the per-user channel
EVENT_NOTIFICATION = "notification"
EVENT_NOTIFICATION_REMOVED = "notificationRemoved"
EVENT_UNREAD_COUNT = "unreadCount"


class PostSubject(BaseModel):
    kind: Literal["post"] = "post"
    ref: str

class CommentSubject(BaseModel):
    kind: Literal["comment"] = "comment"
    ref: str

class NoSubject(BaseModel):
    kind: Literal["none"] = "none"

Subject = Annotated[Union[PostSubject, CommentSubject, NoSubject], Field(discriminator="kind")]


def subject_from_columns(kind: Optional[str], ref: Optional[str]):
    if kind == "post" and ref:
        return PostSubject(ref=ref)
    if kind == "comment" and ref:
        return CommentSubject(ref=ref)
    return NoSubject()


class Notification(BaseModel):
    id: str
    type: NotificationType
    message: str
    sender: Optional[PublicUser] = None
    subject: Subject = Field(default_factory=NoSubject)
    comment: Optional[str] = None
    is_read: bool = False
    created_at: datetime

    @classmethod
    def from_record(cls, record) -> "Notification":
        sender = PublicUser.model_validate(record.sender) if record.sender is not None else None
        return cls(
            id=record.id,
            type=record.type,
            message=record.message,
            sender=sender,
            subject=subject_from_columns(record.subject_kind, record.subject_ref),
            comment=record.comment_text,
            is_read=record.is_read,
            created_at=record.created_at,
        )


class NotificationPage(BaseModel):
    notifications: List[Notification]
    unread_count: int
    has_more: bool

class UnreadCount(BaseModel):
    count: int

class NotificationRemoved(BaseModel):
    type: NotificationType
    sender_id: str
    sender_username: Optional[str] = None

class ReadResponse(BaseModel):
    message: str
    unread_count: int

class MarkAllReadResponse(BaseModel):
    message: str
    updated: int

class MessageResponse(BaseModel):
    message: str
