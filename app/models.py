# app/models.py
import datetime
from sqlalchemy import Column, String, DateTime, ForeignKey, Boolean, Index, PrimaryKeyConstraint
from sqlalchemy.orm import relationship
from .database import Base

NOTIFICATION_TYPES = ("like", "comment", "follow", "follow_request", "follow_accept", "mention")


def _utcnow():
    return datetime.datetime.now(datetime.timezone.utc).replace(tzinfo=None)


class User(Base):
    __tablename__ = 'users'
    id = Column(String, primary_key=True, index=True)
    username = Column(String, unique=True, index=True, nullable=False)
    full_name = Column(String, nullable=True)
    profile_photo_url = Column(String, nullable=True)
    is_private = Column(Boolean, nullable=False, default=False)
    created_at = Column(DateTime, default=_utcnow)

    notifications_received = relationship("Notification", foreign_keys="Notification.recipient_id", back_populates="recipient", cascade="all, delete-orphan")
    notifications_sent = relationship("Notification", foreign_keys="Notification.sender_id", back_populates="sender", cascade="all, delete-orphan")


class Follow(Base):
    __tablename__ = 'follows'

    follower_id = Column(String, ForeignKey('users.id'), nullable=False)
    following_id = Column(String, ForeignKey('users.id'), nullable=False)
    status = Column(String, default="accepted", nullable=False) # "pending", "accepted"
    created_at = Column(DateTime, default=_utcnow)

    __table_args__ = (
        PrimaryKeyConstraint('follower_id', 'following_id'),
    )


class Notification(Base):
    __tablename__ = 'notifications'

    id = Column(String, primary_key=True, index=True)
    recipient_id = Column(String, ForeignKey('users.id'), nullable=False, index=True)
    sender_id = Column(String, ForeignKey('users.id'), nullable=False)

    type = Column(String, nullable=False) # one of NOTIFICATION_TYPES
    message = Column(String, nullable=False)

    # Tagged reference to the triggering object: ('post', id), ('comment', id) or ('none', NULL)
    subject_kind = Column(String, nullable=False, default="none")
    subject_ref = Column(String, nullable=True)
    comment_text = Column(String, nullable=True)

    is_read = Column(Boolean, default=False, nullable=False)
    created_at = Column(DateTime, default=_utcnow, nullable=False)

    recipient = relationship("User", foreign_keys=[recipient_id], back_populates="notifications_received")
    sender = relationship("User", foreign_keys=[sender_id], back_populates="notifications_sent")

    __table_args__ = (
        Index('ix_notifications_recipient_created', 'recipient_id', 'created_at'),
        Index('ix_notifications_recipient_read', 'recipient_id', 'is_read'),
    )
