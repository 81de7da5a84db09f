from sqlalchemy.orm import Session
from app import models
from app.exceptions import NotFoundError, ValidationError
from app.schemas import social as social_schemas
from app.services import notification_service
from app.services.notification_emitter import NotificationEmitter
from . import user as crud_user
from typing import List

def get_follow(db: Session, follower_id: str, following_id: str):
    return db.query(models.Follow).filter(
        models.Follow.follower_id == follower_id,
        models.Follow.following_id == following_id
    ).first()

def _resolve_pair(db: Session, user_id: str, other_username: str):
    current_user = crud_user.get_user(db, user_id)
    other = crud_user.get_user_by_username(db, other_username)
    if not current_user or not other:
        raise NotFoundError("User not found")
    return current_user, other

def toggle_follow(db: Session, emitter: NotificationEmitter, follower_id: str, target_username: str) -> social_schemas.FollowResult:
    """
    Follow button semantics: unfollow if following, cancel if a request is
    pending, otherwise follow (public account) or request (private account).
    """
    follower, target = _resolve_pair(db, follower_id, target_username)
    if target.id == follower.id:
        raise ValidationError("Cannot follow yourself")

    relation = get_follow(db, follower.id, target.id)

    if relation and relation.status == "accepted":
        db.delete(relation)
        db.commit()
        notification_service.withdraw(db, emitter, target.id, follower.id, "follow", follower.username)
        return social_schemas.FollowResult(message="Unfollowed successfully")

    if relation and relation.status == "pending":
        db.delete(relation)
        db.commit()
        notification_service.withdraw_follow_request(db, emitter, target.id, follower.id, follower.username)
        return social_schemas.FollowResult(message="Follow request cancelled")

    if target.is_private:
        return send_follow_request(db, emitter, follower.id, target.username)

    db.add(models.Follow(follower_id=follower.id, following_id=target.id, status="accepted"))
    db.commit()

    notification_service.notify(
        db, emitter,
        recipient_id=target.id,
        sender_id=follower.id,
        type="follow",
        message=notification_service.build_message("follow", follower.username)
    )
    return social_schemas.FollowResult(message="Followed successfully", is_following=True)

def send_follow_request(db: Session, emitter: NotificationEmitter, follower_id: str, target_username: str) -> social_schemas.FollowResult:
    """Sends (or re-sends) a follow request. A re-send supersedes the earlier notification."""
    follower, target = _resolve_pair(db, follower_id, target_username)
    if target.id == follower.id:
        raise ValidationError("Cannot follow yourself")

    relation = get_follow(db, follower.id, target.id)
    if relation and relation.status == "accepted":
        return social_schemas.FollowResult(message="Already following", is_following=True)

    if not relation:
        db.add(models.Follow(follower_id=follower.id, following_id=target.id, status="pending"))
        db.commit()

    notification_service.notify(
        db, emitter,
        recipient_id=target.id,
        sender_id=follower.id,
        type="follow_request",
        message=notification_service.build_message("follow_request", follower.username)
    )
    return social_schemas.FollowResult(message="Follow request sent", is_requested=True)

def _pending_request(db: Session, requester_id: str, user_id: str):
    relation = get_follow(db, requester_id, user_id)
    if not relation or relation.status != "pending":
        raise NotFoundError("Follow request not found")
    return relation

def accept_follow_request(db: Session, emitter: NotificationEmitter, user_id: str, requester_username: str) -> social_schemas.FollowRequestResponse:
    current_user, requester = _resolve_pair(db, user_id, requester_username)
    relation = _pending_request(db, requester.id, current_user.id)

    relation.status = "accepted"
    db.commit()

    notification_service.withdraw_follow_request(db, emitter, current_user.id, requester.id, requester.username)
    notification_service.notify(
        db, emitter,
        recipient_id=requester.id,
        sender_id=current_user.id,
        type="follow_accept",
        message=notification_service.build_message("follow_accept", current_user.username)
    )
    return social_schemas.FollowRequestResponse(message="Follow request accepted")

def reject_follow_request(db: Session, emitter: NotificationEmitter, user_id: str, requester_username: str) -> social_schemas.FollowRequestResponse:
    current_user, requester = _resolve_pair(db, user_id, requester_username)
    relation = _pending_request(db, requester.id, current_user.id)

    db.delete(relation)
    db.commit()

    notification_service.withdraw_follow_request(db, emitter, current_user.id, requester.id, requester.username)
    return social_schemas.FollowRequestResponse(message="Follow request rejected")

def get_pending_requests(db: Session, user_id: str) -> List[models.User]:
    return db.query(models.User).join(
        models.Follow, models.Follow.follower_id == models.User.id
    ).filter(
        models.Follow.following_id == user_id,
        models.Follow.status == "pending"
    ).order_by(models.Follow.created_at.desc()).all()
