from fastapi import APIRouter, Depends
from sqlalchemy.orm import Session
from typing import Annotated
from app.database import get_db
from app.auth.auth_service import get_current_user
from app.services.notification_emitter import NotificationEmitter, get_emitter

from app.schemas import user as user_schemas
from app.schemas import social as social_schemas
from app.crud import social as social_crud

router = APIRouter(
    prefix="/social",
    tags=["social"]
)

@router.post("/follow/{username}", response_model=social_schemas.FollowResult)
def toggle_follow(
    username: str,
    current_user: Annotated[user_schemas.User, Depends(get_current_user)],
    db: Session = Depends(get_db),
    emitter: NotificationEmitter = Depends(get_emitter)
):
    return social_crud.toggle_follow(db, emitter, current_user.id, username)

@router.get("/follow-requests", response_model=social_schemas.FollowRequestList)
def get_follow_requests(
    current_user: Annotated[user_schemas.User, Depends(get_current_user)],
    db: Session = Depends(get_db)
):
    requesters = social_crud.get_pending_requests(db, current_user.id)
    return social_schemas.FollowRequestList(
        requests=[user_schemas.PublicUser.model_validate(u) for u in requesters]
    )

@router.post("/follow-requests/{username}", response_model=social_schemas.FollowResult)
def send_follow_request(
    username: str,
    current_user: Annotated[user_schemas.User, Depends(get_current_user)],
    db: Session = Depends(get_db),
    emitter: NotificationEmitter = Depends(get_emitter)
):
    return social_crud.send_follow_request(db, emitter, current_user.id, username)

@router.post("/follow-requests/{username}/accept", response_model=social_schemas.FollowRequestResponse)
def accept_follow_request(
    username: str,
    current_user: Annotated[user_schemas.User, Depends(get_current_user)],
    db: Session = Depends(get_db),
    emitter: NotificationEmitter = Depends(get_emitter)
):
    return social_crud.accept_follow_request(db, emitter, current_user.id, username)

@router.post("/follow-requests/{username}/reject", response_model=social_schemas.FollowRequestResponse)
def reject_follow_request(
    username: str,
    current_user: Annotated[user_schemas.User, Depends(get_current_user)],
    db: Session = Depends(get_db),
    emitter: NotificationEmitter = Depends(get_emitter)
):
    return social_crud.reject_follow_request(db, emitter, current_user.id, username)
