from sqlalchemy.orm import Session
from app import models
from typing import Optional
import uuid

def get_user(db: Session, id: str):
    return db.query(models.User).filter(models.User.id == id).first()

def get_user_by_username(db: Session, username: str):
    return db.query(models.User).filter(models.User.username == username).first()

def create_user(db: Session, username: str, full_name: Optional[str] = None, is_private: bool = False, profile_photo_url: Optional[str] = None):
    """Accounts are provisioned by the auth service; this mirrors its row for local setups and tests."""
    db_user = models.User(
        id=str(uuid.uuid4()),
        username=username,
        full_name=full_name,
        is_private=is_private,
        profile_photo_url=profile_photo_url,
    )
    db.add(db_user)
    db.commit()
    db.refresh(db_user)
    return db_user
