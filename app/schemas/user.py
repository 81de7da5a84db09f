from pydantic import BaseModel
from datetime import datetime
from typing import Optional

class User(BaseModel):
    id: str
    username: str
    full_name: Optional[str] = None
    profile_photo_url: Optional[str] = None
    is_private: bool = False
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True

class PublicUser(BaseModel):
    """Sender card embedded in notification payloads."""
    id: str
    username: str
    full_name: Optional[str] = None
    profile_photo_url: Optional[str] = None

    class Config:
        from_attributes = True
