from pydantic import BaseModel
from typing import List
from .user import PublicUser

class FollowResult(BaseModel):
    message: str
    is_following: bool = False
    is_requested: bool = False

class FollowRequestResponse(BaseModel):
    message: str
    success: bool = True

class FollowRequestList(BaseModel):
    requests: List[PublicUser]
