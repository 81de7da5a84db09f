from __future__ import annotations
import os
from typing import Annotated, Optional, TypedDict
from fastapi import Depends, HTTPException, status
from fastapi.security import OAuth2PasswordBearer
from jose import JWTError, jwt
from sqlalchemy.orm import Session
from app import models
from app.schemas import user as user_schemas
from app.crud import user as user_crud
from app.database import get_db

# Tokens are issued by the auth service; this side only verifies them.
SECRET_KEY: str = os.getenv("SECRET_KEY", "change-me")
ALGORITHM: str = "HS256"

oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/auth/token")

class JWTPayload(TypedDict, total=False):
    sub: str
    exp: int

def decode_token(token: str) -> JWTPayload:
    payload = jwt.decode(token, SECRET_KEY, algorithms=[ALGORITHM])
    return payload

def user_id_from_token(token: Optional[str]) -> Optional[str]:
    """Returns the subject of a valid token, or None."""
    if not token:
        return None
    try:
        return decode_token(token).get("sub")
    except JWTError:
        return None

def _resolve_db_user(db: Session, user_id: str) -> models.User | None:
    return user_crud.get_user(db, id=user_id)

def _credentials_exception() -> HTTPException:
    return HTTPException(
        status_code=status.HTTP_401_UNAUTHORIZED,
        detail="Could not validate credentials",
        headers={"WWW-Authenticate": "Bearer"},
    )

def get_current_user(
    token: Annotated[str, Depends(oauth2_scheme)],
    db: Session = Depends(get_db),
) -> user_schemas.User:
    try:
        payload = decode_token(token)
        user_id: Optional[str] = payload.get("sub")
        if not user_id:
            raise _credentials_exception()
    except JWTError:
        raise _credentials_exception()

    db_user = _resolve_db_user(db, user_id)
    if db_user is None:
        raise _credentials_exception()

    return user_schemas.User.model_validate(db_user, from_attributes=True)
