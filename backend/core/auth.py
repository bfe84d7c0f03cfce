"""
Authentication for the POS API.

Bearer JWTs carry ``{id, username, roleId}``. The owning user is re-read on
every request so deactivating an account takes effect immediately.
"""

from datetime import datetime, timedelta, timezone
from typing import Any, Dict, Optional
import logging

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer
from jose import JWTError, jwt
from passlib.context import CryptContext
from pydantic import BaseModel
from sqlalchemy.orm import Session

from .config import get_settings
from .database import get_db
from .exceptions import AuthenticationError
from modules.auth.enums.role_enums import RoleName
from modules.auth.models.user_models import User

logger = logging.getLogger(__name__)

pwd_context = CryptContext(schemes=["bcrypt"], deprecated="auto")
security = HTTPBearer(auto_error=False)


class CurrentUser(BaseModel):
    """The authenticated actor attached to a request."""

    id: int
    username: str
    role: RoleName
    is_active: bool = True


def verify_password(plain_password: str, hashed_password: str) -> bool:
    return pwd_context.verify(plain_password, hashed_password)


def get_password_hash(password: str) -> str:
    return pwd_context.hash(password)


def create_access_token(
    user: User, expires_delta: Optional[timedelta] = None
) -> str:
    """Issue a signed access token for a user."""
    settings = get_settings()
    expire = datetime.now(timezone.utc) + (
        expires_delta
        or timedelta(minutes=settings.jwt_access_token_expire_minutes)
    )
    to_encode = {
        "id": user.id,
        "username": user.username,
        "roleId": user.role_id,
        "exp": expire,
    }
    return jwt.encode(
        to_encode, settings.jwt_secret_key, algorithm=settings.jwt_algorithm
    )


def decode_access_token(token: str) -> Dict[str, Any]:
    """Verify a token and return its payload.

    Raises:
        AuthenticationError: if the token is malformed, tampered with or expired
    """
    settings = get_settings()
    try:
        payload = jwt.decode(
            token, settings.jwt_secret_key, algorithms=[settings.jwt_algorithm]
        )
    except JWTError as e:
        logger.info(f"Rejected access token: {e}")
        raise AuthenticationError("Invalid or expired token")

    if not isinstance(payload.get("id"), int):
        raise AuthenticationError("Invalid or expired token")
    return payload


def to_current_user(user: User) -> CurrentUser:
    return CurrentUser(
        id=user.id,
        username=user.username,
        role=RoleName(user.role.name),
        is_active=user.is_active,
    )


def resolve_user_from_token(db: Session, token: str) -> CurrentUser:
    """Decode a token and load the active user it names."""
    payload = decode_access_token(token)
    user = db.query(User).filter(User.id == payload["id"]).first()
    if not user or not user.is_active:
        raise AuthenticationError("User not found or inactive")
    return to_current_user(user)


async def get_current_user(
    credentials: Optional[HTTPAuthorizationCredentials] = Depends(security),
    db: Session = Depends(get_db),
) -> CurrentUser:
    """FastAPI dependency returning the authenticated user."""
    if credentials is None or not credentials.credentials:
        raise AuthenticationError("Access token required")
    return resolve_user_from_token(db, credentials.credentials)
