"""
User registration and login.
"""

import logging

from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from core.auth import create_access_token, get_password_hash, verify_password
from core.exceptions import (
    AuthenticationError, AuthorizationError, ConflictError, NotFoundError,
    ValidationError
)
from ..enums.role_enums import RoleName
from ..models.user_models import Role, User
from ..schemas.auth_schemas import LoginRequest, LoginResponse, RegisterRequest, UserOut

logger = logging.getLogger(__name__)


def _user_out(user: User, include_details: bool = False) -> UserOut:
    out = UserOut(id=user.id, username=user.username, role=RoleName(user.role.name))
    if include_details:
        out.is_active = user.is_active
        out.created_at = user.created_at
    return out


async def register_user(db: Session, request: RegisterRequest) -> UserOut:
    if db.query(User).filter(User.username == request.username).first():
        raise ConflictError("Username already exists")

    try:
        role_name = RoleName(request.role_name)
    except ValueError:
        raise ValidationError("Invalid role")

    role = db.query(Role).filter(Role.name == role_name.value).first()
    if not role:
        raise ValidationError("Invalid role")

    user = User(
        username=request.username,
        password_hash=get_password_hash(request.password),
        role_id=role.id,
        is_active=True,
    )
    db.add(user)
    try:
        db.commit()
    except IntegrityError:
        db.rollback()
        raise ConflictError("Username already exists")
    db.refresh(user)

    logger.info(f"User registered: {user.username} ({role_name.value})")
    return _user_out(user)


async def login_user(db: Session, request: LoginRequest) -> LoginResponse:
    user = db.query(User).filter(User.username == request.username).first()
    if not user or not verify_password(request.password, user.password_hash):
        raise AuthenticationError("Invalid credentials")

    if not user.is_active:
        raise AuthorizationError("Account is inactive")

    logger.info(f"User logged in: {user.username}")
    return LoginResponse(token=create_access_token(user), user=_user_out(user))


async def get_user_profile(db: Session, user_id: int) -> UserOut:
    user = db.query(User).filter(User.id == user_id).first()
    if not user:
        raise NotFoundError("User not found")
    return _user_out(user, include_details=True)
