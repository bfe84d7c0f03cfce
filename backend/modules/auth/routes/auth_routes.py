"""
Authentication routes: register, login and current-user lookup.
"""

from fastapi import APIRouter, Depends, status
from sqlalchemy.orm import Session

from core.auth import CurrentUser, get_current_user
from core.database import get_db
from core.response_models import StandardResponse
from core.response_utils import create_response
from ..schemas.auth_schemas import LoginRequest, LoginResponse, RegisterRequest, UserOut
from ..services.auth_service import get_user_profile, login_user, register_user

router = APIRouter(prefix="/auth", tags=["Authentication"])


@router.post(
    "/register",
    response_model=StandardResponse[UserOut],
    status_code=status.HTTP_201_CREATED,
)
async def register(request: RegisterRequest, db: Session = Depends(get_db)):
    """Create a user with one of the fixed roles."""
    user = await register_user(db, request)
    return create_response(user, "User registered successfully")


@router.post("/login", response_model=StandardResponse[LoginResponse])
async def login(request: LoginRequest, db: Session = Depends(get_db)):
    """Exchange username and password for a bearer token."""
    result = await login_user(db, request)
    return create_response(result, "Login successful")


@router.get("/me", response_model=StandardResponse[UserOut])
async def me(
    current_user: CurrentUser = Depends(get_current_user),
    db: Session = Depends(get_db),
):
    return create_response(await get_user_profile(db, current_user.id))
