"""
hackathon_api/routes/auth.py
Authentication routes: registration, login (rate limited) and current user
"""
import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.ext.asyncio import AsyncSession

from hackathon_api.config.settings import settings
from hackathon_api.database import get_db
from hackathon_api.orm.user import User
from hackathon_api.rate_limit import limiter
from hackathon_api.rbac import create_access_token, get_current_user
from hackathon_api.schemas.common import success_response
from hackathon_api.schemas.users import Token, UserLogin, UserRegister
from hackathon_api.services.user_service import UserService

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["Authentication"])


def _token_for(user: User) -> dict:
    return Token(
        access_token=create_access_token(user),
        role=user.role.value,
        user_id=user.id,
    ).model_dump()


@router.post("/register", status_code=status.HTTP_201_CREATED)
async def register(
    user_data: UserRegister,
    db: AsyncSession = Depends(get_db),
):
    """
    Register a new user.
    Returns the created user together with an access token.
    """
    user = await UserService(db).register(user_data)
    data = user.to_dict()
    data["token"] = _token_for(user)
    return success_response("User registered successfully", data)


@router.post("/login")
@limiter.limit(settings.LOGIN_RATE_LIMIT)
async def login(
    request: Request,
    credentials: UserLogin,
    db: AsyncSession = Depends(get_db),
):
    """JSON login; rate limited per client address."""
    user = await UserService(db).authenticate(credentials.email, credentials.password)
    logger.info(f"User logged in: id={user.id}")
    return success_response("Login successful", _token_for(user))


@router.get("/me")
async def me(current_user: User = Depends(get_current_user)):
    return success_response("Current user", current_user.to_dict())
