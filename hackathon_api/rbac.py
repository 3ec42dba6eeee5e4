"""
hackathon_api/rbac.py
Authentication and Role-Based Access Control

- Passwords hashed with bcrypt through passlib (off the event loop)
- Bearer access tokens signed with python-jose (`sub` = user id, `role` claim)
- `get_current_user` resolves the token to an active User
- `require_roles(...)` gates a route on the caller's global role
"""
import asyncio
import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Depends
from fastapi.security import OAuth2PasswordBearer
from jose import ExpiredSignatureError, JWTError, jwt
from passlib.context import CryptContext
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hackathon_api.config.settings import settings
from hackathon_api.database import get_db
from hackathon_api.errors import ErrorCode, ForbiddenError, UnauthorizedError
from hackathon_api.orm.user import User, UserRole

logger = logging.getLogger(__name__)

# ================= CONFIG =================

pwd_context = CryptContext(
    schemes=["bcrypt"],
    deprecated="auto",
    bcrypt__rounds=settings.BCRYPT_ROUNDS,
)
oauth2_scheme = OAuth2PasswordBearer(tokenUrl="/api/auth/login")


# ================= PASSWORDS =================

def normalize_password(password: str) -> str:
    """
    bcrypt only supports 72 bytes.
    We safely truncate AFTER UTF-8 encoding to preserve compatibility.
    """
    encoded = password.encode("utf-8")
    if len(encoded) > 72:
        encoded = encoded[:72]
    return encoded.decode("utf-8", errors="ignore")


def hash_password(password: str) -> str:
    return pwd_context.hash(normalize_password(password))


def verify_password(plain: str, hashed: str) -> bool:
    try:
        return pwd_context.verify(normalize_password(plain), hashed)
    except ValueError:
        # Unrecognised hash format (e.g. OAuth-provisioned account)
        return False


async def hash_password_async(password: str) -> str:
    """Async-friendly password hashing that doesn't block the event loop."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, hash_password, password)


async def verify_password_async(plain: str, hashed: str) -> bool:
    """Async-friendly password verification that doesn't block the event loop."""
    loop = asyncio.get_running_loop()
    return await loop.run_in_executor(None, verify_password, plain, hashed)


# ================= TOKEN UTILS =================

def create_access_token(user: User, expires_delta: Optional[timedelta] = None) -> str:
    """Create JWT access token carrying the user id and global role"""
    expire = datetime.now(timezone.utc) + (
        expires_delta or timedelta(minutes=settings.ACCESS_TOKEN_EXPIRE_MINUTES)
    )
    to_encode = {
        "sub": str(user.id),
        "role": user.role.value,
        "exp": expire,
        "type": "access",
    }
    return jwt.encode(to_encode, settings.JWT_SECRET_KEY, algorithm=settings.JWT_ALGORITHM)


def decode_token(token: str) -> dict:
    """Decode and validate JWT token, raising 401 on any failure"""
    try:
        return jwt.decode(token, settings.JWT_SECRET_KEY, algorithms=[settings.JWT_ALGORITHM])
    except ExpiredSignatureError:
        raise UnauthorizedError("Token has expired", code=ErrorCode.AUTH_EXPIRED)
    except JWTError:
        raise UnauthorizedError("Invalid or expired token", code=ErrorCode.AUTH_INVALID)


# ================= AUTH DEPENDENCIES =================

async def get_current_user(
    token: str = Depends(oauth2_scheme),
    db: AsyncSession = Depends(get_db),
) -> User:
    """
    Get current authenticated user from JWT access token.
    Returns 401 if token is invalid, expired, or the user is deactivated.
    """
    payload = decode_token(token)

    if payload.get("type") != "access":
        raise UnauthorizedError("Invalid token type", code=ErrorCode.AUTH_INVALID)

    try:
        user_id = int(payload.get("sub"))
    except (TypeError, ValueError):
        raise UnauthorizedError("Invalid token payload", code=ErrorCode.AUTH_INVALID)

    result = await db.execute(select(User).where(User.id == user_id))
    user = result.scalar_one_or_none()

    if not user or not user.is_active:
        raise UnauthorizedError("User not found or inactive", code=ErrorCode.AUTH_INVALID)

    return user


def require_roles(*allowed_roles: UserRole):
    """
    Dependency factory: require one of the given global roles.
    Usage: current_user: User = Depends(require_roles(UserRole.organizer))
    """
    async def dependency(current_user: User = Depends(get_current_user)) -> User:
        if current_user.role not in allowed_roles:
            logger.warning(
                f"Access denied: User {current_user.id} with role {current_user.role.value} "
                f"attempted to access resource requiring {[r.value for r in allowed_roles]}"
            )
            raise ForbiddenError(
                f"This action requires one of: {[r.value for r in allowed_roles]}",
                code=ErrorCode.PERMISSION_DENIED,
                details={"current_role": current_user.role.value}
            )
        return current_user
    return dependency


def require_event_organizer(event, user: User) -> None:
    """Ownership check: only the event's organizer may manage it."""
    if event.organizer_id != user.id:
        logger.warning(f"User {user.id} is not the organizer of event {event.id}")
        raise ForbiddenError(
            "Only the organizer of this event can perform this action",
            code=ErrorCode.NOT_EVENT_ORGANIZER
        )


def require_event_staff(event, user: User) -> None:
    """The event's organizer or any judge."""
    if event.organizer_id == user.id or user.role == UserRole.judge:
        return
    logger.warning(f"User {user.id} denied staff access to event {event.id}")
    raise ForbiddenError(
        "Only the event organizer or judges can access this resource",
        code=ErrorCode.PERMISSION_DENIED
    )
