"""
hackathon_api/services/user_service.py
User accounts: registration, login, profile and password management
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func, or_
from sqlalchemy.ext.asyncio import AsyncSession

from hackathon_api.errors import (
    BadRequestError, ConflictError, ErrorCode, NotFoundError, UnauthorizedError
)
from hackathon_api.orm.user import User, UserRole
from hackathon_api.rbac import hash_password_async, verify_password_async
from hackathon_api.schemas.users import PasswordChange, UserRegister, UserUpdate

logger = logging.getLogger(__name__)


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get_by_email(self, email: str) -> Optional[User]:
        result = await self.db.execute(select(User).where(User.email == email.lower()))
        return result.scalar_one_or_none()

    async def get(self, user_id: int) -> User:
        result = await self.db.execute(select(User).where(User.id == user_id))
        user = result.scalar_one_or_none()
        if not user:
            raise NotFoundError("User", user_id)
        return user

    async def register(self, data: UserRegister) -> User:
        if await self.get_by_email(data.email):
            logger.warning(f"Email already registered: {data.email}")
            raise ConflictError("Email already registered", code=ErrorCode.EMAIL_EXISTS)

        user = User(
            name=data.name,
            email=data.email,
            password_hash=await hash_password_async(data.password),
            auth_provider=data.auth_provider,
            role=data.role,
        )
        self.db.add(user)
        await self.db.commit()
        await self.db.refresh(user)

        logger.info(f"User registered: id={user.id} role={user.role.value}")
        return user

    async def authenticate(self, email: str, password: str) -> User:
        user = await self.get_by_email(email)
        if not user or not await verify_password_async(password, user.password_hash):
            logger.warning(f"Failed login attempt for {email}")
            raise UnauthorizedError("Invalid email or password", code=ErrorCode.INVALID_CREDENTIALS)
        if not user.is_active:
            raise UnauthorizedError("Account is deactivated", code=ErrorCode.AUTH_INVALID)
        return user

    async def list_users(self, offset: int, limit: int) -> Tuple[List[User], int]:
        base = select(User).where(User.is_active.is_(True))
        total = (await self.db.execute(
            select(func.count()).select_from(base.subquery())
        )).scalar() or 0
        result = await self.db.execute(base.order_by(User.id).offset(offset).limit(limit))
        return list(result.scalars().all()), total

    async def search(self, term: str, limit: int = 20) -> List[User]:
        pattern = f"%{term.strip()}%"
        result = await self.db.execute(
            select(User)
            .where(User.is_active.is_(True))
            .where(or_(User.name.ilike(pattern), User.email.ilike(pattern)))
            .order_by(User.name)
            .limit(limit)
        )
        return list(result.scalars().all())

    async def list_by_role(self, role: UserRole) -> List[User]:
        result = await self.db.execute(
            select(User)
            .where(User.role == role, User.is_active.is_(True))
            .order_by(User.id)
        )
        return list(result.scalars().all())

    async def update_profile(self, user: User, data: UserUpdate) -> User:
        if data.email and data.email != user.email:
            existing = await self.get_by_email(data.email)
            if existing and existing.id != user.id:
                raise ConflictError("Email already in use", code=ErrorCode.EMAIL_EXISTS)
            user.email = data.email
        if data.name:
            user.name = data.name.strip()

        await self.db.commit()
        await self.db.refresh(user)
        logger.info(f"Profile updated: user={user.id}")
        return user

    async def change_password(self, user: User, data: PasswordChange) -> None:
        if not await verify_password_async(data.current_password, user.password_hash):
            raise UnauthorizedError("Current password is incorrect", code=ErrorCode.INVALID_CREDENTIALS)
        if data.new_password != data.confirm_password:
            raise BadRequestError(
                "New password and confirmation do not match",
                errors=[{"field": "confirm_password", "message": "Must match new_password"}]
            )

        user.password_hash = await hash_password_async(data.new_password)
        await self.db.commit()
        logger.info(f"Password changed: user={user.id}")

    async def summaries(self, user_ids) -> Dict[int, Dict[str, Any]]:
        """id -> {id, name, email} for attaching user details to documents."""
        user_ids = set(user_ids)
        if not user_ids:
            return {}
        result = await self.db.execute(
            select(User.id, User.name, User.email).where(User.id.in_(user_ids))
        )
        return {row.id: {"id": row.id, "name": row.name, "email": row.email} for row in result.all()}
