"""
hackathon_api/routes/users.py
User directory and self-service profile routes
"""
from fastapi import APIRouter, Depends, Query
from sqlalchemy.ext.asyncio import AsyncSession

from hackathon_api.config.settings import settings
from hackathon_api.database import get_db
from hackathon_api.orm.user import User, UserRole
from hackathon_api.rbac import get_current_user
from hackathon_api.schemas.common import page_offset, pagination_meta, success_response
from hackathon_api.schemas.users import PasswordChange, UserUpdate
from hackathon_api.services.user_service import UserService

router = APIRouter(prefix="/users", tags=["Users"])


@router.get("")
async def list_users(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    users, total = await UserService(db).list_users(page_offset(page, limit), limit)
    return success_response(
        "Users retrieved",
        [user.to_dict() for user in users],
        count=len(users),
        pagination=pagination_meta(page, limit, total),
    )


@router.get("/search")
async def search_users(
    q: str = Query(..., min_length=2, max_length=100),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    users = await UserService(db).search(q)
    return success_response("Search results", [user.to_dict() for user in users], count=len(users))


@router.get("/role/{role}")
async def list_users_by_role(
    role: UserRole,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    users = await UserService(db).list_by_role(role)
    return success_response(
        f"Users with role {role.value}",
        [user.to_dict() for user in users],
        count=len(users),
    )


@router.patch("/me")
async def update_me(
    data: UserUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user = await UserService(db).update_profile(current_user, data)
    return success_response("Profile updated", user.to_dict())


@router.post("/me/password")
async def change_password(
    data: PasswordChange,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await UserService(db).change_password(current_user, data)
    return success_response("Password changed successfully")


@router.get("/{user_id}")
async def get_user(
    user_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    user = await UserService(db).get(user_id)
    return success_response("User retrieved", user.to_dict())
