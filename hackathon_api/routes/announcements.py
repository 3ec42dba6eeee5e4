"""
hackathon_api/routes/announcements.py
Event announcement routes (organizer writes, participant reads)
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from hackathon_api.database import get_db
from hackathon_api.document_store import DocumentStore, get_document_store
from hackathon_api.orm.user import User, UserRole
from hackathon_api.rbac import get_current_user, require_roles
from hackathon_api.schemas.common import success_response
from hackathon_api.schemas.documents import AnnouncementCreate, AnnouncementUpdate
from hackathon_api.services.announcement_service import AnnouncementService

router = APIRouter(prefix="/announcements", tags=["Announcements"])


def get_announcement_service(
    db: AsyncSession = Depends(get_db),
    documents: DocumentStore = Depends(get_document_store),
) -> AnnouncementService:
    return AnnouncementService(db, documents)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_announcement(
    data: AnnouncementCreate,
    service: AnnouncementService = Depends(get_announcement_service),
    current_user: User = Depends(require_roles(UserRole.organizer)),
):
    announcement = await service.create(current_user, data)
    return success_response("Announcement created successfully", announcement)


@router.get("/my-important")
async def my_important_announcements(
    service: AnnouncementService = Depends(get_announcement_service),
    current_user: User = Depends(get_current_user),
):
    announcements = await service.my_important(current_user)
    return success_response("Important announcements", announcements, count=len(announcements))


@router.get("/event/{event_id}")
async def list_event_announcements(
    event_id: int,
    important: Optional[bool] = Query(None),
    service: AnnouncementService = Depends(get_announcement_service),
    current_user: User = Depends(get_current_user),
):
    announcements = await service.list_by_event(event_id, current_user, important)
    return success_response("Announcements retrieved", announcements, count=len(announcements))


@router.get("/{announcement_id}")
async def get_announcement(
    announcement_id: str,
    service: AnnouncementService = Depends(get_announcement_service),
    current_user: User = Depends(get_current_user),
):
    return success_response("Announcement retrieved", await service.get(announcement_id, current_user))


@router.patch("/{announcement_id}")
async def update_announcement(
    announcement_id: str,
    data: AnnouncementUpdate,
    service: AnnouncementService = Depends(get_announcement_service),
    current_user: User = Depends(require_roles(UserRole.organizer)),
):
    announcement = await service.update(announcement_id, current_user, data)
    return success_response("Announcement updated successfully", announcement)


@router.delete("/{announcement_id}")
async def delete_announcement(
    announcement_id: str,
    service: AnnouncementService = Depends(get_announcement_service),
    current_user: User = Depends(require_roles(UserRole.organizer)),
):
    await service.delete(announcement_id, current_user)
    return success_response("Announcement deleted successfully")
