"""
hackathon_api/routes/events.py
Event management routes

Reads are public; creating an event requires the organizer role and
changing one requires owning it.
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from hackathon_api.config.settings import settings
from hackathon_api.database import get_db
from hackathon_api.orm.user import User, UserRole
from hackathon_api.rbac import get_current_user, require_roles
from hackathon_api.schemas.common import page_offset, pagination_meta, success_response
from hackathon_api.schemas.events import EventCreate, EventUpdate
from hackathon_api.services.event_service import EventService
from hackathon_api.services.team_service import TeamService

router = APIRouter(prefix="/events", tags=["Events"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_event(
    data: EventCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(require_roles(UserRole.organizer)),
):
    event = await EventService(db).create(current_user, data)
    return success_response("Event created successfully", event.to_dict())


@router.get("")
async def list_events(
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    is_active: Optional[bool] = Query(True),
    organizer_id: Optional[int] = Query(None, gt=0),
    db: AsyncSession = Depends(get_db),
):
    events, total = await EventService(db).list_events(
        page_offset(page, limit), limit, is_active=is_active, organizer_id=organizer_id
    )
    return success_response(
        "Events retrieved",
        [event.to_dict() for event in events],
        count=len(events),
        pagination=pagination_meta(page, limit, total),
    )


@router.get("/{event_id}")
async def get_event(event_id: int, db: AsyncSession = Depends(get_db)):
    return success_response("Event retrieved", await EventService(db).get_details(event_id))


@router.patch("/{event_id}")
async def update_event(
    event_id: int,
    data: EventUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    event = await EventService(db).update(event_id, current_user, data)
    return success_response("Event updated successfully", event.to_dict())


@router.delete("/{event_id}")
async def delete_event(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    cancelled = await EventService(db).delete(event_id, current_user)
    return success_response(
        "Event deleted successfully",
        {"event_id": event_id, "cancelled_enrollments": cancelled},
    )


@router.get("/{event_id}/teams")
async def list_event_teams(
    event_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
):
    teams, total = await TeamService(db).list_event_teams(event_id, page_offset(page, limit), limit)
    return success_response(
        "Teams retrieved",
        teams,
        count=len(teams),
        pagination=pagination_meta(page, limit, total),
    )
