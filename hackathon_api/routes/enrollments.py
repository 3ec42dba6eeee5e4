"""
hackathon_api/routes/enrollments.py
Event enrollment routes (enroll, cancel, team association, staff views)
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from hackathon_api.config.settings import settings
from hackathon_api.database import get_db
from hackathon_api.orm.enrollment import EnrollmentStatus
from hackathon_api.orm.user import User
from hackathon_api.rbac import get_current_user
from hackathon_api.schemas.common import page_offset, pagination_meta, success_response
from hackathon_api.schemas.events import EnrollmentTeamLink
from hackathon_api.services.enrollment_service import EnrollmentService

router = APIRouter(tags=["Enrollments"])


@router.post("/events/{event_id}/enroll", status_code=status.HTTP_201_CREATED)
async def enroll(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    enrollment = await EnrollmentService(db).enroll(event_id, current_user)
    if enrollment.status == EnrollmentStatus.WAITLISTED:
        message = "Event is full; you have been added to the waitlist"
    else:
        message = "Enrolled successfully"
    return success_response(message, enrollment.to_dict())


@router.post("/events/{event_id}/cancel")
async def cancel_enrollment(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    enrollment, promoted = await EnrollmentService(db).cancel(event_id, current_user)
    data = enrollment.to_dict()
    data["promoted_user_id"] = promoted.user_id if promoted else None
    return success_response("Enrollment cancelled", data)


@router.patch("/events/{event_id}/enrollment/team")
async def associate_team(
    event_id: int,
    link: EnrollmentTeamLink,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    enrollment = await EnrollmentService(db).associate_team(event_id, current_user, link.team_id)
    message = "Team association cleared" if link.team_id is None else "Team associated with enrollment"
    return success_response(message, enrollment.to_dict())


@router.get("/events/{event_id}/enrollments")
async def list_enrollments(
    event_id: int,
    status_filter: Optional[EnrollmentStatus] = Query(None, alias="status"),
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    enrollments, total = await EnrollmentService(db).list_for_event(
        event_id, current_user, status_filter, page_offset(page, limit), limit
    )
    return success_response(
        "Enrollments retrieved",
        [enrollment.to_dict(include_user=True) for enrollment in enrollments],
        count=len(enrollments),
        pagination=pagination_meta(page, limit, total),
    )


@router.get("/events/{event_id}/enrollment-stats")
async def enrollment_stats(
    event_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return success_response("Enrollment statistics", await EnrollmentService(db).stats(event_id, current_user))


@router.get("/enrollments/me")
async def my_enrollments(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    enrollments = await EnrollmentService(db).my_enrollments(current_user)
    return success_response("Your enrollments", enrollments, count=len(enrollments))
