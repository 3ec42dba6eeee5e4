"""
hackathon_api/services/event_service.py
Organizer-owned event lifecycle

- Schedule invariants: start_date < end_date, submission_deadline <= end_date
- Only the owning organizer may update or delete
- Delete is a soft delete that cancels every live enrollment in the same commit
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func
from sqlalchemy.ext.asyncio import AsyncSession

from hackathon_api.config.settings import settings
from hackathon_api.errors import (
    BadRequestError, ErrorCode, InvalidStateError, NotFoundError
)
from hackathon_api.orm.enrollment import EnrollmentStatus, EventEnrollment
from hackathon_api.orm.event import Event
from hackathon_api.orm.team import Team, TeamMember
from hackathon_api.orm.user import User
from hackathon_api.rbac import require_event_organizer
from hackathon_api.schemas.events import EventCreate, EventUpdate
from hackathon_api.services.enrollment_service import EnrollmentService

logger = logging.getLogger(__name__)


def validate_schedule(start_date, end_date, submission_deadline=None) -> None:
    errors = []
    if start_date >= end_date:
        errors.append({"field": "end_date", "message": "end_date must be after start_date"})
    if submission_deadline is not None and submission_deadline > end_date:
        errors.append({
            "field": "submission_deadline",
            "message": "submission_deadline must be before or equal to end_date"
        })
    if errors:
        raise BadRequestError("Invalid event schedule", code=ErrorCode.VALIDATION_ERROR, errors=errors)


class EventService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def get(self, event_id: int) -> Event:
        result = await self.db.execute(
            select(Event).where(Event.id == event_id).execution_options(populate_existing=True)
        )
        event = result.scalar_one_or_none()
        if not event:
            raise NotFoundError("Event", event_id)
        return event

    async def create(self, organizer: User, data: EventCreate) -> Event:
        validate_schedule(data.start_date, data.end_date, data.submission_deadline)

        values = data.model_dump()
        if values.get("max_team_size") is None:
            values["max_team_size"] = settings.DEFAULT_MAX_TEAM_SIZE

        event = Event(organizer_id=organizer.id, is_active=True, **values)
        self.db.add(event)
        await self.db.commit()
        await self.db.refresh(event)

        logger.info(f"Event created: id={event.id} organizer={organizer.id}")
        return event

    async def list_events(
        self,
        offset: int,
        limit: int,
        is_active: Optional[bool] = True,
        organizer_id: Optional[int] = None,
    ) -> Tuple[List[Event], int]:
        query = select(Event)
        if is_active is not None:
            query = query.where(Event.is_active.is_(is_active))
        if organizer_id is not None:
            query = query.where(Event.organizer_id == organizer_id)

        total = (await self.db.execute(
            select(func.count()).select_from(query.subquery())
        )).scalar() or 0
        result = await self.db.execute(
            query.order_by(Event.start_date.desc(), Event.id.desc()).offset(offset).limit(limit)
        )
        return list(result.scalars().all()), total

    async def get_details(self, event_id: int) -> Dict[str, Any]:
        event = await self.get(event_id)
        enrolled = (await self.db.execute(
            select(func.count(EventEnrollment.id)).where(
                EventEnrollment.event_id == event_id,
                EventEnrollment.status == EnrollmentStatus.ENROLLED,
            )
        )).scalar() or 0
        teams = (await self.db.execute(
            select(func.count(Team.id)).where(Team.event_id == event_id)
        )).scalar() or 0

        data = event.to_dict()
        data["enrolled_count"] = enrolled
        data["team_count"] = teams
        if event.organizer:
            data["organizer"] = {"id": event.organizer.id, "name": event.organizer.name}
        return data

    async def _largest_team_size(self, event_id: int) -> int:
        sizes = (
            select(func.count(TeamMember.id).label("size"))
            .where(TeamMember.event_id == event_id)
            .group_by(TeamMember.team_id)
            .subquery()
        )
        result = await self.db.execute(select(func.max(sizes.c.size)))
        return result.scalar() or 0

    async def update(self, event_id: int, actor: User, data: EventUpdate) -> Event:
        event = await self.get(event_id)
        require_event_organizer(event, actor)
        if not event.is_active:
            raise InvalidStateError("Cannot update a deleted event", code=ErrorCode.EVENT_INACTIVE)

        changes = data.model_dump(exclude_unset=True)
        for field in ("name", "mode", "start_date", "end_date", "max_team_size"):
            if field in changes and changes[field] is None:
                changes.pop(field)

        validate_schedule(
            changes.get("start_date", event.start_date),
            changes.get("end_date", event.end_date),
            changes.get("submission_deadline", event.submission_deadline),
        )

        new_team_size = changes.get("max_team_size")
        if new_team_size is not None and new_team_size < event.max_team_size:
            largest = await self._largest_team_size(event.id)
            if largest > new_team_size:
                raise InvalidStateError(
                    f"A team in this event already has {largest} members",
                    code=ErrorCode.TEAM_SIZE_BELOW_MEMBERS,
                    details={"largest_team_size": largest},
                )

        capacity_changed = (
            "max_participants" in changes and changes["max_participants"] != event.max_participants
        )

        for field, value in changes.items():
            setattr(event, field, value)

        if capacity_changed:
            await EnrollmentService(self.db).promote_waitlisted(event.id, event.max_participants)

        await self.db.commit()
        await self.db.refresh(event)
        logger.info(f"Event updated: id={event.id} fields={sorted(changes)}")
        return event

    async def delete(self, event_id: int, actor: User) -> int:
        """Soft delete; returns how many enrollments were cancelled."""
        event = await self.get(event_id)
        require_event_organizer(event, actor)
        if not event.is_active:
            raise InvalidStateError("Event is already deleted", code=ErrorCode.EVENT_INACTIVE)

        event.is_active = False
        cancelled = await EnrollmentService(self.db).cancel_all_for_event(event.id)
        await self.db.commit()

        logger.info(f"Event soft-deleted: id={event.id} cancelled_enrollments={cancelled}")
        return cancelled
