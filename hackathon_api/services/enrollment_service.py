"""
hackathon_api/services/enrollment_service.py
Event enrollment lifecycle

Loads the facts the enrollment rules need, applies the outcome and commits.
Team membership changes call `clear_team_link` so a removed user's
enrollment never points at a team they no longer belong to.

Capacity: when an event has max_participants, enrollments beyond it are
Waitlisted; cancelling an Enrolled row promotes the earliest Waitlisted one.
"""
import logging
from typing import Any, Dict, Iterable, List, Optional, Tuple

from sqlalchemy import select, func, update
from sqlalchemy.ext.asyncio import AsyncSession

from hackathon_api.errors import NotFoundError, error_from_rejection
from hackathon_api.orm.enrollment import EnrollmentStatus, EventEnrollment
from hackathon_api.orm.event import Event
from hackathon_api.orm.team import Team, TeamMember
from hackathon_api.orm.user import User
from hackathon_api.rbac import require_event_staff
from hackathon_api.services.reference_validator import ReferenceValidator
from hackathon_api.state_machines.enrollment import (
    EnrollmentAction, EnrollmentContext, EnrollmentState, evaluate, source_statuses
)
from hackathon_api.utils.timeutil import utcnow

logger = logging.getLogger(__name__)


class EnrollmentService:
    def __init__(self, db: AsyncSession):
        self.db = db

    # ================= LOOKUPS =================

    async def _get_event(self, event_id: int) -> Event:
        result = await self.db.execute(select(Event).where(Event.id == event_id))
        event = result.scalar_one_or_none()
        if not event:
            raise NotFoundError("Event", event_id)
        return event

    async def get_enrollment(self, event_id: int, user_id: int, lock: bool = False) -> Optional[EventEnrollment]:
        query = select(EventEnrollment).where(
            EventEnrollment.event_id == event_id,
            EventEnrollment.user_id == user_id,
        )
        if lock:
            query = query.with_for_update()
        result = await self.db.execute(query)
        return result.scalar_one_or_none()

    async def is_enrolled(self, event_id: int, user_id: int) -> bool:
        enrollment = await self.get_enrollment(event_id, user_id)
        return enrollment is not None and enrollment.status == EnrollmentStatus.ENROLLED

    async def _count(self, event_id: int, status: EnrollmentStatus) -> int:
        result = await self.db.execute(
            select(func.count(EventEnrollment.id)).where(
                EventEnrollment.event_id == event_id,
                EventEnrollment.status == status,
            )
        )
        return result.scalar() or 0

    # ================= TRANSITIONS =================

    async def enroll(self, event_id: int, user: User) -> EventEnrollment:
        event = await self._get_event(event_id)
        enrollment = await self.get_enrollment(event_id, user.id, lock=True)

        at_capacity = False
        if event.max_participants is not None:
            at_capacity = await self._count(event_id, EnrollmentStatus.ENROLLED) >= event.max_participants

        outcome = evaluate(
            EnrollmentState.of(enrollment),
            EnrollmentAction.ENROLL,
            EnrollmentContext(
                event_active=event.is_active,
                event_started=event.has_started(utcnow()),
                at_capacity=at_capacity,
            ),
        )
        if not outcome.allowed:
            logger.warning(f"Enroll rejected: event={event_id} user={user.id} code={outcome.code}")
            raise error_from_rejection(outcome)

        status = outcome.new_state.to_status()
        now = utcnow()
        if enrollment is None:
            enrollment = EventEnrollment(event_id=event_id, user_id=user.id, status=status, enrolled_at=now)
            self.db.add(enrollment)
        else:
            # Re-enrolling after a cancellation reuses the row
            enrollment.status = status
            enrollment.team_id = None
            enrollment.enrolled_at = now

        await self.db.commit()
        await self.db.refresh(enrollment)
        logger.info(f"Enrollment {status.value}: event={event_id} user={user.id}")
        return enrollment

    async def cancel(self, event_id: int, user: User) -> Tuple[EventEnrollment, Optional[EventEnrollment]]:
        """Cancel the caller's enrollment; returns (cancelled, promoted-or-None)."""
        event = await self._get_event(event_id)
        enrollment = await self.get_enrollment(event_id, user.id, lock=True)

        current = EnrollmentState.of(enrollment)
        outcome = evaluate(
            current,
            EnrollmentAction.CANCEL,
            EnrollmentContext(event_active=event.is_active, event_started=event.has_started(utcnow())),
        )
        if not outcome.allowed:
            logger.warning(f"Cancel rejected: event={event_id} user={user.id} code={outcome.code}")
            raise error_from_rejection(outcome)

        enrollment.status = outcome.new_state.to_status()
        enrollment.team_id = None

        promoted = None
        if current == EnrollmentState.ENROLLED:
            promoted = await self._promote_next(event_id)

        await self.db.commit()
        await self.db.refresh(enrollment)
        if promoted is not None:
            await self.db.refresh(promoted)
            logger.info(f"Waitlist promotion: event={event_id} user={promoted.user_id}")
        logger.info(f"Enrollment cancelled: event={event_id} user={user.id}")
        return enrollment, promoted

    async def _promote_next(self, event_id: int) -> Optional[EventEnrollment]:
        result = await self.db.execute(
            select(EventEnrollment)
            .where(
                EventEnrollment.event_id == event_id,
                EventEnrollment.status == EnrollmentStatus.WAITLISTED,
            )
            .order_by(EventEnrollment.enrolled_at, EventEnrollment.id)
            .limit(1)
            .with_for_update()
        )
        waiting = result.scalar_one_or_none()
        if waiting is None:
            return None

        outcome = evaluate(EnrollmentState.of(waiting), EnrollmentAction.PROMOTE, EnrollmentContext())
        waiting.status = outcome.new_state.to_status()
        return waiting

    async def promote_waitlisted(self, event_id: int, max_participants: Optional[int]) -> List[EventEnrollment]:
        """
        Fill seats freed by a capacity change, earliest Waitlisted first.
        A cleared limit (None) promotes everyone waiting. Caller commits.
        """
        query = (
            select(EventEnrollment)
            .where(
                EventEnrollment.event_id == event_id,
                EventEnrollment.status == EnrollmentStatus.WAITLISTED,
            )
            .order_by(EventEnrollment.enrolled_at, EventEnrollment.id)
            .with_for_update()
        )
        if max_participants is not None:
            free = max_participants - await self._count(event_id, EnrollmentStatus.ENROLLED)
            if free <= 0:
                return []
            query = query.limit(free)

        promoted = []
        for waiting in (await self.db.execute(query)).scalars().all():
            outcome = evaluate(EnrollmentState.of(waiting), EnrollmentAction.PROMOTE, EnrollmentContext())
            waiting.status = outcome.new_state.to_status()
            promoted.append(waiting)

        if promoted:
            logger.info(f"Waitlist promotion: event={event_id} users={[row.user_id for row in promoted]}")
        return promoted

    async def cancel_all_for_event(self, event_id: int) -> int:
        """Cascade for event soft delete; returns the number of rows cancelled. Caller commits."""
        result = await self.db.execute(
            select(EventEnrollment.id).where(
                EventEnrollment.event_id == event_id,
                EventEnrollment.status.in_(list(source_statuses(EnrollmentAction.EVENT_DELETED))),
            )
        )
        ids = list(result.scalars().all())
        if not ids:
            return 0

        await self.db.execute(
            update(EventEnrollment)
            .where(EventEnrollment.id.in_(ids))
            .values(status=EnrollmentStatus.CANCELLED, team_id=None, updated_at=utcnow())
        )
        return len(ids)

    async def clear_team_link(self, event_id: int, user_ids: Iterable[int]) -> None:
        """Drop the team association of users who left a team. Caller commits."""
        user_ids = list(user_ids)
        if not user_ids:
            return
        await self.db.execute(
            update(EventEnrollment)
            .where(
                EventEnrollment.event_id == event_id,
                EventEnrollment.user_id.in_(user_ids),
                EventEnrollment.team_id.is_not(None),
            )
            .values(team_id=None, updated_at=utcnow())
        )

    async def associate_team(self, event_id: int, user: User, team_id: Optional[int]) -> EventEnrollment:
        await self._get_event(event_id)
        enrollment = await self.get_enrollment(event_id, user.id, lock=True)

        if team_id is None:
            context = EnrollmentContext(clearing_team=True)
        else:
            await ReferenceValidator(self.db).require(team_id=team_id)
            team = (await self.db.execute(select(Team).where(Team.id == team_id))).scalar_one()
            member = (await self.db.execute(
                select(TeamMember.id).where(TeamMember.team_id == team_id, TeamMember.user_id == user.id)
            )).scalar_one_or_none()
            context = EnrollmentContext(
                team_in_event=team.event_id == event_id,
                user_in_team=member is not None,
            )

        outcome = evaluate(EnrollmentState.of(enrollment), EnrollmentAction.ASSOCIATE_TEAM, context)
        if not outcome.allowed:
            logger.warning(f"Team link rejected: event={event_id} user={user.id} code={outcome.code}")
            raise error_from_rejection(outcome)

        enrollment.team_id = team_id
        await self.db.commit()
        await self.db.refresh(enrollment)
        logger.info(f"Enrollment team link: event={event_id} user={user.id} team={team_id}")
        return enrollment

    # ================= READS =================

    async def list_for_event(
        self,
        event_id: int,
        actor: User,
        status: Optional[EnrollmentStatus],
        offset: int,
        limit: int,
    ) -> Tuple[List[EventEnrollment], int]:
        event = await self._get_event(event_id)
        require_event_staff(event, actor)

        query = select(EventEnrollment).where(EventEnrollment.event_id == event_id)
        if status is not None:
            query = query.where(EventEnrollment.status == status)

        total = (await self.db.execute(
            select(func.count()).select_from(query.subquery())
        )).scalar() or 0
        result = await self.db.execute(
            query.order_by(EventEnrollment.enrolled_at, EventEnrollment.id)
            .offset(offset)
            .limit(limit)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all()), total

    async def stats(self, event_id: int, actor: User) -> Dict[str, Any]:
        event = await self._get_event(event_id)
        require_event_staff(event, actor)

        rows = await self.db.execute(
            select(EventEnrollment.status, func.count(EventEnrollment.id))
            .where(EventEnrollment.event_id == event_id)
            .group_by(EventEnrollment.status)
        )
        by_status = {status.value: 0 for status in EnrollmentStatus}
        for status, count in rows.all():
            by_status[status.value] = count

        teams = (await self.db.execute(
            select(func.count(Team.id)).where(Team.event_id == event_id)
        )).scalar() or 0
        without_team = (await self.db.execute(
            select(func.count(EventEnrollment.id)).where(
                EventEnrollment.event_id == event_id,
                EventEnrollment.status == EnrollmentStatus.ENROLLED,
                EventEnrollment.team_id.is_(None),
            )
        )).scalar() or 0

        return {
            "event_id": event_id,
            "by_status": by_status,
            "total": sum(by_status.values()),
            "teams": teams,
            "enrolled_without_team": without_team,
        }

    async def my_enrollments(self, user: User) -> List[Dict[str, Any]]:
        result = await self.db.execute(
            select(EventEnrollment, Event.name, Event.start_date, Event.is_active)
            .join(Event, Event.id == EventEnrollment.event_id)
            .where(EventEnrollment.user_id == user.id)
            .order_by(Event.start_date.desc())
        )
        enrollments = []
        for enrollment, name, start_date, is_active in result.all():
            data = enrollment.to_dict()
            data["event"] = {
                "id": enrollment.event_id,
                "name": name,
                "start_date": start_date.isoformat() if start_date else None,
                "is_active": is_active,
            }
            enrollments.append(data)
        return enrollments
