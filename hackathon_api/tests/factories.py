"""
Row builders shared by the service and API tests
"""
from datetime import timedelta
from typing import Dict

from sqlalchemy.ext.asyncio import AsyncSession

from hackathon_api.orm.enrollment import EnrollmentStatus, EventEnrollment
from hackathon_api.orm.event import Event
from hackathon_api.orm.team import Team, TeamMember, TeamRole
from hackathon_api.orm.user import User, UserRole
from hackathon_api.rbac import create_access_token
from hackathon_api.utils.timeutil import utcnow


async def make_user(session: AsyncSession, email: str, role: UserRole = UserRole.participant, name: str = None) -> User:
    user = User(
        name=name or email.split("@")[0].title(),
        email=email,
        password_hash="hashed",
        role=role,
        is_active=True,
    )
    session.add(user)
    await session.commit()
    await session.refresh(user)
    return user


async def make_event(session: AsyncSession, organizer: User, **overrides) -> Event:
    now = utcnow()
    values = dict(
        name="Spring Hack",
        organizer_id=organizer.id,
        start_date=now + timedelta(days=7),
        end_date=now + timedelta(days=9),
        submission_deadline=now + timedelta(days=8),
        max_team_size=3,
        is_active=True,
    )
    values.update(overrides)
    event = Event(**values)
    session.add(event)
    await session.commit()
    await session.refresh(event)
    return event


async def make_enrollment(
    session: AsyncSession,
    event: Event,
    user: User,
    status: EnrollmentStatus = EnrollmentStatus.ENROLLED,
) -> EventEnrollment:
    enrollment = EventEnrollment(event_id=event.id, user_id=user.id, status=status, enrolled_at=utcnow())
    session.add(enrollment)
    await session.commit()
    await session.refresh(enrollment)
    return enrollment


async def make_team(session: AsyncSession, event: Event, leader: User, *members: User, name: str = "Byte Me") -> Team:
    team = Team(event_id=event.id, name=name, created_by=leader.id)
    session.add(team)
    await session.flush()
    session.add(TeamMember(team_id=team.id, event_id=event.id, user_id=leader.id, role=TeamRole.LEADER))
    for member in members:
        session.add(TeamMember(team_id=team.id, event_id=event.id, user_id=member.id, role=TeamRole.MEMBER))
    await session.commit()
    await session.refresh(team)
    return team


def auth_headers(user: User) -> Dict[str, str]:
    return {"Authorization": f"Bearer {create_access_token(user)}"}
