"""
hackathon_api/services/team_service.py
Team membership operations

Every operation follows the same shape:
1. Load the team (row-locked for capacity-sensitive paths) and the caller's membership
2. Build a MembershipContext snapshot and evaluate the membership rule
3. Apply the outcome (membership rows, leader role, enrollment link) and commit once

CONCURRENCY:
Join takes SELECT ... FOR UPDATE on the team row so concurrent joiners on a
backend with row locks serialize on the capacity check. SQLite ignores
FOR UPDATE; there the (event_id, user_id) unique constraint still prevents
double membership, but two joiners can both pass the capacity check.
"""
import logging
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy import select, func, delete
from sqlalchemy.ext.asyncio import AsyncSession

from hackathon_api.errors import NotFoundError, error_from_rejection
from hackathon_api.orm.event import Event
from hackathon_api.orm.team import Team, TeamMember, TeamRole
from hackathon_api.orm.user import User
from hackathon_api.schemas.events import TeamCreate, TeamUpdate
from hackathon_api.services.enrollment_service import EnrollmentService
from hackathon_api.services.reference_validator import ReferenceValidator
from hackathon_api.state_machines.base import Outcome
from hackathon_api.state_machines.membership import (
    MembershipAction, MembershipContext, MembershipState, evaluate
)
from hackathon_api.utils.timeutil import utcnow

logger = logging.getLogger(__name__)

_ROLE_FOR_STATE = {
    MembershipState.LEADER: TeamRole.LEADER,
    MembershipState.MEMBER: TeamRole.MEMBER,
}


def membership_state(member: Optional[TeamMember]) -> MembershipState:
    if member is None:
        return MembershipState.NO_TEAM
    if member.role == TeamRole.LEADER:
        return MembershipState.LEADER
    return MembershipState.MEMBER


class TeamService:
    def __init__(self, db: AsyncSession):
        self.db = db
        self.enrollments = EnrollmentService(db)

    # ================= LOOKUPS =================

    async def get_team(self, team_id: int, lock: bool = False) -> Team:
        query = select(Team).where(Team.id == team_id)
        if lock:
            query = query.with_for_update()
        result = await self.db.execute(query)
        team = result.scalar_one_or_none()
        if not team:
            raise NotFoundError("Team", team_id)
        return team

    async def _get_event(self, event_id: int) -> Event:
        result = await self.db.execute(select(Event).where(Event.id == event_id))
        event = result.scalar_one_or_none()
        if not event:
            raise NotFoundError("Event", event_id)
        return event

    async def get_member(self, team_id: int, user_id: int) -> Optional[TeamMember]:
        result = await self.db.execute(
            select(TeamMember).where(TeamMember.team_id == team_id, TeamMember.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def get_event_membership(self, event_id: int, user_id: int) -> Optional[TeamMember]:
        result = await self.db.execute(
            select(TeamMember).where(TeamMember.event_id == event_id, TeamMember.user_id == user_id)
        )
        return result.scalar_one_or_none()

    async def count_members(self, team_id: int) -> int:
        result = await self.db.execute(
            select(func.count(TeamMember.id)).where(TeamMember.team_id == team_id)
        )
        return result.scalar() or 0

    async def _name_taken(self, event_id: int, name: str, exclude_team_id: Optional[int] = None) -> bool:
        query = select(Team.id).where(
            Team.event_id == event_id,
            func.lower(Team.name) == name.lower(),
        )
        if exclude_team_id is not None:
            query = query.where(Team.id != exclude_team_id)
        result = await self.db.execute(query)
        return result.first() is not None

    async def list_members(self, team_id: int) -> List[TeamMember]:
        result = await self.db.execute(
            select(TeamMember)
            .where(TeamMember.team_id == team_id)
            .order_by(TeamMember.joined_at, TeamMember.id)
            .execution_options(populate_existing=True)
        )
        return list(result.scalars().all())

    async def get_team_detail(self, team_id: int) -> Dict[str, Any]:
        team = await self.get_team(team_id)
        members = await self.list_members(team_id)
        return team.to_dict(members=members)

    async def list_event_teams(self, event_id: int, offset: int, limit: int) -> Tuple[List[Dict[str, Any]], int]:
        await self._get_event(event_id)

        member_count = (
            select(TeamMember.team_id, func.count(TeamMember.id).label("member_count"))
            .group_by(TeamMember.team_id)
            .subquery()
        )
        total = (await self.db.execute(
            select(func.count(Team.id)).where(Team.event_id == event_id)
        )).scalar() or 0
        result = await self.db.execute(
            select(Team, func.coalesce(member_count.c.member_count, 0))
            .outerjoin(member_count, member_count.c.team_id == Team.id)
            .where(Team.event_id == event_id)
            .order_by(Team.created_at, Team.id)
            .offset(offset)
            .limit(limit)
        )
        teams = []
        for team, count in result.all():
            data = team.to_dict()
            data["member_count"] = count
            teams.append(data)
        return teams, total

    async def list_user_teams(self, user: User) -> List[Dict[str, Any]]:
        result = await self.db.execute(
            select(Team, TeamMember.role)
            .join(TeamMember, TeamMember.team_id == Team.id)
            .where(TeamMember.user_id == user.id)
            .order_by(Team.created_at.desc())
        )
        teams = []
        for team, role in result.all():
            data = team.to_dict()
            data["my_role"] = role.value
            teams.append(data)
        return teams

    # ================= RULE APPLICATION =================

    def _check(self, outcome: Outcome, action: MembershipAction, team_id, user_id) -> Outcome:
        if not outcome.allowed:
            logger.warning(
                f"Membership {action.value} rejected: team={team_id} user={user_id} code={outcome.code}"
            )
            raise error_from_rejection(outcome)
        return outcome

    async def _delete_team(self, team: Team) -> None:
        """Remove every member, clear their enrollment links, drop the team. Caller commits."""
        result = await self.db.execute(select(TeamMember.user_id).where(TeamMember.team_id == team.id))
        user_ids = [row[0] for row in result.all()]
        await self.enrollments.clear_team_link(team.event_id, user_ids)
        await self.db.execute(delete(TeamMember).where(TeamMember.team_id == team.id))
        await self.db.execute(delete(Team).where(Team.id == team.id))

    # ================= OPERATIONS =================

    async def create_team(self, user: User, data: TeamCreate) -> Dict[str, Any]:
        await ReferenceValidator(self.db).require(event_id=data.event_id)
        event = await self._get_event(data.event_id)

        existing = await self.get_event_membership(event.id, user.id)
        outcome = self._check(
            evaluate(
                membership_state(existing),
                MembershipAction.CREATE_TEAM,
                MembershipContext(
                    event_active=event.is_active,
                    max_team_size=event.max_team_size,
                    name_taken=await self._name_taken(event.id, data.name),
                ),
            ),
            MembershipAction.CREATE_TEAM, None, user.id,
        )

        team = Team(event_id=event.id, name=data.name, description=data.description, created_by=user.id)
        self.db.add(team)
        await self.db.flush()

        self.db.add(TeamMember(
            team_id=team.id,
            event_id=event.id,
            user_id=user.id,
            role=_ROLE_FOR_STATE[outcome.new_state],
            joined_at=utcnow(),
        ))
        await self.db.commit()

        logger.info(f"Team created: id={team.id} event={event.id} leader={user.id}")
        return await self.get_team_detail(team.id)

    async def join_team(self, team_id: int, user: User) -> Dict[str, Any]:
        team = await self.get_team(team_id, lock=True)
        event = await self._get_event(team.event_id)

        existing = await self.get_event_membership(event.id, user.id)
        outcome = self._check(
            evaluate(
                membership_state(existing),
                MembershipAction.JOIN_TEAM,
                MembershipContext(
                    event_active=event.is_active,
                    member_count=await self.count_members(team.id),
                    max_team_size=event.max_team_size,
                ),
            ),
            MembershipAction.JOIN_TEAM, team_id, user.id,
        )

        role = _ROLE_FOR_STATE[outcome.new_state]
        self.db.add(TeamMember(
            team_id=team.id,
            event_id=event.id,
            user_id=user.id,
            role=role,
            joined_at=utcnow(),
        ))
        await self.db.commit()

        logger.info(f"Team joined: team={team.id} user={user.id} role={role.value}")
        return await self.get_team_detail(team.id)

    async def leave_team(self, team_id: int, user: User) -> bool:
        """Returns True when leaving deleted the team."""
        team = await self.get_team(team_id, lock=True)
        member = await self.get_member(team.id, user.id)

        outcome = self._check(
            evaluate(
                membership_state(member),
                MembershipAction.LEAVE_TEAM,
                MembershipContext(member_count=await self.count_members(team.id)),
            ),
            MembershipAction.LEAVE_TEAM, team_id, user.id,
        )

        if outcome.team_deleted:
            await self._delete_team(team)
        else:
            await self.enrollments.clear_team_link(team.event_id, [user.id])
            await self.db.execute(delete(TeamMember).where(TeamMember.id == member.id))
        await self.db.commit()

        logger.info(f"Team left: team={team_id} user={user.id} team_deleted={outcome.team_deleted}")
        return outcome.team_deleted

    async def remove_member(self, team_id: int, actor: User, member_user_id: int) -> None:
        team = await self.get_team(team_id, lock=True)
        actor_member = await self.get_member(team.id, actor.id)
        target = await self.get_member(team.id, member_user_id)

        self._check(
            evaluate(
                membership_state(actor_member),
                MembershipAction.REMOVE_MEMBER,
                MembershipContext(
                    member_count=await self.count_members(team.id),
                    target_state=membership_state(target),
                    actor_is_target=actor.id == member_user_id,
                ),
            ),
            MembershipAction.REMOVE_MEMBER, team_id, actor.id,
        )

        await self.enrollments.clear_team_link(team.event_id, [member_user_id])
        await self.db.execute(delete(TeamMember).where(TeamMember.id == target.id))
        await self.db.commit()
        logger.info(f"Team member removed: team={team_id} user={member_user_id} by={actor.id}")

    async def transfer_leadership(self, team_id: int, actor: User, new_leader_id: int) -> Dict[str, Any]:
        team = await self.get_team(team_id, lock=True)
        actor_member = await self.get_member(team.id, actor.id)
        target = await self.get_member(team.id, new_leader_id)

        outcome = self._check(
            evaluate(
                membership_state(actor_member),
                MembershipAction.TRANSFER_LEADERSHIP,
                MembershipContext(
                    target_state=membership_state(target),
                    actor_is_target=actor.id == new_leader_id,
                ),
            ),
            MembershipAction.TRANSFER_LEADERSHIP, team_id, actor.id,
        )

        # Both role changes land in the same commit
        actor_member.role = _ROLE_FOR_STATE[outcome.new_state]
        target.role = TeamRole.LEADER
        await self.db.commit()

        logger.info(f"Leadership transferred: team={team_id} from={actor.id} to={new_leader_id}")
        return await self.get_team_detail(team.id)

    async def update_team(self, team_id: int, actor: User, data: TeamUpdate) -> Dict[str, Any]:
        team = await self.get_team(team_id)
        actor_member = await self.get_member(team.id, actor.id)

        name_taken = False
        if data.name and data.name.lower() != team.name.lower():
            name_taken = await self._name_taken(team.event_id, data.name, exclude_team_id=team.id)

        self._check(
            evaluate(
                membership_state(actor_member),
                MembershipAction.UPDATE_TEAM,
                MembershipContext(name_taken=name_taken),
            ),
            MembershipAction.UPDATE_TEAM, team_id, actor.id,
        )

        if data.name:
            team.name = data.name
        if data.description is not None:
            team.description = data.description
        await self.db.commit()

        logger.info(f"Team updated: id={team_id}")
        return await self.get_team_detail(team.id)

    async def delete_team(self, team_id: int, actor: User) -> None:
        team = await self.get_team(team_id, lock=True)
        actor_member = await self.get_member(team.id, actor.id)

        self._check(
            evaluate(
                membership_state(actor_member),
                MembershipAction.DELETE_TEAM,
                MembershipContext(member_count=await self.count_members(team.id)),
            ),
            MembershipAction.DELETE_TEAM, team_id, actor.id,
        )

        await self._delete_team(team)
        await self.db.commit()
        logger.info(f"Team deleted: id={team_id} by={actor.id}")

    async def is_member(self, team_id: int, user_id: int) -> bool:
        return await self.get_member(team_id, user_id) is not None

    async def is_leader(self, team_id: int, user_id: int) -> bool:
        member = await self.get_member(team_id, user_id)
        return member is not None and member.role == TeamRole.LEADER
