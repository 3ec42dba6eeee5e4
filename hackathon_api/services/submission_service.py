"""
hackathon_api/services/submission_service.py
Project submissions (document store)

Create: team member only, team must belong to the event, event active and
the submission deadline not passed, one submission per (event, team, round).
Update: team members; event_id/team_id/submitted_at are immutable.
Delete: team leader only.
"""
import logging
from typing import Any, Dict, List, Optional

from pymongo.errors import DuplicateKeyError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hackathon_api.document_store import SUBMISSIONS, DocumentStore, parse_object_id, to_str_id
from hackathon_api.errors import (
    ConflictError, ErrorCode, ForbiddenError, InvalidStateError, NotFoundError
)
from hackathon_api.orm.event import Event
from hackathon_api.orm.team import Team, TeamMember, TeamRole
from hackathon_api.orm.user import User
from hackathon_api.schemas.documents import Submission, SubmissionCreate, SubmissionUpdate
from hackathon_api.services.reference_validator import ReferenceValidator
from hackathon_api.services.team_service import TeamService
from hackathon_api.utils.timeutil import utcnow

logger = logging.getLogger(__name__)

NEWEST_FIRST = [("submitted_at", -1)]

# Fields that may not be cleared by an explicit null in an update body
_REQUIRED_FIELDS = {"title", "description", "track", "round", "docs"}


def _duplicate(round_number: int) -> ConflictError:
    return ConflictError(
        f"Team already has a submission for round {round_number} of this event",
        code=ErrorCode.DUPLICATE_SUBMISSION
    )


class SubmissionService:
    def __init__(self, db: AsyncSession, documents: DocumentStore):
        self.db = db
        self.documents = documents
        self.teams = TeamService(db)

    async def _find(self, submission_id: str) -> Dict[str, Any]:
        doc = await self.documents.find_one(SUBMISSIONS, {"_id": parse_object_id(submission_id)})
        if not doc:
            raise NotFoundError("Submission", submission_id)
        return doc

    async def _team_details(self, team_ids) -> Dict[int, Dict[str, Any]]:
        """team id -> {team_id, team_name, leader_name}"""
        team_ids = set(team_ids)
        if not team_ids:
            return {}
        result = await self.db.execute(
            select(Team.id, Team.name, User.name)
            .select_from(Team)
            .outerjoin(
                TeamMember,
                (TeamMember.team_id == Team.id) & (TeamMember.role == TeamRole.LEADER)
            )
            .outerjoin(User, User.id == TeamMember.user_id)
            .where(Team.id.in_(team_ids))
        )
        return {
            team_id: {"team_id": team_id, "team_name": team_name, "leader_name": leader_name}
            for team_id, team_name, leader_name in result.all()
        }

    async def _with_team_details(self, docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        details = await self._team_details(doc["team_id"] for doc in docs)
        out = []
        for doc in docs:
            data = to_str_id(doc)
            data["team_details"] = details.get(doc["team_id"])
            out.append(data)
        return out

    async def create(self, user: User, data: SubmissionCreate) -> Dict[str, Any]:
        await ReferenceValidator(self.db).require(event_id=data.event_id, team_id=data.team_id)

        if not await self.teams.is_member(data.team_id, user.id):
            raise ForbiddenError("You are not a member of this team", code=ErrorCode.NOT_TEAM_MEMBER)

        team = await self.teams.get_team(data.team_id)
        if team.event_id != data.event_id:
            raise InvalidStateError("Team does not belong to this event", code=ErrorCode.TEAM_EVENT_MISMATCH)

        event = (await self.db.execute(select(Event).where(Event.id == data.event_id))).scalar_one()
        if not event.is_active:
            raise InvalidStateError("Event is not active", code=ErrorCode.EVENT_INACTIVE)
        if event.submission_deadline and utcnow() > event.submission_deadline:
            raise InvalidStateError("Submission deadline has passed", code=ErrorCode.DEADLINE_PASSED)

        key = {"event_id": data.event_id, "team_id": data.team_id, "round": data.round}
        if await self.documents.find_one(SUBMISSIONS, key):
            logger.warning(f"Duplicate submission: {key}")
            raise _duplicate(data.round)

        submission = Submission(**data.model_dump())
        try:
            doc = await self.documents.insert(SUBMISSIONS, submission.model_dump())
        except DuplicateKeyError:
            raise _duplicate(data.round)

        logger.info(f"Submission created: id={doc['_id']} event={data.event_id} team={data.team_id}")
        return to_str_id(doc)

    async def list_by_event(
        self,
        event_id: int,
        round_number: Optional[int] = None,
        track: Optional[str] = None,
    ) -> List[Dict[str, Any]]:
        event = (await self.db.execute(select(Event.id).where(Event.id == event_id))).scalar_one_or_none()
        if event is None:
            raise NotFoundError("Event", event_id)

        query: Dict[str, Any] = {"event_id": event_id}
        if round_number is not None:
            query["round"] = round_number
        if track:
            query["track"] = track

        docs = await self.documents.find(SUBMISSIONS, query, sort=NEWEST_FIRST)
        return await self._with_team_details(docs)

    async def list_by_team(self, team_id: int, user: User) -> List[Dict[str, Any]]:
        await self.teams.get_team(team_id)
        if not await self.teams.is_member(team_id, user.id):
            raise ForbiddenError("You are not a member of this team", code=ErrorCode.NOT_TEAM_MEMBER)

        docs = await self.documents.find(SUBMISSIONS, {"team_id": team_id}, sort=NEWEST_FIRST)
        return [to_str_id(doc) for doc in docs]

    async def get(self, submission_id: str) -> Dict[str, Any]:
        doc = await self._find(submission_id)
        data = to_str_id(doc)

        team = (await self.db.execute(select(Team).where(Team.id == doc["team_id"]))).scalar_one_or_none()
        if team is None:
            data["team_details"] = None
            return data

        members = await self.teams.list_members(team.id)
        leader = next((m for m in members if m.role == TeamRole.LEADER), None)
        data["team_details"] = {
            "team_id": team.id,
            "team_name": team.name,
            "members": [m.user.name for m in members if m.user],
            "leader": leader.user.name if leader and leader.user else None,
        }
        return data

    async def update(self, submission_id: str, user: User, data: SubmissionUpdate) -> Dict[str, Any]:
        doc = await self._find(submission_id)

        if not await self.teams.is_member(doc["team_id"], user.id):
            raise ForbiddenError(
                "You are not authorized to update this submission",
                code=ErrorCode.NOT_TEAM_MEMBER
            )

        changes = {
            field: value
            for field, value in data.model_dump(exclude_unset=True).items()
            if value is not None or field not in _REQUIRED_FIELDS
        }

        new_round = changes.get("round")
        if new_round is not None and new_round != doc["round"]:
            clash = await self.documents.find_one(SUBMISSIONS, {
                "event_id": doc["event_id"],
                "team_id": doc["team_id"],
                "round": new_round,
                "_id": {"$ne": doc["_id"]},
            })
            if clash:
                raise _duplicate(new_round)

        changes["updated_at"] = utcnow()
        try:
            updated = await self.documents.update_one(SUBMISSIONS, {"_id": doc["_id"]}, changes)
        except DuplicateKeyError:
            raise _duplicate(changes.get("round", doc["round"]))

        logger.info(f"Submission updated: id={submission_id} by={user.id}")
        return to_str_id(updated)

    async def delete(self, submission_id: str, user: User) -> None:
        doc = await self._find(submission_id)

        if not await self.teams.is_leader(doc["team_id"], user.id):
            raise ForbiddenError("Only team leaders can delete submissions", code=ErrorCode.NOT_TEAM_LEADER)

        await self.documents.delete_one(SUBMISSIONS, {"_id": doc["_id"]})
        logger.info(f"Submission deleted: id={submission_id} by={user.id}")

    async def list_mine(self, user: User) -> List[Dict[str, Any]]:
        result = await self.db.execute(select(TeamMember.team_id).where(TeamMember.user_id == user.id))
        team_ids = [row[0] for row in result.all()]
        if not team_ids:
            return []

        docs = await self.documents.find(SUBMISSIONS, {"team_id": {"$in": team_ids}}, sort=NEWEST_FIRST)
        return await self._with_team_details(docs)
