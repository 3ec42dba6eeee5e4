"""
hackathon_api/routes/teams.py
Team management routes

Every membership change goes through the membership rules in TeamService;
the leader holds administrative rights over the team.
"""
from fastapi import APIRouter, Depends, status
from sqlalchemy.ext.asyncio import AsyncSession

from hackathon_api.database import get_db
from hackathon_api.orm.user import User
from hackathon_api.rbac import get_current_user
from hackathon_api.schemas.common import success_response
from hackathon_api.schemas.events import LeadershipTransfer, TeamCreate, TeamUpdate
from hackathon_api.services.team_service import TeamService

router = APIRouter(prefix="/teams", tags=["Teams"])


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_team(
    data: TeamCreate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    team = await TeamService(db).create_team(current_user, data)
    return success_response("Team created successfully", team)


@router.get("/me")
async def my_teams(
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    teams = await TeamService(db).list_user_teams(current_user)
    return success_response("Your teams", teams, count=len(teams))


@router.get("/{team_id}")
async def get_team(
    team_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    return success_response("Team retrieved", await TeamService(db).get_team_detail(team_id))


@router.patch("/{team_id}")
async def update_team(
    team_id: int,
    data: TeamUpdate,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    team = await TeamService(db).update_team(team_id, current_user, data)
    return success_response("Team updated successfully", team)


@router.delete("/{team_id}")
async def delete_team(
    team_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await TeamService(db).delete_team(team_id, current_user)
    return success_response("Team deleted successfully")


@router.post("/{team_id}/join")
async def join_team(
    team_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    team = await TeamService(db).join_team(team_id, current_user)
    return success_response("Joined team successfully", team)


@router.post("/{team_id}/leave")
async def leave_team(
    team_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    team_deleted = await TeamService(db).leave_team(team_id, current_user)
    message = "Left team; the team was deleted" if team_deleted else "Left team successfully"
    return success_response(message, {"team_id": team_id, "team_deleted": team_deleted})


@router.delete("/{team_id}/members/{member_id}")
async def remove_member(
    team_id: int,
    member_id: int,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    await TeamService(db).remove_member(team_id, current_user, member_id)
    return success_response("Member removed successfully", {"team_id": team_id, "user_id": member_id})


@router.post("/{team_id}/transfer-leadership")
async def transfer_leadership(
    team_id: int,
    data: LeadershipTransfer,
    db: AsyncSession = Depends(get_db),
    current_user: User = Depends(get_current_user),
):
    team = await TeamService(db).transfer_leadership(team_id, current_user, data.new_leader_id)
    return success_response("Leadership transferred successfully", team)
