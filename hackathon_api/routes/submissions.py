"""
hackathon_api/routes/submissions.py
Project submission routes
"""
from typing import Optional

from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from hackathon_api.database import get_db
from hackathon_api.document_store import DocumentStore, get_document_store
from hackathon_api.orm.user import User
from hackathon_api.rbac import get_current_user
from hackathon_api.schemas.common import success_response
from hackathon_api.schemas.documents import SubmissionCreate, SubmissionUpdate
from hackathon_api.services.submission_service import SubmissionService

router = APIRouter(prefix="/submissions", tags=["Submissions"])


def get_submission_service(
    db: AsyncSession = Depends(get_db),
    documents: DocumentStore = Depends(get_document_store),
) -> SubmissionService:
    return SubmissionService(db, documents)


@router.post("", status_code=status.HTTP_201_CREATED)
async def create_submission(
    data: SubmissionCreate,
    service: SubmissionService = Depends(get_submission_service),
    current_user: User = Depends(get_current_user),
):
    submission = await service.create(current_user, data)
    return success_response("Submission created successfully", submission)


@router.get("/me")
async def my_submissions(
    service: SubmissionService = Depends(get_submission_service),
    current_user: User = Depends(get_current_user),
):
    submissions = await service.list_mine(current_user)
    return success_response("Your submissions", submissions, count=len(submissions))


@router.get("/event/{event_id}")
async def list_event_submissions(
    event_id: int,
    round_number: Optional[int] = Query(None, alias="round", ge=1),
    track: Optional[str] = Query(None, max_length=255),
    service: SubmissionService = Depends(get_submission_service),
    current_user: User = Depends(get_current_user),
):
    submissions = await service.list_by_event(event_id, round_number, track)
    return success_response("Submissions retrieved", submissions, count=len(submissions))


@router.get("/team/{team_id}")
async def list_team_submissions(
    team_id: int,
    service: SubmissionService = Depends(get_submission_service),
    current_user: User = Depends(get_current_user),
):
    submissions = await service.list_by_team(team_id, current_user)
    return success_response("Team submissions retrieved", submissions, count=len(submissions))


@router.get("/{submission_id}")
async def get_submission(
    submission_id: str,
    service: SubmissionService = Depends(get_submission_service),
    current_user: User = Depends(get_current_user),
):
    return success_response("Submission retrieved", await service.get(submission_id))


@router.patch("/{submission_id}")
async def update_submission(
    submission_id: str,
    data: SubmissionUpdate,
    service: SubmissionService = Depends(get_submission_service),
    current_user: User = Depends(get_current_user),
):
    submission = await service.update(submission_id, current_user, data)
    return success_response("Submission updated successfully", submission)


@router.delete("/{submission_id}")
async def delete_submission(
    submission_id: str,
    service: SubmissionService = Depends(get_submission_service),
    current_user: User = Depends(get_current_user),
):
    await service.delete(submission_id, current_user)
    return success_response("Submission deleted successfully")
