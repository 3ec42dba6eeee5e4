"""
hackathon_api/routes/chat.py
Per-event Q&A routes
"""
from fastapi import APIRouter, Depends, Query, status
from sqlalchemy.ext.asyncio import AsyncSession

from hackathon_api.config.settings import settings
from hackathon_api.database import get_db
from hackathon_api.document_store import DocumentStore, get_document_store
from hackathon_api.orm.user import User
from hackathon_api.rbac import get_current_user
from hackathon_api.schemas.common import page_offset, pagination_meta, success_response
from hackathon_api.schemas.documents import ChatQuestionCreate, ChatReplyCreate
from hackathon_api.services.chat_service import ChatService

router = APIRouter(prefix="/chat", tags=["Chat Q&A"])


def get_chat_service(
    db: AsyncSession = Depends(get_db),
    documents: DocumentStore = Depends(get_document_store),
) -> ChatService:
    return ChatService(db, documents)


@router.post("", status_code=status.HTTP_201_CREATED)
async def ask_question(
    data: ChatQuestionCreate,
    service: ChatService = Depends(get_chat_service),
    current_user: User = Depends(get_current_user),
):
    question = await service.ask(current_user, data)
    return success_response("Question posted", question)


@router.get("/event/{event_id}")
async def list_event_questions(
    event_id: int,
    page: int = Query(1, ge=1),
    limit: int = Query(settings.DEFAULT_PAGE_SIZE, ge=1, le=settings.MAX_PAGE_SIZE),
    service: ChatService = Depends(get_chat_service),
    current_user: User = Depends(get_current_user),
):
    questions, total = await service.list_by_event(event_id, current_user, page_offset(page, limit), limit)
    return success_response(
        "Questions retrieved",
        questions,
        count=len(questions),
        pagination=pagination_meta(page, limit, total),
    )


@router.get("/{question_id}")
async def get_question(
    question_id: str,
    service: ChatService = Depends(get_chat_service),
    current_user: User = Depends(get_current_user),
):
    return success_response("Question retrieved", await service.get(question_id, current_user))


@router.post("/{question_id}/replies", status_code=status.HTTP_201_CREATED)
async def reply_to_question(
    question_id: str,
    data: ChatReplyCreate,
    service: ChatService = Depends(get_chat_service),
    current_user: User = Depends(get_current_user),
):
    question = await service.reply(question_id, current_user, data)
    return success_response("Reply posted", question)
