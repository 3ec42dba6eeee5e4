"""
hackathon_api/services/chat_service.py
Per-event Q&A threads (document store)

Open to event participants: the organizer, judges and Enrolled users.
Replies are appended in order and never removed.
"""
import logging
from typing import Any, Dict, List, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hackathon_api.document_store import CHAT_QNA, DocumentStore, parse_object_id, to_str_id
from hackathon_api.errors import ErrorCode, ForbiddenError, InvalidStateError, NotFoundError
from hackathon_api.orm.event import Event
from hackathon_api.orm.user import User, UserRole
from hackathon_api.schemas.documents import ChatQnA, ChatQuestionCreate, ChatReply, ChatReplyCreate
from hackathon_api.services.enrollment_service import EnrollmentService
from hackathon_api.services.reference_validator import ReferenceValidator
from hackathon_api.utils.timeutil import utcnow

logger = logging.getLogger(__name__)


class ChatService:
    def __init__(self, db: AsyncSession, documents: DocumentStore):
        self.db = db
        self.documents = documents

    async def _get_event(self, event_id: int) -> Event:
        result = await self.db.execute(select(Event).where(Event.id == event_id))
        event = result.scalar_one_or_none()
        if not event:
            raise NotFoundError("Event", event_id)
        return event

    async def _find(self, question_id: str) -> Dict[str, Any]:
        doc = await self.documents.find_one(CHAT_QNA, {"_id": parse_object_id(question_id)})
        if not doc:
            raise NotFoundError("Question", question_id)
        return doc

    async def _require_participant(self, event: Event, user: User) -> None:
        if event.organizer_id == user.id or user.role == UserRole.judge:
            return
        if await EnrollmentService(self.db).is_enrolled(event.id, user.id):
            return
        raise ForbiddenError(
            "Only event participants can use the Q&A",
            code=ErrorCode.ENROLLMENT_REQUIRED
        )

    async def ask(self, user: User, data: ChatQuestionCreate) -> Dict[str, Any]:
        await ReferenceValidator(self.db).require(event_id=data.event_id)
        event = await self._get_event(data.event_id)
        await self._require_participant(event, user)
        if not event.is_active:
            raise InvalidStateError("Event is not active", code=ErrorCode.EVENT_INACTIVE)

        question = ChatQnA(event_id=data.event_id, from_user_id=user.id, message=data.message)
        doc = await self.documents.insert(CHAT_QNA, question.model_dump())
        logger.info(f"Question posted: id={doc['_id']} event={data.event_id} user={user.id}")
        return to_str_id(doc)

    async def list_by_event(
        self,
        event_id: int,
        user: User,
        offset: int,
        limit: int,
    ) -> Tuple[List[Dict[str, Any]], int]:
        event = await self._get_event(event_id)
        await self._require_participant(event, user)

        query = {"event_id": event_id}
        total = await self.documents.count(CHAT_QNA, query)
        docs = await self.documents.find(
            CHAT_QNA, query, sort=[("created_at", -1)], skip=offset, limit=limit
        )
        return [to_str_id(doc) for doc in docs], total

    async def get(self, question_id: str, user: User) -> Dict[str, Any]:
        doc = await self._find(question_id)
        event = await self._get_event(doc["event_id"])
        await self._require_participant(event, user)
        return to_str_id(doc)

    async def reply(self, question_id: str, user: User, data: ChatReplyCreate) -> Dict[str, Any]:
        doc = await self._find(question_id)
        event = await self._get_event(doc["event_id"])
        await self._require_participant(event, user)
        if not event.is_active:
            raise InvalidStateError("Event is not active", code=ErrorCode.EVENT_INACTIVE)

        reply = ChatReply(from_user_id=user.id, message=data.message)
        updated = await self.documents.push(
            CHAT_QNA,
            {"_id": doc["_id"]},
            "replies",
            reply.model_dump(),
            fields={"updated_at": utcnow()},
        )
        logger.info(f"Reply posted: question={question_id} user={user.id}")
        return to_str_id(updated)
