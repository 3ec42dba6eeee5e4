"""
hackathon_api/services/announcement_service.py
Event announcements (document store)

Writes belong to the event's organizer. Reads are open to the organizer and
to users with an Enrolled enrollment in the event.
"""
import logging
from typing import Any, Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hackathon_api.document_store import ANNOUNCEMENTS, DocumentStore, parse_object_id, to_str_id
from hackathon_api.errors import ErrorCode, ForbiddenError, NotFoundError
from hackathon_api.orm.enrollment import EnrollmentStatus, EventEnrollment
from hackathon_api.orm.event import Event
from hackathon_api.orm.user import User
from hackathon_api.rbac import require_event_organizer
from hackathon_api.schemas.documents import Announcement, AnnouncementCreate, AnnouncementUpdate
from hackathon_api.services.enrollment_service import EnrollmentService
from hackathon_api.services.reference_validator import ReferenceValidator
from hackathon_api.services.user_service import UserService
from hackathon_api.utils.timeutil import utcnow

logger = logging.getLogger(__name__)

NEWEST_FIRST = [("created_at", -1)]


class AnnouncementService:
    def __init__(self, db: AsyncSession, documents: DocumentStore):
        self.db = db
        self.documents = documents

    async def _get_event(self, event_id: int) -> Event:
        result = await self.db.execute(select(Event).where(Event.id == event_id))
        event = result.scalar_one_or_none()
        if not event:
            raise NotFoundError("Event", event_id)
        return event

    async def _find(self, announcement_id: str) -> Dict[str, Any]:
        doc = await self.documents.find_one(ANNOUNCEMENTS, {"_id": parse_object_id(announcement_id)})
        if not doc:
            raise NotFoundError("Announcement", announcement_id)
        return doc

    async def _require_reader(self, event: Event, user: User) -> None:
        if event.organizer_id == user.id:
            return
        if await EnrollmentService(self.db).is_enrolled(event.id, user.id):
            return
        raise ForbiddenError(
            "Only the organizer and enrolled participants can view these announcements",
            code=ErrorCode.ENROLLMENT_REQUIRED
        )

    async def _with_authors(self, docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        authors = await UserService(self.db).summaries(doc["author_id"] for doc in docs)
        out = []
        for doc in docs:
            data = to_str_id(doc)
            data["author"] = authors.get(doc["author_id"])
            out.append(data)
        return out

    async def create(self, user: User, data: AnnouncementCreate) -> Dict[str, Any]:
        await ReferenceValidator(self.db).require(event_id=data.event_id)
        event = await self._get_event(data.event_id)
        require_event_organizer(event, user)

        announcement = Announcement(
            event_id=data.event_id,
            author_id=user.id,
            message=data.message,
            is_important=data.is_important,
        )
        doc = await self.documents.insert(ANNOUNCEMENTS, announcement.model_dump())
        logger.info(f"Announcement created: id={doc['_id']} event={data.event_id}")
        return to_str_id(doc)

    async def list_by_event(self, event_id: int, user: User, important: Optional[bool] = None) -> List[Dict[str, Any]]:
        event = await self._get_event(event_id)
        await self._require_reader(event, user)

        query: Dict[str, Any] = {"event_id": event_id}
        if important is not None:
            query["is_important"] = important

        docs = await self.documents.find(ANNOUNCEMENTS, query, sort=NEWEST_FIRST)
        return await self._with_authors(docs)

    async def get(self, announcement_id: str, user: User) -> Dict[str, Any]:
        doc = await self._find(announcement_id)
        event = await self._get_event(doc["event_id"])
        await self._require_reader(event, user)
        return (await self._with_authors([doc]))[0]

    async def update(self, announcement_id: str, user: User, data: AnnouncementUpdate) -> Dict[str, Any]:
        doc = await self._find(announcement_id)
        event = await self._get_event(doc["event_id"])
        require_event_organizer(event, user)

        changes = data.model_dump(exclude_none=True)
        changes["updated_at"] = utcnow()
        updated = await self.documents.update_one(ANNOUNCEMENTS, {"_id": doc["_id"]}, changes)

        logger.info(f"Announcement updated: id={announcement_id}")
        return to_str_id(updated)

    async def delete(self, announcement_id: str, user: User) -> None:
        doc = await self._find(announcement_id)
        event = await self._get_event(doc["event_id"])
        require_event_organizer(event, user)

        await self.documents.delete_one(ANNOUNCEMENTS, {"_id": doc["_id"]})
        logger.info(f"Announcement deleted: id={announcement_id}")

    async def my_important(self, user: User) -> List[Dict[str, Any]]:
        """Important announcements from every event the user is enrolled in."""
        result = await self.db.execute(
            select(EventEnrollment.event_id).where(
                EventEnrollment.user_id == user.id,
                EventEnrollment.status == EnrollmentStatus.ENROLLED,
            )
        )
        event_ids = [row[0] for row in result.all()]
        if not event_ids:
            return []

        docs = await self.documents.find(
            ANNOUNCEMENTS,
            {"event_id": {"$in": event_ids}, "is_important": True},
            sort=NEWEST_FIRST,
            limit=50,
        )
        return await self._with_authors(docs)
