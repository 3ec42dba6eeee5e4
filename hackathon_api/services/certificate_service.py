"""
hackathon_api/services/certificate_service.py
Participation certificates (document store)

- Issue / update / delete: organizer of the event only
- A certificate requires an Enrolled enrollment (400 otherwise)
- At most one certificate per (event, user): pre-check plus unique index
- Bulk issuance handles each user independently and reports per-user outcomes
"""
import logging
from typing import Any, Dict, List

from pymongo.errors import DuplicateKeyError, PyMongoError
from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hackathon_api.document_store import CERTIFICATES, DocumentStore, parse_object_id, to_str_id
from hackathon_api.errors import (
    ConflictError, ErrorCode, ForbiddenError, InvalidStateError, NotFoundError
)
from hackathon_api.orm.event import Event
from hackathon_api.orm.user import User
from hackathon_api.rbac import require_event_organizer, require_event_staff
from hackathon_api.schemas.documents import (
    BulkCertificateIssue, Certificate, CertificateIssue, CertificateUpdate
)
from hackathon_api.services.enrollment_service import EnrollmentService
from hackathon_api.services.reference_validator import ReferenceValidator
from hackathon_api.services.user_service import UserService
from hackathon_api.utils.timeutil import utcnow

logger = logging.getLogger(__name__)

NEWEST_FIRST = [("issued_at", -1)]


def _duplicate() -> ConflictError:
    return ConflictError(
        "Certificate already issued for this user in this event",
        code=ErrorCode.DUPLICATE_CERTIFICATE
    )


class CertificateService:
    def __init__(self, db: AsyncSession, documents: DocumentStore):
        self.db = db
        self.documents = documents
        self.enrollments = EnrollmentService(db)

    async def _get_event(self, event_id: int) -> Event:
        result = await self.db.execute(select(Event).where(Event.id == event_id))
        event = result.scalar_one_or_none()
        if not event:
            raise NotFoundError("Event", event_id)
        return event

    async def _find(self, certificate_id: str) -> Dict[str, Any]:
        doc = await self.documents.find_one(CERTIFICATES, {"_id": parse_object_id(certificate_id)})
        if not doc:
            raise NotFoundError("Certificate", certificate_id)
        return doc

    async def _event_names(self, event_ids) -> Dict[int, str]:
        event_ids = set(event_ids)
        if not event_ids:
            return {}
        result = await self.db.execute(select(Event.id, Event.name).where(Event.id.in_(event_ids)))
        return {event_id: name for event_id, name in result.all()}

    async def _with_details(self, docs: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        users = await UserService(self.db).summaries(doc["user_id"] for doc in docs)
        events = await self._event_names(doc["event_id"] for doc in docs)
        out = []
        for doc in docs:
            data = to_str_id(doc)
            data["user"] = users.get(doc["user_id"])
            data["event_name"] = events.get(doc["event_id"])
            out.append(data)
        return out

    async def issue(self, organizer: User, data: CertificateIssue) -> Dict[str, Any]:
        await ReferenceValidator(self.db).require(event_id=data.event_id, user_id=data.user_id)
        event = await self._get_event(data.event_id)
        require_event_organizer(event, organizer)

        if not await self.enrollments.is_enrolled(data.event_id, data.user_id):
            logger.warning(f"Certificate refused: user {data.user_id} not enrolled in event {data.event_id}")
            raise InvalidStateError(
                "User was not enrolled in this event",
                code=ErrorCode.ENROLLMENT_REQUIRED
            )

        if await self.documents.find_one(CERTIFICATES, {"event_id": data.event_id, "user_id": data.user_id}):
            raise _duplicate()

        certificate = Certificate(**data.model_dump())
        try:
            doc = await self.documents.insert(CERTIFICATES, certificate.model_dump())
        except DuplicateKeyError:
            raise _duplicate()

        logger.info(f"Certificate issued: id={doc['_id']} event={data.event_id} user={data.user_id}")
        return (await self._with_details([doc]))[0]

    async def bulk_issue(self, organizer: User, data: BulkCertificateIssue) -> Dict[str, Any]:
        await ReferenceValidator(self.db).require(event_id=data.event_id, message="Event not found")
        event = await self._get_event(data.event_id)
        require_event_organizer(event, organizer)

        validator = ReferenceValidator(self.db)
        results: Dict[str, List[Dict[str, Any]]] = {"issued": [], "skipped": [], "errors": []}

        for user_id in data.user_ids:
            if await validator.validate(user_id=user_id):
                results["errors"].append({"user_id": user_id, "error": "User not found"})
                continue
            if not await self.enrollments.is_enrolled(data.event_id, user_id):
                results["errors"].append({"user_id": user_id, "error": "User was not enrolled in this event"})
                continue
            if await self.documents.find_one(CERTIFICATES, {"event_id": data.event_id, "user_id": user_id}):
                results["skipped"].append({"user_id": user_id, "reason": "Certificate already exists"})
                continue

            certificate = Certificate(
                event_id=data.event_id,
                user_id=user_id,
                certificate_url=data.certificate_url,
            )
            try:
                doc = await self.documents.insert(CERTIFICATES, certificate.model_dump())
            except DuplicateKeyError:
                results["skipped"].append({"user_id": user_id, "reason": "Certificate already exists"})
                continue
            except PyMongoError as e:
                logger.error(f"Bulk issue failed for user {user_id} in event {data.event_id}: {e}")
                results["errors"].append({"user_id": user_id, "error": "Could not store certificate"})
                continue
            results["issued"].append({"user_id": user_id, "certificate_id": str(doc["_id"])})

        summary = {
            "total": len(data.user_ids),
            "issued": len(results["issued"]),
            "skipped": len(results["skipped"]),
            "errors": len(results["errors"]),
        }
        logger.info(f"Bulk certificate issuance: event={data.event_id} summary={summary}")
        return {"results": results, "summary": summary}

    async def list_by_event(self, event_id: int, user: User) -> List[Dict[str, Any]]:
        event = await self._get_event(event_id)
        require_event_staff(event, user)

        docs = await self.documents.find(CERTIFICATES, {"event_id": event_id}, sort=NEWEST_FIRST)
        return await self._with_details(docs)

    async def list_mine(self, user: User) -> List[Dict[str, Any]]:
        docs = await self.documents.find(CERTIFICATES, {"user_id": user.id}, sort=NEWEST_FIRST)
        return await self._with_details(docs)

    async def get(self, certificate_id: str, user: User) -> Dict[str, Any]:
        doc = await self._find(certificate_id)
        if doc["user_id"] != user.id:
            event = await self._get_event(doc["event_id"])
            if event.organizer_id != user.id:
                raise ForbiddenError(
                    "You are not authorized to view this certificate",
                    code=ErrorCode.PERMISSION_DENIED
                )
        return (await self._with_details([doc]))[0]

    async def update(self, certificate_id: str, user: User, data: CertificateUpdate) -> Dict[str, Any]:
        doc = await self._find(certificate_id)
        event = await self._get_event(doc["event_id"])
        require_event_organizer(event, user)

        updated = await self.documents.update_one(
            CERTIFICATES,
            {"_id": doc["_id"]},
            {"certificate_url": data.certificate_url, "updated_at": utcnow()},
        )
        logger.info(f"Certificate updated: id={certificate_id}")
        return to_str_id(updated)

    async def delete(self, certificate_id: str, user: User) -> None:
        doc = await self._find(certificate_id)
        event = await self._get_event(doc["event_id"])
        require_event_organizer(event, user)

        await self.documents.delete_one(CERTIFICATES, {"_id": doc["_id"]})
        logger.info(f"Certificate deleted: id={certificate_id}")
