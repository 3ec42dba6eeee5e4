"""
hackathon_api/document_store.py
Document store access (pymongo async client)

Submissions, announcements, certificates and chat threads are stored as
documents. Relational ids (event, team, user) are embedded as plain integers
and re-validated by the ReferenceValidator before every write.

The client is opened once in the application lifespan and handed to request
handlers through the `get_document_store` dependency.
"""
import logging
from datetime import datetime
from typing import Any, Dict, List, Optional, Sequence, Tuple

from bson import ObjectId
from fastapi import Request
from pymongo import ASCENDING, DESCENDING, AsyncMongoClient, ReturnDocument

from hackathon_api.config.settings import settings
from hackathon_api.errors import BadRequestError, ErrorCode

logger = logging.getLogger(__name__)

SUBMISSIONS = "submissions"
ANNOUNCEMENTS = "announcements"
CERTIFICATES = "certificates"
CHAT_QNA = "chat_qna"

Sort = Sequence[Tuple[str, int]]


class DocumentStore:
    """Thin async wrapper over a pymongo database."""

    def __init__(self, database):
        self._db = database

    async def insert(self, collection: str, document: Dict[str, Any]) -> Dict[str, Any]:
        result = await self._db[collection].insert_one(document)
        document["_id"] = result.inserted_id
        return document

    async def find_one(self, collection: str, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        return await self._db[collection].find_one(query)

    async def find(
        self,
        collection: str,
        query: Dict[str, Any],
        sort: Optional[Sort] = None,
        skip: int = 0,
        limit: int = 0,
    ) -> List[Dict[str, Any]]:
        cursor = self._db[collection].find(query)
        if sort:
            cursor = cursor.sort(list(sort))
        if skip:
            cursor = cursor.skip(skip)
        if limit:
            cursor = cursor.limit(limit)
        return await cursor.to_list(length=None)

    async def count(self, collection: str, query: Dict[str, Any]) -> int:
        return await self._db[collection].count_documents(query)

    async def update_one(
        self,
        collection: str,
        query: Dict[str, Any],
        fields: Dict[str, Any]
    ) -> Optional[Dict[str, Any]]:
        """$set `fields` and return the updated document (None if no match)."""
        return await self._db[collection].find_one_and_update(
            query,
            {"$set": fields},
            return_document=ReturnDocument.AFTER,
        )

    async def push(
        self,
        collection: str,
        query: Dict[str, Any],
        field: str,
        value: Any,
        fields: Optional[Dict[str, Any]] = None
    ) -> Optional[Dict[str, Any]]:
        """Append `value` to the array `field`; replies are never removed."""
        update: Dict[str, Any] = {"$push": {field: value}}
        if fields:
            update["$set"] = fields
        return await self._db[collection].find_one_and_update(
            query,
            update,
            return_document=ReturnDocument.AFTER,
        )

    async def delete_one(self, collection: str, query: Dict[str, Any]) -> bool:
        result = await self._db[collection].delete_one(query)
        return result.deleted_count > 0

    async def ensure_indexes(self) -> None:
        """Unique indexes back the one-per-key pre-checks."""
        await self._db[SUBMISSIONS].create_index(
            [("event_id", ASCENDING), ("team_id", ASCENDING), ("round", ASCENDING)],
            unique=True,
            name="uq_submissions_event_team_round",
        )
        await self._db[CERTIFICATES].create_index(
            [("event_id", ASCENDING), ("user_id", ASCENDING)],
            unique=True,
            name="uq_certificates_event_user",
        )
        await self._db[ANNOUNCEMENTS].create_index([("event_id", ASCENDING), ("created_at", DESCENDING)])
        await self._db[CHAT_QNA].create_index([("event_id", ASCENDING), ("created_at", DESCENDING)])
        logger.info("✓ Document store indexes ensured")


_client: Optional[AsyncMongoClient] = None


async def connect_document_store() -> DocumentStore:
    """Open the shared client and make sure the unique indexes exist."""
    global _client
    _client = AsyncMongoClient(settings.MONGODB_URL, tz_aware=False)
    store = DocumentStore(_client[settings.MONGODB_DATABASE])
    await store.ensure_indexes()
    logger.info(f"Document store connected: database={settings.MONGODB_DATABASE}")
    return store


async def close_document_store() -> None:
    global _client
    if _client is not None:
        await _client.close()
        _client = None
        logger.info("Document store connection closed")


def get_document_store(request: Request) -> DocumentStore:
    """Dependency for getting the document store opened in the lifespan"""
    return request.app.state.documents


# ================= HELPERS =================

def parse_object_id(value: str, field: str = "id") -> ObjectId:
    if not ObjectId.is_valid(value):
        raise BadRequestError(
            f"Invalid {field}",
            code=ErrorCode.INVALID_ID,
            errors=[{"field": field, "message": "Must be a valid document id"}]
        )
    return ObjectId(value)


def _plain(value):
    if isinstance(value, ObjectId):
        return str(value)
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, list):
        return [_plain(item) for item in value]
    if isinstance(value, dict):
        return {key: _plain(item) for key, item in value.items()}
    return value


def to_str_id(doc):
    """Public representation of a stored document: `_id` becomes `id`."""
    if not doc:
        return doc
    doc = dict(doc)
    _id = doc.pop("_id", None)
    out = {"id": str(_id)} if _id is not None else {}
    out.update(_plain(doc))
    return out
