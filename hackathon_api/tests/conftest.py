"""
Shared test fixtures

- In-memory SQLite (aiosqlite) per test, shared across sessions by StaticPool
- FakeDocumentStore in place of the pymongo-backed DocumentStore
- httpx AsyncClient over ASGITransport with dependency overrides
"""
import os

# Configure before any hackathon_api module reads settings
os.environ["DATABASE_URL"] = "sqlite+aiosqlite:///:memory:"
os.environ["JWT_SECRET_KEY"] = "test-secret-key"
os.environ["RATE_LIMIT_ENABLED"] = "false"
os.environ["BCRYPT_ROUNDS"] = "4"
os.environ["LOG_LEVEL"] = "WARNING"

import copy
from typing import Any, AsyncGenerator, Dict, List, Optional

import pytest
import pytest_asyncio
from bson import ObjectId
from httpx import ASGITransport, AsyncClient
from pymongo.errors import DuplicateKeyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from hackathon_api.database import get_db
from hackathon_api.document_store import CERTIFICATES, SUBMISSIONS, get_document_store
from hackathon_api.main import app
from hackathon_api.orm.base import Base
from hackathon_api.orm.event import Event
from hackathon_api.orm.user import User, UserRole
from hackathon_api.tests.factories import make_event, make_user

TEST_DATABASE_URL = "sqlite+aiosqlite://"


# ================= DOCUMENT STORE FAKE =================

class FakeDocumentStore:
    """
    In-memory stand-in for DocumentStore.

    Supports the query subset the services use: equality, $in and $ne.
    The two unique indexes are enforced so duplicate races surface as
    DuplicateKeyError, as they would from the real store.
    """

    UNIQUE_KEYS = {
        SUBMISSIONS: ("event_id", "team_id", "round"),
        CERTIFICATES: ("event_id", "user_id"),
    }

    def __init__(self):
        self.collections: Dict[str, List[Dict[str, Any]]] = {}

    def _coll(self, name: str) -> List[Dict[str, Any]]:
        return self.collections.setdefault(name, [])

    @staticmethod
    def _matches(doc: Dict[str, Any], query: Dict[str, Any]) -> bool:
        for field, condition in query.items():
            value = doc.get(field)
            if isinstance(condition, dict):
                if "$in" in condition and value not in condition["$in"]:
                    return False
                if "$ne" in condition and value == condition["$ne"]:
                    return False
            elif value != condition:
                return False
        return True

    def _check_unique(self, collection: str, candidate: Dict[str, Any]) -> None:
        keys = self.UNIQUE_KEYS.get(collection)
        if not keys:
            return
        for doc in self._coll(collection):
            if doc["_id"] != candidate.get("_id") and all(doc.get(k) == candidate.get(k) for k in keys):
                raise DuplicateKeyError(f"E11000 duplicate key on {collection} {keys}")

    async def insert(self, collection: str, document: Dict[str, Any]) -> Dict[str, Any]:
        document["_id"] = ObjectId()
        self._check_unique(collection, document)
        self._coll(collection).append(copy.deepcopy(document))
        return document

    async def find_one(self, collection: str, query: Dict[str, Any]) -> Optional[Dict[str, Any]]:
        for doc in self._coll(collection):
            if self._matches(doc, query):
                return copy.deepcopy(doc)
        return None

    async def find(self, collection, query, sort=None, skip=0, limit=0):
        docs = [copy.deepcopy(d) for d in self._coll(collection) if self._matches(d, query)]
        for field, direction in reversed(list(sort or [])):
            docs.sort(key=lambda d: d.get(field), reverse=direction < 0)
        docs = docs[skip:]
        return docs[:limit] if limit else docs

    async def count(self, collection: str, query: Dict[str, Any]) -> int:
        return sum(1 for doc in self._coll(collection) if self._matches(doc, query))

    async def update_one(self, collection, query, fields):
        for doc in self._coll(collection):
            if self._matches(doc, query):
                self._check_unique(collection, {**doc, **fields})
                doc.update(copy.deepcopy(fields))
                return copy.deepcopy(doc)
        return None

    async def push(self, collection, query, field, value, fields=None):
        for doc in self._coll(collection):
            if self._matches(doc, query):
                doc.setdefault(field, []).append(copy.deepcopy(value))
                if fields:
                    doc.update(copy.deepcopy(fields))
                return copy.deepcopy(doc)
        return None

    async def delete_one(self, collection: str, query: Dict[str, Any]) -> bool:
        docs = self._coll(collection)
        for index, doc in enumerate(docs):
            if self._matches(doc, query):
                del docs[index]
                return True
        return False

    async def ensure_indexes(self) -> None:
        pass


# ================= DATABASE =================

@pytest_asyncio.fixture
async def engine():
    engine = create_async_engine(
        TEST_DATABASE_URL,
        echo=False,
        poolclass=StaticPool,
        connect_args={"check_same_thread": False},
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)

    yield engine

    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.drop_all)
    await engine.dispose()


@pytest_asyncio.fixture
async def session_factory(engine):
    return async_sessionmaker(engine, class_=AsyncSession, expire_on_commit=False, autoflush=False)


@pytest_asyncio.fixture
async def db(session_factory) -> AsyncGenerator[AsyncSession, None]:
    """Session for service-level tests."""
    async with session_factory() as session:
        yield session


@pytest.fixture
def documents() -> FakeDocumentStore:
    return FakeDocumentStore()


# ================= USERS =================

@pytest_asyncio.fixture
async def organizer(db) -> User:
    return await make_user(db, "organizer@test.com", UserRole.organizer)


@pytest_asyncio.fixture
async def judge(db) -> User:
    return await make_user(db, "judge@test.com", UserRole.judge)


@pytest_asyncio.fixture
async def alice(db) -> User:
    return await make_user(db, "alice@test.com")


@pytest_asyncio.fixture
async def bob(db) -> User:
    return await make_user(db, "bob@test.com")


@pytest_asyncio.fixture
async def carol(db) -> User:
    return await make_user(db, "carol@test.com")


@pytest_asyncio.fixture
async def dave(db) -> User:
    return await make_user(db, "dave@test.com")


@pytest_asyncio.fixture
async def event(db, organizer) -> Event:
    return await make_event(db, organizer)


# ================= API CLIENT =================

@pytest_asyncio.fixture
async def client(session_factory, documents) -> AsyncGenerator[AsyncClient, None]:
    async def override_get_db():
        async with session_factory() as session:
            try:
                yield session
            except Exception:
                await session.rollback()
                raise

    app.dependency_overrides[get_db] = override_get_db
    app.dependency_overrides[get_document_store] = lambda: documents

    async with AsyncClient(transport=ASGITransport(app=app), base_url="http://test") as ac:
        yield ac

    app.dependency_overrides.clear()
