"""
Document Schemas (Pydantic)

The first group describes what is stored in each document collection; the
services build a stored model and persist `model_dump()`. The second group
validates request bodies.

Relational ids (event_id, team_id, user_id, author_id, from_user_id) are
plain integers; they are checked by the ReferenceValidator before writes.
"""
from datetime import datetime
from typing import List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from hackathon_api.utils.timeutil import utcnow


def _strip_required(v: str) -> str:
    v = v.strip()
    if not v:
        raise ValueError("Field cannot be empty")
    return v


# ================= STORED DOCUMENTS =================

class StoredDocument(BaseModel):
    created_at: datetime = Field(default_factory=utcnow)
    updated_at: datetime = Field(default_factory=utcnow)


class Submission(StoredDocument):
    event_id: int = Field(..., description="Event the submission is for")
    team_id: int = Field(..., description="Submitting team")
    title: str
    description: str
    track: str
    github_url: Optional[str] = None
    video_url: Optional[str] = None
    docs: List[str] = Field(default_factory=list)
    round: int = Field(1, ge=1, description="One submission per (event, team, round)")
    submitted_at: datetime = Field(default_factory=utcnow)


class Announcement(StoredDocument):
    event_id: int
    author_id: int = Field(..., description="Organizer who posted the announcement")
    message: str
    is_important: bool = True


class Certificate(StoredDocument):
    event_id: int
    user_id: int
    certificate_url: str
    issued_at: datetime = Field(default_factory=utcnow)


class ChatReply(StoredDocument):
    from_user_id: int
    message: str


class ChatQnA(StoredDocument):
    event_id: int
    from_user_id: int
    message: str
    replies: List[ChatReply] = Field(default_factory=list, description="Append-only")


# ================= REQUEST BODIES =================

class SubmissionCreate(BaseModel):
    event_id: int = Field(..., gt=0)
    team_id: int = Field(..., gt=0)
    title: str = Field(..., min_length=1, max_length=255)
    description: str = Field(..., min_length=1, max_length=5000)
    track: str = Field(..., min_length=1, max_length=255)
    github_url: Optional[str] = Field(None, max_length=2048)
    video_url: Optional[str] = Field(None, max_length=2048)
    docs: List[str] = Field(default_factory=list)
    round: int = Field(1, ge=1)

    @field_validator("title", "description", "track")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return _strip_required(v)


class SubmissionUpdate(BaseModel):
    """event_id, team_id and submitted_at cannot be changed."""
    title: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = Field(None, min_length=1, max_length=5000)
    track: Optional[str] = Field(None, min_length=1, max_length=255)
    github_url: Optional[str] = Field(None, max_length=2048)
    video_url: Optional[str] = Field(None, max_length=2048)
    docs: Optional[List[str]] = None
    round: Optional[int] = Field(None, ge=1)

    @model_validator(mode="after")
    def require_one_field(self):
        if not self.model_fields_set:
            raise ValueError("At least one field must be provided for update")
        return self


class AnnouncementCreate(BaseModel):
    event_id: int = Field(..., gt=0)
    message: str = Field(..., min_length=5, max_length=1000)
    is_important: bool = True

    @field_validator("message")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return _strip_required(v)


class AnnouncementUpdate(BaseModel):
    message: Optional[str] = Field(None, min_length=5, max_length=1000)
    is_important: Optional[bool] = None

    @model_validator(mode="after")
    def require_one_field(self):
        if self.message is None and self.is_important is None:
            raise ValueError("At least one field must be provided for update")
        return self


class CertificateIssue(BaseModel):
    event_id: int = Field(..., gt=0)
    user_id: int = Field(..., gt=0)
    certificate_url: str = Field(..., min_length=1, max_length=2048)

    @field_validator("certificate_url")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return _strip_required(v)


class CertificateUpdate(BaseModel):
    certificate_url: str = Field(..., min_length=1, max_length=2048)

    @field_validator("certificate_url")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return _strip_required(v)


class BulkCertificateIssue(BaseModel):
    event_id: int = Field(..., gt=0)
    user_ids: List[int] = Field(..., min_length=1, max_length=500)
    certificate_url: str = Field(..., min_length=1, max_length=2048)


class ChatQuestionCreate(BaseModel):
    event_id: int = Field(..., gt=0)
    message: str = Field(..., min_length=1, max_length=2000)

    @field_validator("message")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return _strip_required(v)


class ChatReplyCreate(BaseModel):
    message: str = Field(..., min_length=1, max_length=2000)

    @field_validator("message")
    @classmethod
    def strip_text(cls, v: str) -> str:
        return _strip_required(v)
