"""
Event, Team and Enrollment API Schemas (Pydantic)

Datetimes may be sent with or without an offset; they are normalized to
naive UTC before they reach the relational store.
"""
from datetime import datetime
from typing import Optional

from pydantic import BaseModel, Field, field_validator, model_validator

from hackathon_api.orm.event import EventMode
from hackathon_api.utils.timeutil import as_naive_utc


class EventCreate(BaseModel):
    name: str = Field(..., min_length=1, max_length=255)
    description: Optional[str] = None
    theme: Optional[str] = Field(None, max_length=255)
    mode: EventMode = EventMode.ONLINE
    start_date: datetime
    end_date: datetime
    submission_deadline: Optional[datetime] = None
    result_date: Optional[datetime] = None
    rules: Optional[str] = None
    tracks: Optional[str] = None
    prizes: Optional[str] = None
    max_team_size: Optional[int] = Field(None, gt=0)
    max_participants: Optional[int] = Field(None, gt=0)

    @field_validator("start_date", "end_date", "submission_deadline", "result_date")
    @classmethod
    def to_naive_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_naive_utc(v)

    @model_validator(mode="after")
    def check_schedule(self):
        if self.start_date >= self.end_date:
            raise ValueError("end_date must be after start_date")
        if self.submission_deadline and self.submission_deadline > self.end_date:
            raise ValueError("submission_deadline must be before or equal to end_date")
        return self


class EventUpdate(BaseModel):
    """Partial update; the merged schedule is re-validated by the service."""
    name: Optional[str] = Field(None, min_length=1, max_length=255)
    description: Optional[str] = None
    theme: Optional[str] = Field(None, max_length=255)
    mode: Optional[EventMode] = None
    start_date: Optional[datetime] = None
    end_date: Optional[datetime] = None
    submission_deadline: Optional[datetime] = None
    result_date: Optional[datetime] = None
    rules: Optional[str] = None
    tracks: Optional[str] = None
    prizes: Optional[str] = None
    max_team_size: Optional[int] = Field(None, gt=0)
    max_participants: Optional[int] = Field(None, gt=0)

    @field_validator("start_date", "end_date", "submission_deadline", "result_date")
    @classmethod
    def to_naive_utc(cls, v: Optional[datetime]) -> Optional[datetime]:
        return as_naive_utc(v)


class TeamCreate(BaseModel):
    event_id: int = Field(..., gt=0)
    name: str = Field(..., min_length=2, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: str) -> str:
        v = v.strip()
        if len(v) < 2:
            raise ValueError("Team name must be at least 2 characters long")
        return v


class TeamUpdate(BaseModel):
    name: Optional[str] = Field(None, min_length=2, max_length=255)
    description: Optional[str] = Field(None, max_length=2000)

    @field_validator("name")
    @classmethod
    def strip_name(cls, v: Optional[str]) -> Optional[str]:
        return v.strip() if v else v


class LeadershipTransfer(BaseModel):
    new_leader_id: int = Field(..., gt=0)


class EnrollmentTeamLink(BaseModel):
    """team_id = null clears the association."""
    team_id: Optional[int] = Field(None, gt=0)
