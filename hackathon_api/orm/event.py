"""
hackathon_api/orm/event.py
Event model: an organizer-owned hackathon with a schedule window
"""
from enum import Enum as PyEnum

from sqlalchemy import (
    Column, Integer, String, Boolean, DateTime, Text, ForeignKey,
    CheckConstraint, Enum as SQLEnum
)
from sqlalchemy.orm import relationship

from hackathon_api.orm.base import Base, TimestampMixin, enum_values
from hackathon_api.utils.timeutil import isoformat


class EventMode(str, PyEnum):
    ONLINE = "Online"
    OFFLINE = "Offline"


class Event(TimestampMixin, Base):
    """
    Hackathon event.

    Soft-deleted by clearing `is_active`; rows are never removed so that
    enrollments, teams and documents keep a valid reference.
    """
    __tablename__ = "events"
    __table_args__ = (
        CheckConstraint("start_date < end_date", name="ck_events_schedule_window"),
        CheckConstraint(
            "submission_deadline IS NULL OR submission_deadline <= end_date",
            name="ck_events_submission_deadline"
        ),
        CheckConstraint("max_team_size > 0", name="ck_events_max_team_size"),
    )

    id = Column(Integer, primary_key=True, index=True)
    organizer_id = Column(Integer, ForeignKey("users.id"), nullable=False, index=True)

    # Basic Info
    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)
    theme = Column(String(255), nullable=True)
    mode = Column(
        SQLEnum(EventMode, name="event_mode", values_callable=enum_values, create_constraint=True),
        nullable=False,
        default=EventMode.ONLINE
    )

    # Schedule
    start_date = Column(DateTime, nullable=False)
    end_date = Column(DateTime, nullable=False)
    submission_deadline = Column(DateTime, nullable=True)
    result_date = Column(DateTime, nullable=True)

    # Content
    rules = Column(Text, nullable=True)
    tracks = Column(Text, nullable=True)
    prizes = Column(Text, nullable=True)

    # Limits
    max_team_size = Column(Integer, nullable=False, default=4)
    max_participants = Column(Integer, nullable=True)  # NULL = unlimited enrollment

    # Soft-delete marker
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    organizer = relationship("User", lazy="selectin")

    def __repr__(self):
        return f"<Event(id={self.id}, name='{self.name}', active={self.is_active})>"

    def has_started(self, now) -> bool:
        return now >= self.start_date

    def to_dict(self):
        return {
            "id": self.id,
            "organizer_id": self.organizer_id,
            "name": self.name,
            "description": self.description,
            "theme": self.theme,
            "mode": self.mode.value if self.mode else None,
            "start_date": isoformat(self.start_date),
            "end_date": isoformat(self.end_date),
            "submission_deadline": isoformat(self.submission_deadline),
            "result_date": isoformat(self.result_date),
            "rules": self.rules,
            "tracks": self.tracks,
            "prizes": self.prizes,
            "max_team_size": self.max_team_size,
            "max_participants": self.max_participants,
            "is_active": self.is_active,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
