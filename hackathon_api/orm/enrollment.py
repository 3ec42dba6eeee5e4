"""
hackathon_api/orm/enrollment.py
EventEnrollment model: a user's registration for an event
"""
from enum import Enum as PyEnum

from sqlalchemy import Column, Integer, DateTime, ForeignKey, UniqueConstraint, Enum as SQLEnum
from sqlalchemy.orm import relationship

from hackathon_api.orm.base import Base, enum_values
from hackathon_api.utils.timeutil import utcnow, isoformat


class EnrollmentStatus(str, PyEnum):
    """Persisted enrollment statuses (check-constrained column)"""
    ENROLLED = "Enrolled"
    CANCELLED = "Cancelled"
    WAITLISTED = "Waitlisted"


class EventEnrollment(Base):
    """
    One row per (event, user). Re-enrolling after a cancellation reuses the
    row, so there is never more than one non-cancelled enrollment per pair.
    """
    __tablename__ = "event_enrollments"
    __table_args__ = (
        UniqueConstraint("event_id", "user_id", name="uq_event_enrollments_event_user"),
    )

    id = Column(Integer, primary_key=True, index=True)

    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    status = Column(
        SQLEnum(EnrollmentStatus, name="enrollment_status", values_callable=enum_values, create_constraint=True),
        nullable=False,
        default=EnrollmentStatus.ENROLLED,
        index=True
    )

    # Must reference a team of the same event that the user belongs to
    team_id = Column(Integer, ForeignKey("teams.id", ondelete="SET NULL"), nullable=True, index=True)

    enrolled_at = Column(DateTime, default=utcnow, nullable=False)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)

    user = relationship("User", lazy="selectin")

    def __repr__(self):
        return f"<EventEnrollment(event={self.event_id}, user={self.user_id}, status={self.status})>"

    def to_dict(self, include_user: bool = False):
        data = {
            "id": self.id,
            "event_id": self.event_id,
            "user_id": self.user_id,
            "status": self.status.value if self.status else None,
            "team_id": self.team_id,
            "enrolled_at": isoformat(self.enrolled_at),
            "updated_at": isoformat(self.updated_at),
        }
        if include_user and self.user:
            data["user"] = {"id": self.user.id, "name": self.user.name, "email": self.user.email}
        return data
