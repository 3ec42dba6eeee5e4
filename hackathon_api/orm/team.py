"""
hackathon_api/orm/team.py
Team and TeamMember models

A team belongs to exactly one event. Membership rows carry the event id as
well so the one-team-per-user-per-event rule is a schema constraint rather
than only an application check.
"""
from enum import Enum as PyEnum

from sqlalchemy import (
    Column, Integer, String, DateTime, Text, ForeignKey, UniqueConstraint,
    Enum as SQLEnum
)
from sqlalchemy.orm import relationship

from hackathon_api.orm.base import Base, TimestampMixin, enum_values
from hackathon_api.utils.timeutil import utcnow, isoformat


class TeamRole(str, PyEnum):
    """Team-level roles (separate from the global UserRole)"""
    LEADER = "Leader"   # Administrative rights over the team
    MEMBER = "Member"


class Team(TimestampMixin, Base):
    """Hackathon team, scoped to one event."""
    __tablename__ = "teams"
    __table_args__ = (
        UniqueConstraint("event_id", "name", name="uq_teams_event_name"),
    )

    id = Column(Integer, primary_key=True, index=True)
    event_id = Column(
        Integer,
        ForeignKey("events.id", ondelete="CASCADE"),
        nullable=False,
        index=True
    )

    name = Column(String(255), nullable=False)
    description = Column(Text, nullable=True)

    created_by = Column(Integer, ForeignKey("users.id"), nullable=False)

    def __repr__(self):
        return f"<Team(id={self.id}, name='{self.name}', event={self.event_id})>"

    def to_dict(self, members=None):
        data = {
            "id": self.id,
            "event_id": self.event_id,
            "name": self.name,
            "description": self.description,
            "created_by": self.created_by,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
        if members is not None:
            data["member_count"] = len(members)
            data["members"] = [member.to_dict() for member in members]
        return data


class TeamMember(Base):
    """
    Membership of a user in a team.

    Exactly one row per non-empty team has role LEADER.
    """
    __tablename__ = "team_members"
    __table_args__ = (
        UniqueConstraint("team_id", "user_id", name="uq_team_members_team_user"),
        UniqueConstraint("event_id", "user_id", name="uq_team_members_event_user"),
    )

    id = Column(Integer, primary_key=True, index=True)

    team_id = Column(Integer, ForeignKey("teams.id", ondelete="CASCADE"), nullable=False, index=True)
    event_id = Column(Integer, ForeignKey("events.id", ondelete="CASCADE"), nullable=False, index=True)
    user_id = Column(Integer, ForeignKey("users.id", ondelete="CASCADE"), nullable=False, index=True)

    role = Column(
        SQLEnum(TeamRole, name="team_role", values_callable=enum_values, create_constraint=True),
        default=TeamRole.MEMBER,
        nullable=False
    )

    joined_at = Column(DateTime, default=utcnow, nullable=False)

    user = relationship("User", lazy="selectin")

    def __repr__(self):
        return f"<TeamMember(team={self.team_id}, user={self.user_id}, role={self.role})>"

    def to_dict(self):
        return {
            "user_id": self.user_id,
            "name": self.user.name if self.user else None,
            "email": self.user.email if self.user else None,
            "role": self.role.value if self.role else None,
            "joined_at": isoformat(self.joined_at),
        }
