"""
hackathon_api/orm/base.py
Base model for all ORM models
"""
from sqlalchemy import Column, DateTime
from sqlalchemy.orm import declarative_base

from hackathon_api.utils.timeutil import utcnow

Base = declarative_base()


class TimestampMixin:
    """created_at / updated_at columns shared by the relational entities."""

    created_at = Column(
        DateTime,
        default=utcnow,
        nullable=False,
        comment="Timestamp when record was created"
    )

    updated_at = Column(
        DateTime,
        default=utcnow,
        onupdate=utcnow,
        nullable=False,
        comment="Timestamp when record was last updated"
    )


def enum_values(enum_cls):
    """Persist enum values (not member names) in check-constrained columns."""
    return [member.value for member in enum_cls]
