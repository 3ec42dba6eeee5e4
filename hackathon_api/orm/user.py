"""
hackathon_api/orm/user.py
User model: identity, credentials and global role
"""
from enum import Enum

from sqlalchemy import Column, Integer, String, Boolean, Enum as SQLEnum

from hackathon_api.orm.base import Base, TimestampMixin, enum_values
from hackathon_api.utils.timeutil import isoformat


class UserRole(str, Enum):
    """Global platform roles"""
    participant = "participant"
    organizer = "organizer"
    judge = "judge"


class AuthProvider(str, Enum):
    email = "email"
    google = "google"
    github = "github"


class User(TimestampMixin, Base):
    """
    Platform user.

    Users are never hard-deleted; `is_active` gates authentication.
    """
    __tablename__ = "users"

    id = Column(Integer, primary_key=True, index=True, autoincrement=True)

    # Authentication
    name = Column(String(255), nullable=False)
    email = Column(String(255), nullable=False, unique=True, index=True)
    password_hash = Column(String(255), nullable=False)
    auth_provider = Column(
        SQLEnum(AuthProvider, name="auth_provider", values_callable=enum_values, create_constraint=True),
        nullable=False,
        default=AuthProvider.email
    )
    role = Column(
        SQLEnum(UserRole, name="user_role", values_callable=enum_values, create_constraint=True),
        nullable=False,
        default=UserRole.participant,
        index=True
    )

    # Account Status
    is_active = Column(Boolean, default=True, nullable=False, index=True)

    def __repr__(self):
        return f"<User(id={self.id}, email='{self.email}', role={self.role})>"

    def to_dict(self):
        """Public representation; never includes the password hash."""
        return {
            "id": self.id,
            "name": self.name,
            "email": self.email,
            "auth_provider": self.auth_provider.value if self.auth_provider else None,
            "role": self.role.value if self.role else None,
            "is_active": self.is_active,
            "created_at": isoformat(self.created_at),
            "updated_at": isoformat(self.updated_at),
        }
