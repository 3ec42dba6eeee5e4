from .base import Base

# Relational entities
from .user import User, UserRole, AuthProvider
from .event import Event, EventMode
from .team import Team, TeamMember, TeamRole
from .enrollment import EventEnrollment, EnrollmentStatus
