"""
Event Enrollment State Machine

    NONE | Cancelled    → Enrolled | Waitlisted   (enroll; waitlisted at capacity)
    Enrolled | Waitlisted → Cancelled             (cancel before start, event deleted)
    Waitlisted          → Enrolled                (promoted when a seat frees up)
    Enrolled            → Enrolled                (team association set or cleared)

Pure rules only; EnrollmentService loads the context and persists the result.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional

from hackathon_api.errors import ErrorCode
from hackathon_api.orm.enrollment import EnrollmentStatus
from hackathon_api.state_machines.base import Outcome, Rejection, RejectionKind, Transition


class EnrollmentState(str, Enum):
    NONE = "None"
    ENROLLED = EnrollmentStatus.ENROLLED.value
    CANCELLED = EnrollmentStatus.CANCELLED.value
    WAITLISTED = EnrollmentStatus.WAITLISTED.value

    @classmethod
    def of(cls, enrollment) -> "EnrollmentState":
        """State of an EventEnrollment row, NONE when there is no row."""
        if enrollment is None:
            return cls.NONE
        return cls(enrollment.status.value)

    def to_status(self) -> EnrollmentStatus:
        if self == EnrollmentState.NONE:
            raise ValueError("NONE has no persisted status")
        return EnrollmentStatus(self.value)


class EnrollmentAction(str, Enum):
    ENROLL = "enroll"
    CANCEL = "cancel"
    PROMOTE = "promote"
    EVENT_DELETED = "event_deleted"
    ASSOCIATE_TEAM = "associate_team"


ALLOWED_TRANSITIONS: Dict[EnrollmentAction, FrozenSet[EnrollmentState]] = {
    EnrollmentAction.ENROLL: frozenset({EnrollmentState.NONE, EnrollmentState.CANCELLED}),
    EnrollmentAction.CANCEL: frozenset({EnrollmentState.ENROLLED, EnrollmentState.WAITLISTED}),
    EnrollmentAction.PROMOTE: frozenset({EnrollmentState.WAITLISTED}),
    EnrollmentAction.EVENT_DELETED: frozenset({EnrollmentState.ENROLLED, EnrollmentState.WAITLISTED}),
    EnrollmentAction.ASSOCIATE_TEAM: frozenset({EnrollmentState.ENROLLED}),
}


def source_statuses(action: EnrollmentAction) -> FrozenSet[EnrollmentStatus]:
    """Persisted statuses from which `action` is allowed (for bulk updates)."""
    return frozenset(
        state.to_status()
        for state in ALLOWED_TRANSITIONS[action]
        if state != EnrollmentState.NONE
    )


@dataclass(frozen=True)
class EnrollmentContext:
    event_active: bool = True
    event_started: bool = False
    at_capacity: bool = False
    # Team association; both ignored when the association is being cleared
    clearing_team: bool = False
    team_in_event: bool = True
    user_in_team: bool = True


def _reject(kind: RejectionKind, reason: str, code: str) -> Rejection:
    return Rejection(kind=kind, reason=reason, code=code)


def _check_source(current: EnrollmentState, action: EnrollmentAction) -> Optional[Rejection]:
    if current in ALLOWED_TRANSITIONS[action]:
        return None

    if action == EnrollmentAction.ENROLL:
        return _reject(
            RejectionKind.CONFLICT,
            f"Already registered for this event (status: {current.value})",
            ErrorCode.ALREADY_ENROLLED
        )
    if current == EnrollmentState.NONE and action in (
        EnrollmentAction.CANCEL, EnrollmentAction.ASSOCIATE_TEAM
    ):
        return _reject(RejectionKind.NOT_FOUND, "Enrollment not found", ErrorCode.NOT_FOUND)
    if action == EnrollmentAction.ASSOCIATE_TEAM:
        return _reject(
            RejectionKind.INVALID,
            "Only an active enrollment can be linked to a team",
            ErrorCode.ENROLLMENT_REQUIRED
        )
    return _reject(
        RejectionKind.INVALID,
        f"Cannot {action.value.replace('_', ' ')} an enrollment in status {current.value}",
        ErrorCode.STATE_TRANSITION_INVALID
    )


def evaluate(
    current: EnrollmentState,
    action: EnrollmentAction,
    context: EnrollmentContext
) -> Outcome:
    rejection = _check_source(current, action)
    if rejection:
        return rejection

    if action == EnrollmentAction.ENROLL:
        if not context.event_active:
            return _reject(RejectionKind.INVALID, "Event is not active", ErrorCode.EVENT_INACTIVE)
        if context.event_started:
            return _reject(
                RejectionKind.INVALID,
                "Cannot enroll in an event that has already started",
                ErrorCode.EVENT_STARTED
            )
        if context.at_capacity:
            return Transition(EnrollmentState.WAITLISTED)
        return Transition(EnrollmentState.ENROLLED)

    if action == EnrollmentAction.CANCEL:
        if context.event_started:
            return _reject(
                RejectionKind.INVALID,
                "Cannot cancel enrollment after the event has started",
                ErrorCode.EVENT_STARTED
            )
        return Transition(EnrollmentState.CANCELLED)

    if action == EnrollmentAction.PROMOTE:
        return Transition(EnrollmentState.ENROLLED)

    if action == EnrollmentAction.EVENT_DELETED:
        return Transition(EnrollmentState.CANCELLED)

    if action == EnrollmentAction.ASSOCIATE_TEAM:
        if context.clearing_team:
            return Transition(EnrollmentState.ENROLLED)
        if not context.team_in_event:
            return _reject(
                RejectionKind.INVALID,
                "Team does not belong to this event",
                ErrorCode.TEAM_EVENT_MISMATCH
            )
        if not context.user_in_team:
            return _reject(
                RejectionKind.FORBIDDEN,
                "You are not a member of this team",
                ErrorCode.NOT_TEAM_MEMBER
            )
        return Transition(EnrollmentState.ENROLLED)

    raise ValueError(f"Unknown enrollment action: {action}")
