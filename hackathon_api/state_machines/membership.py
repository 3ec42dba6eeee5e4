"""
Team Membership State Machine

Tracks one user's standing in the teams of one event:

    NO_TEAM → MEMBER | LEADER     (create / join)
    MEMBER  → LEADER              (receives leadership)
    LEADER  → MEMBER              (hands leadership over)
    MEMBER | LEADER → NO_TEAM     (leave / removed / team deleted)

`evaluate` is pure: it reads a snapshot in `MembershipContext` and returns a
Transition or a Rejection. The service loads the snapshot, applies the
outcome and commits.

Actor state is scoped differently per action:
- CREATE_TEAM / JOIN_TEAM: the actor's state across every team of the event
- all other actions: the actor's state in the team being acted on
"""
from dataclasses import dataclass
from enum import Enum
from typing import Dict, FrozenSet, Optional

from hackathon_api.errors import ErrorCode
from hackathon_api.state_machines.base import Outcome, Rejection, RejectionKind, Transition


class MembershipState(str, Enum):
    NO_TEAM = "no_team"
    MEMBER = "member"
    LEADER = "leader"


class MembershipAction(str, Enum):
    CREATE_TEAM = "create_team"
    JOIN_TEAM = "join_team"
    LEAVE_TEAM = "leave_team"
    REMOVE_MEMBER = "remove_member"
    TRANSFER_LEADERSHIP = "transfer_leadership"
    UPDATE_TEAM = "update_team"
    DELETE_TEAM = "delete_team"


# Actor states from which each action may be attempted
ALLOWED_TRANSITIONS: Dict[MembershipAction, FrozenSet[MembershipState]] = {
    MembershipAction.CREATE_TEAM: frozenset({MembershipState.NO_TEAM}),
    MembershipAction.JOIN_TEAM: frozenset({MembershipState.NO_TEAM}),
    MembershipAction.LEAVE_TEAM: frozenset({MembershipState.MEMBER, MembershipState.LEADER}),
    MembershipAction.REMOVE_MEMBER: frozenset({MembershipState.LEADER}),
    MembershipAction.TRANSFER_LEADERSHIP: frozenset({MembershipState.LEADER}),
    MembershipAction.UPDATE_TEAM: frozenset({MembershipState.LEADER}),
    MembershipAction.DELETE_TEAM: frozenset({MembershipState.LEADER}),
}


@dataclass(frozen=True)
class MembershipContext:
    """Snapshot of the facts a membership rule depends on."""
    event_active: bool = True
    member_count: int = 0
    max_team_size: int = 4
    name_taken: bool = False
    # State of the member targeted by REMOVE_MEMBER / TRANSFER_LEADERSHIP
    target_state: Optional[MembershipState] = None
    actor_is_target: bool = False


def _reject(kind: RejectionKind, reason: str, code: str) -> Rejection:
    return Rejection(kind=kind, reason=reason, code=code)


def _check_source(current_state: MembershipState, action: MembershipAction) -> Optional[Rejection]:
    if current_state in ALLOWED_TRANSITIONS[action]:
        return None

    if action in (MembershipAction.CREATE_TEAM, MembershipAction.JOIN_TEAM):
        return _reject(
            RejectionKind.CONFLICT,
            "You are already part of a team for this event",
            ErrorCode.ALREADY_IN_TEAM
        )
    if action == MembershipAction.LEAVE_TEAM:
        return _reject(
            RejectionKind.NOT_FOUND,
            "You are not a member of this team",
            ErrorCode.NOT_TEAM_MEMBER
        )
    return _reject(
        RejectionKind.FORBIDDEN,
        "Only the team leader can perform this action",
        ErrorCode.NOT_TEAM_LEADER
    )


def evaluate(
    current_state: MembershipState,
    action: MembershipAction,
    context: MembershipContext
) -> Outcome:
    """
    Decide whether `action` is allowed for an actor in `current_state`.

    Transition.new_state is the new state of the user whose membership
    changes: the actor for create/join/leave/transfer/update/delete, the
    target for REMOVE_MEMBER. `team_deleted` is set when the outcome
    empties the team.
    """
    rejection = _check_source(current_state, action)
    if rejection:
        return rejection

    if action == MembershipAction.CREATE_TEAM:
        if not context.event_active:
            return _reject(RejectionKind.INVALID, "Event is not active", ErrorCode.EVENT_INACTIVE)
        if context.name_taken:
            return _reject(
                RejectionKind.CONFLICT,
                "A team with this name already exists for this event",
                ErrorCode.TEAM_NAME_TAKEN
            )
        return Transition(MembershipState.LEADER)

    if action == MembershipAction.JOIN_TEAM:
        if not context.event_active:
            return _reject(RejectionKind.INVALID, "Event is not active", ErrorCode.EVENT_INACTIVE)
        if context.member_count >= context.max_team_size:
            return _reject(
                RejectionKind.CONFLICT,
                f"Team is full (maximum {context.max_team_size} members)",
                ErrorCode.TEAM_FULL
            )
        # An emptied team has no leader; whoever joins first takes the role
        if context.member_count == 0:
            return Transition(MembershipState.LEADER)
        return Transition(MembershipState.MEMBER)

    if action == MembershipAction.LEAVE_TEAM:
        if current_state == MembershipState.MEMBER:
            return Transition(MembershipState.NO_TEAM)
        if context.member_count > 1:
            return _reject(
                RejectionKind.INVALID,
                "Team leader cannot leave while other members remain. "
                "Transfer leadership or remove the members first",
                ErrorCode.LEADER_HAS_MEMBERS
            )
        return Transition(MembershipState.NO_TEAM, team_deleted=True)

    if action in (MembershipAction.REMOVE_MEMBER, MembershipAction.TRANSFER_LEADERSHIP):
        if context.actor_is_target:
            reason = (
                "Team leader cannot remove themself. Use leave instead"
                if action == MembershipAction.REMOVE_MEMBER
                else "You are already the team leader"
            )
            return _reject(RejectionKind.INVALID, reason, ErrorCode.CANNOT_REMOVE_SELF)
        if context.target_state not in (MembershipState.MEMBER, MembershipState.LEADER):
            return _reject(
                RejectionKind.NOT_FOUND,
                "User is not a member of this team",
                ErrorCode.NOT_TEAM_MEMBER
            )
        if action == MembershipAction.REMOVE_MEMBER:
            return Transition(MembershipState.NO_TEAM)
        return Transition(MembershipState.MEMBER)

    if action == MembershipAction.UPDATE_TEAM:
        if context.name_taken:
            return _reject(
                RejectionKind.CONFLICT,
                "A team with this name already exists for this event",
                ErrorCode.TEAM_NAME_TAKEN
            )
        return Transition(MembershipState.LEADER)

    if action == MembershipAction.DELETE_TEAM:
        return Transition(MembershipState.NO_TEAM, team_deleted=True)

    raise ValueError(f"Unknown membership action: {action}")
