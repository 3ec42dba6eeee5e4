"""
Shared outcome types for the rule engines.

A rule evaluation returns either a `Transition` (the new state, plus side
effects the caller must carry out) or a `Rejection` (why the action is not
allowed). Neither touches the database; services translate outcomes into
writes or API errors.
"""
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class RejectionKind(str, Enum):
    """Category of a rejected action, used to pick the HTTP status."""
    INVALID = "invalid"          # business rule violated (400)
    FORBIDDEN = "forbidden"      # caller lacks team/event authority (403)
    NOT_FOUND = "not_found"      # caller/target has no such membership (404)
    CONFLICT = "conflict"        # duplicate or capacity conflict (409)


@dataclass(frozen=True)
class Transition:
    new_state: Any
    team_deleted: bool = False

    @property
    def allowed(self) -> bool:
        return True


@dataclass(frozen=True)
class Rejection:
    kind: RejectionKind
    reason: str
    code: str

    @property
    def allowed(self) -> bool:
        return False


Outcome = Union[Transition, Rejection]
