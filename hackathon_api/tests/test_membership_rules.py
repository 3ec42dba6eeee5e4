"""
Unit Tests for the Team Membership State Machine

Pure rule evaluation: no database, no I/O.
"""
import pytest

from hackathon_api.errors import ErrorCode
from hackathon_api.state_machines.base import RejectionKind, Transition
from hackathon_api.state_machines.membership import (
    ALLOWED_TRANSITIONS,
    MembershipAction,
    MembershipContext,
    MembershipState,
    evaluate,
)

NO_TEAM = MembershipState.NO_TEAM
MEMBER = MembershipState.MEMBER
LEADER = MembershipState.LEADER


class TestCreateTeam:
    def test_creator_becomes_leader(self):
        outcome = evaluate(NO_TEAM, MembershipAction.CREATE_TEAM, MembershipContext())
        assert outcome == Transition(LEADER)

    @pytest.mark.parametrize("state", [MEMBER, LEADER])
    def test_already_in_a_team_conflicts(self, state):
        outcome = evaluate(state, MembershipAction.CREATE_TEAM, MembershipContext())
        assert not outcome.allowed
        assert outcome.kind == RejectionKind.CONFLICT
        assert outcome.code == ErrorCode.ALREADY_IN_TEAM

    def test_inactive_event_rejected(self):
        outcome = evaluate(NO_TEAM, MembershipAction.CREATE_TEAM, MembershipContext(event_active=False))
        assert outcome.kind == RejectionKind.INVALID
        assert outcome.code == ErrorCode.EVENT_INACTIVE

    def test_duplicate_name_conflicts(self):
        outcome = evaluate(NO_TEAM, MembershipAction.CREATE_TEAM, MembershipContext(name_taken=True))
        assert outcome.kind == RejectionKind.CONFLICT
        assert outcome.code == ErrorCode.TEAM_NAME_TAKEN


class TestJoinTeam:
    def test_join_below_capacity_makes_member(self):
        context = MembershipContext(member_count=2, max_team_size=3)
        assert evaluate(NO_TEAM, MembershipAction.JOIN_TEAM, context) == Transition(MEMBER)

    def test_join_at_capacity_conflicts(self):
        context = MembershipContext(member_count=3, max_team_size=3)
        outcome = evaluate(NO_TEAM, MembershipAction.JOIN_TEAM, context)
        assert outcome.kind == RejectionKind.CONFLICT
        assert outcome.code == ErrorCode.TEAM_FULL

    def test_joining_empty_team_takes_leadership(self):
        context = MembershipContext(member_count=0, max_team_size=3)
        assert evaluate(NO_TEAM, MembershipAction.JOIN_TEAM, context) == Transition(LEADER)

    def test_member_of_another_team_cannot_join(self):
        outcome = evaluate(MEMBER, MembershipAction.JOIN_TEAM, MembershipContext(member_count=1))
        assert outcome.code == ErrorCode.ALREADY_IN_TEAM

    def test_stale_snapshot_admits_both_joiners(self):
        """
        Two joiners evaluated against the same snapshot both pass the rule.
        The rule alone cannot hold the capacity bound; the service must
        serialize joins on the team row.
        """
        snapshot = MembershipContext(member_count=2, max_team_size=3)
        first = evaluate(NO_TEAM, MembershipAction.JOIN_TEAM, snapshot)
        second = evaluate(NO_TEAM, MembershipAction.JOIN_TEAM, snapshot)

        assert first.allowed and second.allowed
        assert snapshot.member_count + 2 > snapshot.max_team_size

    def test_fresh_snapshot_rejects_second_joiner(self):
        after_first = MembershipContext(member_count=3, max_team_size=3)
        assert not evaluate(NO_TEAM, MembershipAction.JOIN_TEAM, after_first).allowed


class TestLeaveTeam:
    def test_member_leaves(self):
        outcome = evaluate(MEMBER, MembershipAction.LEAVE_TEAM, MembershipContext(member_count=3))
        assert outcome == Transition(NO_TEAM)

    def test_leader_blocked_while_members_remain(self):
        outcome = evaluate(LEADER, MembershipAction.LEAVE_TEAM, MembershipContext(member_count=2))
        assert outcome.kind == RejectionKind.INVALID
        assert outcome.code == ErrorCode.LEADER_HAS_MEMBERS

    def test_last_leader_leaving_deletes_team(self):
        outcome = evaluate(LEADER, MembershipAction.LEAVE_TEAM, MembershipContext(member_count=1))
        assert outcome == Transition(NO_TEAM, team_deleted=True)

    def test_non_member_cannot_leave(self):
        outcome = evaluate(NO_TEAM, MembershipAction.LEAVE_TEAM, MembershipContext())
        assert outcome.kind == RejectionKind.NOT_FOUND


class TestLeaderActions:
    @pytest.mark.parametrize("action", [
        MembershipAction.REMOVE_MEMBER,
        MembershipAction.TRANSFER_LEADERSHIP,
        MembershipAction.UPDATE_TEAM,
        MembershipAction.DELETE_TEAM,
    ])
    @pytest.mark.parametrize("state", [NO_TEAM, MEMBER])
    def test_only_leader_may_act(self, action, state):
        outcome = evaluate(state, action, MembershipContext(target_state=MEMBER))
        assert outcome.kind == RejectionKind.FORBIDDEN
        assert outcome.code == ErrorCode.NOT_TEAM_LEADER

    def test_remove_member(self):
        context = MembershipContext(member_count=2, target_state=MEMBER)
        assert evaluate(LEADER, MembershipAction.REMOVE_MEMBER, context) == Transition(NO_TEAM)

    def test_leader_cannot_remove_self(self):
        context = MembershipContext(target_state=LEADER, actor_is_target=True)
        outcome = evaluate(LEADER, MembershipAction.REMOVE_MEMBER, context)
        assert outcome.kind == RejectionKind.INVALID
        assert outcome.code == ErrorCode.CANNOT_REMOVE_SELF

    def test_remove_non_member_not_found(self):
        context = MembershipContext(target_state=NO_TEAM)
        outcome = evaluate(LEADER, MembershipAction.REMOVE_MEMBER, context)
        assert outcome.kind == RejectionKind.NOT_FOUND

    def test_transfer_demotes_actor(self):
        context = MembershipContext(target_state=MEMBER)
        assert evaluate(LEADER, MembershipAction.TRANSFER_LEADERSHIP, context) == Transition(MEMBER)

    def test_rename_to_taken_name_conflicts(self):
        outcome = evaluate(LEADER, MembershipAction.UPDATE_TEAM, MembershipContext(name_taken=True))
        assert outcome.code == ErrorCode.TEAM_NAME_TAKEN

    def test_delete_empties_team(self):
        outcome = evaluate(LEADER, MembershipAction.DELETE_TEAM, MembershipContext(member_count=3))
        assert outcome.team_deleted


def test_every_action_has_source_states():
    assert set(ALLOWED_TRANSITIONS) == set(MembershipAction)
