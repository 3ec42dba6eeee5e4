"""
Integration Tests for EnrollmentService and the event soft-delete cascade
"""
from datetime import timedelta

import pytest
from sqlalchemy import select

from hackathon_api.errors import (
    APIError, ConflictError, ErrorCode, ForbiddenError, InvalidStateError, ReferenceValidationError
)
from hackathon_api.orm.enrollment import EnrollmentStatus, EventEnrollment
from hackathon_api.orm.user import UserRole
from hackathon_api.schemas.events import EventUpdate
from hackathon_api.services.enrollment_service import EnrollmentService
from hackathon_api.services.event_service import EventService
from hackathon_api.tests.factories import make_enrollment, make_event, make_team, make_user
from hackathon_api.utils.timeutil import utcnow


async def statuses(db, event_id: int) -> dict:
    result = await db.execute(
        select(EventEnrollment)
        .where(EventEnrollment.event_id == event_id)
        .execution_options(populate_existing=True)
    )
    return {row.user_id: row.status for row in result.scalars().all()}


class TestEnrollAndCancel:
    async def test_enroll_then_duplicate_conflicts(self, db, event, alice):
        service = EnrollmentService(db)
        enrollment = await service.enroll(event.id, alice)
        assert enrollment.status == EnrollmentStatus.ENROLLED
        assert enrollment.team_id is None

        with pytest.raises(ConflictError) as exc:
            await service.enroll(event.id, alice)
        assert exc.value.code == ErrorCode.ALREADY_ENROLLED

    async def test_reenroll_after_cancel_reuses_row(self, db, event, alice):
        service = EnrollmentService(db)
        first = await service.enroll(event.id, alice)
        cancelled, promoted = await service.cancel(event.id, alice)
        assert cancelled.status == EnrollmentStatus.CANCELLED
        assert promoted is None

        again = await service.enroll(event.id, alice)
        assert again.id == first.id
        assert again.status == EnrollmentStatus.ENROLLED

    async def test_started_event_blocks_enroll_and_cancel(self, db, organizer, alice, bob):
        now = utcnow()
        running = await make_event(
            db, organizer,
            start_date=now - timedelta(days=1),
            end_date=now + timedelta(days=1),
            submission_deadline=None,
        )
        await make_enrollment(db, running, bob)
        service = EnrollmentService(db)

        with pytest.raises(InvalidStateError) as exc:
            await service.enroll(running.id, alice)
        assert exc.value.code == ErrorCode.EVENT_STARTED

        with pytest.raises(InvalidStateError):
            await service.cancel(running.id, bob)

    async def test_cancel_without_enrollment_is_404(self, db, event, alice):
        with pytest.raises(APIError) as exc:
            await EnrollmentService(db).cancel(event.id, alice)
        assert exc.value.status_code == 404


class TestWaitlist:
    async def test_full_event_waitlists_and_cancel_promotes(self, db, organizer, alice, bob, carol):
        limited = await make_event(db, organizer, max_participants=1)
        service = EnrollmentService(db)

        assert (await service.enroll(limited.id, alice)).status == EnrollmentStatus.ENROLLED
        assert (await service.enroll(limited.id, bob)).status == EnrollmentStatus.WAITLISTED
        assert (await service.enroll(limited.id, carol)).status == EnrollmentStatus.WAITLISTED

        _, promoted = await service.cancel(limited.id, alice)

        assert promoted.user_id == bob.id
        assert await statuses(db, limited.id) == {
            alice.id: EnrollmentStatus.CANCELLED,
            bob.id: EnrollmentStatus.ENROLLED,
            carol.id: EnrollmentStatus.WAITLISTED,
        }

    async def test_cancelling_waitlisted_row_promotes_nobody(self, db, organizer, alice, bob):
        limited = await make_event(db, organizer, max_participants=1)
        service = EnrollmentService(db)
        await service.enroll(limited.id, alice)
        await service.enroll(limited.id, bob)

        _, promoted = await service.cancel(limited.id, bob)
        assert promoted is None

    async def test_capacity_raise_promotes_in_enrollment_order(self, db, organizer, alice, bob, carol):
        limited = await make_event(db, organizer, max_participants=1)
        service = EnrollmentService(db)
        await service.enroll(limited.id, alice)
        await service.enroll(limited.id, bob)
        await service.enroll(limited.id, carol)

        await EventService(db).update(limited.id, organizer, EventUpdate(max_participants=2))

        assert await statuses(db, limited.id) == {
            alice.id: EnrollmentStatus.ENROLLED,
            bob.id: EnrollmentStatus.ENROLLED,
            carol.id: EnrollmentStatus.WAITLISTED,
        }

    async def test_capacity_shrink_keeps_enrolled_rows(self, db, organizer, alice, bob, carol):
        limited = await make_event(db, organizer, max_participants=2)
        service = EnrollmentService(db)
        await service.enroll(limited.id, alice)
        await service.enroll(limited.id, bob)
        await service.enroll(limited.id, carol)

        await EventService(db).update(limited.id, organizer, EventUpdate(max_participants=1))

        assert await statuses(db, limited.id) == {
            alice.id: EnrollmentStatus.ENROLLED,
            bob.id: EnrollmentStatus.ENROLLED,
            carol.id: EnrollmentStatus.WAITLISTED,
        }


class TestTeamSizeLimit:
    async def test_shrink_below_largest_team_rejected(self, db, event, organizer, alice, bob, carol):
        await make_team(db, event, alice, bob, carol)

        with pytest.raises(InvalidStateError) as exc:
            await EventService(db).update(event.id, organizer, EventUpdate(max_team_size=2))
        assert exc.value.code == ErrorCode.TEAM_SIZE_BELOW_MEMBERS

        updated = await EventService(db).update(event.id, organizer, EventUpdate(max_team_size=3))
        assert updated.max_team_size == 3


class TestEventSoftDelete:
    async def test_delete_cancels_live_enrollments(self, db, event, organizer, alice, bob, carol):
        await make_enrollment(db, event, alice)
        await make_enrollment(db, event, bob, EnrollmentStatus.WAITLISTED)
        await make_enrollment(db, event, carol, EnrollmentStatus.CANCELLED)

        cancelled = await EventService(db).delete(event.id, organizer)

        assert cancelled == 2
        assert set((await statuses(db, event.id)).values()) == {EnrollmentStatus.CANCELLED}
        assert (await EventService(db).get(event.id)).is_active is False

    async def test_delete_twice_is_400(self, db, event, organizer):
        await EventService(db).delete(event.id, organizer)
        with pytest.raises(InvalidStateError) as exc:
            await EventService(db).delete(event.id, organizer)
        assert exc.value.status_code == 400

    async def test_only_owner_can_delete(self, db, event):
        other = await make_user(db, "other-org@test.com", UserRole.organizer)
        with pytest.raises(ForbiddenError) as exc:
            await EventService(db).delete(event.id, other)
        assert exc.value.code == ErrorCode.NOT_EVENT_ORGANIZER


class TestTeamAssociation:
    async def test_link_and_clear(self, db, event, alice, bob):
        team = await make_team(db, event, alice, bob)
        await make_enrollment(db, event, bob)
        service = EnrollmentService(db)

        linked = await service.associate_team(event.id, bob, team.id)
        assert linked.team_id == team.id

        cleared = await service.associate_team(event.id, bob, None)
        assert cleared.team_id is None

    async def test_team_from_another_event_rejected(self, db, organizer, event, alice):
        other_event = await make_event(db, organizer, name="Autumn Hack")
        other_team = await make_team(db, other_event, alice)
        await make_enrollment(db, event, alice)

        with pytest.raises(InvalidStateError) as exc:
            await EnrollmentService(db).associate_team(event.id, alice, other_team.id)
        assert exc.value.code == ErrorCode.TEAM_EVENT_MISMATCH

    async def test_non_member_forbidden(self, db, event, alice, bob):
        team = await make_team(db, event, alice)
        await make_enrollment(db, event, bob)

        with pytest.raises(ForbiddenError):
            await EnrollmentService(db).associate_team(event.id, bob, team.id)

    async def test_missing_team_is_reference_error(self, db, event, alice):
        await make_enrollment(db, event, alice)
        with pytest.raises(ReferenceValidationError):
            await EnrollmentService(db).associate_team(event.id, alice, 777)


class TestStaffViews:
    async def test_stats(self, db, event, organizer, alice, bob, carol):
        team = await make_team(db, event, alice)
        await make_enrollment(db, event, alice)
        await make_enrollment(db, event, bob)
        await make_enrollment(db, event, carol, EnrollmentStatus.CANCELLED)
        await EnrollmentService(db).associate_team(event.id, alice, team.id)

        stats = await EnrollmentService(db).stats(event.id, organizer)

        assert stats["by_status"] == {"Enrolled": 2, "Cancelled": 1, "Waitlisted": 0}
        assert stats["total"] == 3
        assert stats["teams"] == 1
        assert stats["enrolled_without_team"] == 1

    async def test_listing_is_staff_only(self, db, event, judge, alice):
        await make_enrollment(db, event, alice)
        service = EnrollmentService(db)

        rows, total = await service.list_for_event(event.id, judge, None, 0, 10)
        assert total == 1
        assert rows[0].to_dict(include_user=True)["user"]["email"] == "alice@test.com"

        with pytest.raises(ForbiddenError):
            await service.list_for_event(event.id, alice, None, 0, 10)
