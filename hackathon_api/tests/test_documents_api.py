"""
API Tests for the document-backed resources

Submissions, certificates, announcements and chat Q&A run against the
in-memory FakeDocumentStore while relational rows live in SQLite.
"""
from datetime import timedelta

import pytest_asyncio

from hackathon_api.document_store import CERTIFICATES, SUBMISSIONS
from hackathon_api.errors import ErrorCode
from hackathon_api.orm.enrollment import EnrollmentStatus
from hackathon_api.tests.factories import auth_headers, make_enrollment, make_event, make_team
from hackathon_api.utils.timeutil import utcnow


def submission_body(event, team, **overrides):
    body = {
        "event_id": event.id,
        "team_id": team.id,
        "title": "Carbon Tracker",
        "description": "Tracks household emissions",
        "track": "Climate",
        "github_url": "https://github.com/example/carbon",
        "round": 1,
    }
    body.update(overrides)
    return body


@pytest_asyncio.fixture
async def team(db, event, alice, bob):
    return await make_team(db, event, alice, bob)


# ================= SUBMISSIONS =================

class TestSubmissions:
    async def test_member_submits(self, client, documents, event, team, bob):
        response = await client.post("/api/submissions", json=submission_body(event, team), headers=auth_headers(bob))

        assert response.status_code == 201
        data = response.json()["data"]
        assert data["team_id"] == team.id
        assert data["id"]
        assert await documents.count(SUBMISSIONS, {"event_id": event.id}) == 1

    async def test_non_member_forbidden(self, client, event, team, carol):
        response = await client.post("/api/submissions", json=submission_body(event, team), headers=auth_headers(carol))
        assert response.status_code == 403
        assert response.json()["code"] == ErrorCode.NOT_TEAM_MEMBER

    async def test_missing_references_are_400(self, client, event, team, alice):
        body = {**submission_body(event, team), "event_id": 404, "team_id": 405}
        response = await client.post("/api/submissions", json=body, headers=auth_headers(alice))
        assert response.status_code == 400
        fields = {error["field"] for error in response.json()["errors"]}
        assert fields == {"event_id", "team_id"}

    async def test_team_from_other_event_rejected(self, client, db, organizer, team, alice):
        other = await make_event(db, organizer, name="Other Hack")
        response = await client.post(
            "/api/submissions",
            json=submission_body(other, team),
            headers=auth_headers(alice),
        )
        assert response.status_code == 400
        assert response.json()["code"] == ErrorCode.TEAM_EVENT_MISMATCH

    async def test_deadline_passed(self, client, db, organizer, alice):
        closed = await make_event(db, organizer, submission_deadline=utcnow() - timedelta(hours=1))
        late_team = await make_team(db, closed, alice)

        response = await client.post(
            "/api/submissions", json=submission_body(closed, late_team), headers=auth_headers(alice)
        )
        assert response.status_code == 400
        assert response.json()["code"] == ErrorCode.DEADLINE_PASSED

    async def test_one_submission_per_round(self, client, event, team, alice):
        headers = auth_headers(alice)
        first = await client.post("/api/submissions", json=submission_body(event, team), headers=headers)
        assert first.status_code == 201

        again = await client.post("/api/submissions", json=submission_body(event, team), headers=headers)
        assert again.status_code == 409
        assert again.json()["code"] == ErrorCode.DUPLICATE_SUBMISSION

        second_round = await client.post(
            "/api/submissions", json=submission_body(event, team, round=2), headers=headers
        )
        assert second_round.status_code == 201

        # Moving round 2 onto round 1 would break the one-per-round rule
        clash = await client.patch(
            f"/api/submissions/{second_round.json()['data']['id']}",
            json={"round": 1},
            headers=headers,
        )
        assert clash.status_code == 409

    async def test_update_keeps_immutable_fields(self, client, event, team, bob):
        created = await client.post("/api/submissions", json=submission_body(event, team), headers=auth_headers(bob))
        submission_id = created.json()["data"]["id"]

        response = await client.patch(
            f"/api/submissions/{submission_id}",
            json={"title": "Carbon Tracker v2", "event_id": 999},
            headers=auth_headers(bob),
        )
        assert response.status_code == 200
        data = response.json()["data"]
        assert data["title"] == "Carbon Tracker v2"
        assert data["event_id"] == event.id

    async def test_only_leader_deletes(self, client, event, team, alice, bob):
        created = await client.post("/api/submissions", json=submission_body(event, team), headers=auth_headers(bob))
        submission_id = created.json()["data"]["id"]

        denied = await client.delete(f"/api/submissions/{submission_id}", headers=auth_headers(bob))
        assert denied.status_code == 403

        deleted = await client.delete(f"/api/submissions/{submission_id}", headers=auth_headers(alice))
        assert deleted.status_code == 200

        gone = await client.get(f"/api/submissions/{submission_id}", headers=auth_headers(alice))
        assert gone.status_code == 404

    async def test_listing_with_team_details(self, client, event, team, alice, bob):
        await client.post("/api/submissions", json=submission_body(event, team), headers=auth_headers(bob))

        by_event = await client.get(f"/api/submissions/event/{event.id}", params={"round": 1}, headers=auth_headers(bob))
        assert by_event.json()["count"] == 1
        assert by_event.json()["data"][0]["team_details"]["leader_name"] == alice.name

        mine = await client.get("/api/submissions/me", headers=auth_headers(alice))
        assert mine.json()["count"] == 1

    async def test_malformed_id_is_400(self, client, alice):
        response = await client.get("/api/submissions/not-an-object-id", headers=auth_headers(alice))
        assert response.status_code == 400
        assert response.json()["code"] == ErrorCode.INVALID_ID


# ================= CERTIFICATES =================

class TestCertificates:
    async def test_issue_requires_enrollment(self, client, event, organizer, alice):
        body = {"event_id": event.id, "user_id": alice.id, "certificate_url": "https://certs.example/a.pdf"}

        response = await client.post("/api/certificates", json=body, headers=auth_headers(organizer))
        assert response.status_code == 400
        assert response.json()["code"] == ErrorCode.ENROLLMENT_REQUIRED

    async def test_issue_once_per_user(self, client, db, event, organizer, alice):
        await make_enrollment(db, event, alice)
        body = {"event_id": event.id, "user_id": alice.id, "certificate_url": "https://certs.example/a.pdf"}

        issued = await client.post("/api/certificates", json=body, headers=auth_headers(organizer))
        assert issued.status_code == 201
        assert issued.json()["data"]["event_name"] == event.name

        duplicate = await client.post("/api/certificates", json=body, headers=auth_headers(organizer))
        assert duplicate.status_code == 409
        assert duplicate.json()["code"] == ErrorCode.DUPLICATE_CERTIFICATE

    async def test_participant_cannot_issue(self, client, event, alice):
        body = {"event_id": event.id, "user_id": alice.id, "certificate_url": "https://certs.example/a.pdf"}
        response = await client.post("/api/certificates", json=body, headers=auth_headers(alice))
        assert response.status_code == 403

    async def test_bulk_issue_reports_each_user(self, client, db, documents, event, organizer, alice, bob, carol):
        await make_enrollment(db, event, alice)
        await make_enrollment(db, event, bob)
        await make_enrollment(db, event, carol, EnrollmentStatus.CANCELLED)
        await client.post(
            "/api/certificates",
            json={"event_id": event.id, "user_id": bob.id, "certificate_url": "https://certs.example/b.pdf"},
            headers=auth_headers(organizer),
        )

        response = await client.post(
            "/api/certificates/bulk-issue",
            json={
                "event_id": event.id,
                "user_ids": [alice.id, bob.id, carol.id, 9999],
                "certificate_url": "https://certs.example/all.pdf",
            },
            headers=auth_headers(organizer),
        )

        assert response.status_code == 200
        body = response.json()
        assert body["summary"] == {"total": 4, "issued": 1, "skipped": 1, "errors": 2}
        assert [entry["user_id"] for entry in body["data"]["issued"]] == [alice.id]
        assert [entry["user_id"] for entry in body["data"]["skipped"]] == [bob.id]
        assert {entry["user_id"] for entry in body["data"]["errors"]} == {carol.id, 9999}
        assert await documents.count(CERTIFICATES, {"event_id": event.id}) == 2

    async def test_owner_or_organizer_can_view(self, client, db, event, organizer, alice, bob):
        await make_enrollment(db, event, alice)
        issued = await client.post(
            "/api/certificates",
            json={"event_id": event.id, "user_id": alice.id, "certificate_url": "https://certs.example/a.pdf"},
            headers=auth_headers(organizer),
        )
        certificate_id = issued.json()["data"]["id"]

        assert (await client.get(f"/api/certificates/{certificate_id}", headers=auth_headers(alice))).status_code == 200
        assert (await client.get(f"/api/certificates/{certificate_id}", headers=auth_headers(organizer))).status_code == 200
        assert (await client.get(f"/api/certificates/{certificate_id}", headers=auth_headers(bob))).status_code == 403

        mine = await client.get("/api/certificates/me", headers=auth_headers(alice))
        assert mine.json()["count"] == 1


# ================= ANNOUNCEMENTS =================

class TestAnnouncements:
    async def test_organizer_posts_enrolled_reads(self, client, db, event, organizer, alice, bob):
        await make_enrollment(db, event, alice)
        headers = auth_headers(organizer)
        await client.post(
            "/api/announcements",
            json={"event_id": event.id, "message": "Kickoff at 9am sharp", "is_important": True},
            headers=headers,
        )
        await client.post(
            "/api/announcements",
            json={"event_id": event.id, "message": "Pizza in the lobby", "is_important": False},
            headers=headers,
        )

        listed = await client.get(f"/api/announcements/event/{event.id}", headers=auth_headers(alice))
        assert listed.json()["count"] == 2
        assert listed.json()["data"][0]["author"]["id"] == organizer.id

        important = await client.get("/api/announcements/my-important", headers=auth_headers(alice))
        assert [a["message"] for a in important.json()["data"]] == ["Kickoff at 9am sharp"]

        outsider = await client.get(f"/api/announcements/event/{event.id}", headers=auth_headers(bob))
        assert outsider.status_code == 403

    async def test_only_event_owner_posts(self, client, db, event, alice):
        response = await client.post(
            "/api/announcements",
            json={"event_id": event.id, "message": "Not my event"},
            headers=auth_headers(alice),
        )
        assert response.status_code == 403

    async def test_update_and_delete(self, client, event, organizer):
        headers = auth_headers(organizer)
        created = await client.post(
            "/api/announcements",
            json={"event_id": event.id, "message": "Judging starts at noon"},
            headers=headers,
        )
        announcement_id = created.json()["data"]["id"]

        updated = await client.patch(
            f"/api/announcements/{announcement_id}", json={"is_important": False}, headers=headers
        )
        assert updated.json()["data"]["is_important"] is False

        assert (await client.delete(f"/api/announcements/{announcement_id}", headers=headers)).status_code == 200
        assert (await client.get(f"/api/announcements/{announcement_id}", headers=headers)).status_code == 404


# ================= CHAT Q&A =================

class TestChat:
    async def test_question_and_replies(self, client, db, event, organizer, judge, alice):
        await make_enrollment(db, event, alice)

        asked = await client.post(
            "/api/chat",
            json={"event_id": event.id, "message": "Can we use open-source models?"},
            headers=auth_headers(alice),
        )
        assert asked.status_code == 201
        question_id = asked.json()["data"]["id"]

        await client.post(
            f"/api/chat/{question_id}/replies", json={"message": "Yes"}, headers=auth_headers(organizer)
        )
        replied = await client.post(
            f"/api/chat/{question_id}/replies", json={"message": "Cite them"}, headers=auth_headers(judge)
        )

        replies = replied.json()["data"]["replies"]
        assert [r["from_user_id"] for r in replies] == [organizer.id, judge.id]

        listed = await client.get(f"/api/chat/event/{event.id}", headers=auth_headers(alice))
        assert listed.json()["pagination"]["total"] == 1

    async def test_no_replies_after_event_deleted(self, client, db, event, organizer, alice):
        await make_enrollment(db, event, alice)
        asked = await client.post(
            "/api/chat",
            json={"event_id": event.id, "message": "Is there a mentor session?"},
            headers=auth_headers(alice),
        )
        question_id = asked.json()["data"]["id"]

        await client.delete(f"/api/events/{event.id}", headers=auth_headers(organizer))

        response = await client.post(
            f"/api/chat/{question_id}/replies", json={"message": "Too late"}, headers=auth_headers(organizer)
        )
        assert response.status_code == 400
        assert response.json()["code"] == ErrorCode.EVENT_INACTIVE

    async def test_outsider_cannot_ask(self, client, event, bob):
        response = await client.post(
            "/api/chat",
            json={"event_id": event.id, "message": "Hello?"},
            headers=auth_headers(bob),
        )
        assert response.status_code == 403
        assert response.json()["code"] == ErrorCode.ENROLLMENT_REQUIRED

    async def test_missing_event_is_400(self, client, alice):
        response = await client.post(
            "/api/chat",
            json={"event_id": 404, "message": "Anyone here?"},
            headers=auth_headers(alice),
        )
        assert response.status_code == 400
        assert response.json()["code"] == ErrorCode.REFERENCE_NOT_FOUND
