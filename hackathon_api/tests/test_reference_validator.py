"""
Unit Tests for ReferenceValidator
"""
import pytest

from hackathon_api.errors import ErrorCode, ReferenceValidationError
from hackathon_api.services.reference_validator import ReferenceValidator
from hackathon_api.tests.factories import make_team


class TestReferenceValidator:
    async def test_existing_references_pass(self, db, event, alice):
        team = await make_team(db, event, alice)
        validator = ReferenceValidator(db)

        assert await validator.validate(event_id=event.id, user_id=alice.id, team_id=team.id) == []
        await validator.require(event_id=event.id, team_id=team.id)

    async def test_omitted_ids_are_not_checked(self, db):
        assert await ReferenceValidator(db).validate() == []

    async def test_one_error_per_missing_reference(self, db, event):
        errors = await ReferenceValidator(db).validate(event_id=event.id, user_id=501, team_id=502)

        assert errors == [
            {"field": "user_id", "message": "User with id 501 does not exist"},
            {"field": "team_id", "message": "Team with id 502 does not exist"},
        ]

    async def test_require_raises_400(self, db):
        with pytest.raises(ReferenceValidationError) as exc:
            await ReferenceValidator(db).require(event_id=42, message="Event not found")

        assert exc.value.status_code == 400
        assert exc.value.code == ErrorCode.REFERENCE_NOT_FOUND
        assert exc.value.message == "Event not found"
        assert exc.value.to_dict()["errors"][0]["field"] == "event_id"
