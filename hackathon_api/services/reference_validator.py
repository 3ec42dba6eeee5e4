"""
hackathon_api/services/reference_validator.py
Cross-store reference checks

Document entities embed relational ids by value. Before any write that
carries such an id, confirm that the referenced row exists; a missing row
becomes a 400 with one {field, message} entry per dangling reference.
"""
import logging
from typing import Dict, List, Optional

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from hackathon_api.errors import ReferenceValidationError
from hackathon_api.orm.event import Event
from hackathon_api.orm.team import Team
from hackathon_api.orm.user import User

logger = logging.getLogger(__name__)

# field name -> (model, label used in messages)
_REFERENCES = {
    "event_id": (Event, "Event"),
    "user_id": (User, "User"),
    "team_id": (Team, "Team"),
}


class ReferenceValidator:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _exists(self, model, identifier: int) -> bool:
        result = await self.db.execute(select(model.id).where(model.id == identifier))
        return result.scalar_one_or_none() is not None

    async def validate(
        self,
        event_id: Optional[int] = None,
        user_id: Optional[int] = None,
        team_id: Optional[int] = None,
    ) -> List[Dict[str, str]]:
        """Return one error descriptor per supplied id that does not exist."""
        supplied = {"event_id": event_id, "user_id": user_id, "team_id": team_id}
        errors = []
        for field, identifier in supplied.items():
            if identifier is None:
                continue
            model, label = _REFERENCES[field]
            if not await self._exists(model, identifier):
                errors.append({"field": field, "message": f"{label} with id {identifier} does not exist"})
        return errors

    async def require(
        self,
        event_id: Optional[int] = None,
        user_id: Optional[int] = None,
        team_id: Optional[int] = None,
        message: str = "Validation failed",
    ) -> None:
        """Raise ReferenceValidationError (400) if any reference is missing."""
        errors = await self.validate(event_id=event_id, user_id=user_id, team_id=team_id)
        if errors:
            logger.warning(f"Reference validation failed: {errors}")
            raise ReferenceValidationError(errors, message=message)
