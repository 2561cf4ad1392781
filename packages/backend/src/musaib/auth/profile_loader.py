"""Profile loader — session identity → domain user."""

import uuid
from typing import Optional

import structlog

from musaib.backend.rows import BackendError, Table
from musaib.schemas.profile import CurrentUser, ProfileRead

logger = structlog.get_logger()


class ProfileLoader:
    """Single-row profile lookup by user id.

    A missing profile or a backend error is logged and reported as None.
    The session may still be valid; callers treat the client as signed out.
    """

    def __init__(self, profiles: Table[ProfileRead]):
        self.profiles = profiles

    async def load(self, user_id: uuid.UUID, email: str) -> Optional[CurrentUser]:
        try:
            profile = await self.profiles.get(user_id)
        except BackendError as e:
            logger.warning("profile.load_failed", user_id=str(user_id), error=str(e))
            return None
        return CurrentUser.from_profile(email, profile)
