"""The Session value — an opaque provider credential with an expiry."""

import uuid
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone


@dataclass(frozen=True)
class Session:
    access_token: str
    user_id: uuid.UUID
    email: str
    expires_at: datetime

    @property
    def expired(self) -> bool:
        return datetime.now(timezone.utc) >= self.expires_at

    def expires_within(self, seconds: int) -> bool:
        return datetime.now(timezone.utc) + timedelta(seconds=seconds) >= self.expires_at
