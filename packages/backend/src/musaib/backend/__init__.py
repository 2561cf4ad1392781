"""Backend — the database and auth provider the portal talks to.

Learn: the portal never touches SQLAlchemy sessions directly. It goes
through a Backend:
- backend.auth: the AuthProvider (credentials, tokens, reset mail)
- backend.profiles / services / family_members / service_requests:
  one row store Table per table
- backend.session_store(): a fresh per-client SessionStore

One Backend per running application. close() disposes the engine.
"""

from typing import Optional

from musaib.backend.auth_provider import AuthError, AuthProvider
from musaib.backend.mailer import LogMailer, Mailer
from musaib.backend.rows import BackendError, RowConflict, RowNotFound, Table
from musaib.backend.session import Session
from musaib.backend.session_store import AuthEvent, SessionStore
from musaib.config import Settings
from musaib.db.engine import build_engine, build_session_factory, create_schema
from musaib.db.models import FamilyMember, Profile, Service, ServiceRequest
from musaib.schemas.family import FamilyMemberRead
from musaib.schemas.profile import ProfileRead
from musaib.schemas.request import ServiceRequestRead
from musaib.schemas.service import ServiceRead

__all__ = [
    "AuthError",
    "AuthEvent",
    "AuthProvider",
    "Backend",
    "BackendError",
    "Mailer",
    "RowConflict",
    "RowNotFound",
    "Session",
    "SessionStore",
    "Table",
]


class Backend:
    """Engine + auth provider + one Table per portal table."""

    def __init__(self, settings: Settings, mailer: Optional[Mailer] = None):
        self.settings = settings
        self.engine = build_engine(settings.database_url, echo=settings.debug)
        self.session_factory = build_session_factory(self.engine)
        self.auth = AuthProvider(
            self.session_factory,
            mailer or LogMailer(include_link=settings.environment == "development"),
            settings,
        )

        self.profiles: Table[ProfileRead] = Table(
            self.session_factory, Profile, ProfileRead,
            order_by="created_at", descending=True,
        )
        self.services: Table[ServiceRead] = Table(
            self.session_factory, Service, ServiceRead, order_by="name",
        )
        self.family_members: Table[FamilyMemberRead] = Table(
            self.session_factory, FamilyMember, FamilyMemberRead,
            order_by="first_name",
        )
        self.service_requests: Table[ServiceRequestRead] = Table(
            self.session_factory, ServiceRequest, ServiceRequestRead,
            order_by="submitted_at", descending=True,
            expand=("service", "beneficiary", "user"),
        )

    def session_store(self) -> SessionStore:
        return SessionStore(
            self.auth,
            refresh_margin_seconds=self.settings.session_refresh_margin_seconds,
        )

    async def create_schema(self) -> None:
        await create_schema(self.engine)

    async def close(self) -> None:
        await self.engine.dispose()
