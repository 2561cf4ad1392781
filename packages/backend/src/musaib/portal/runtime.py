"""Portal runtime — one PortalSession per browser session.

Learn: a single-page client keeps one application instance per tab,
each with its own auth state. Here the server keeps that instance for each
browser session (keyed by the portal cookie):

    PortalRuntime                    (one per process)
      ├─ backend, settings
      ├─ caches: CacheRegistry       (shared by ALL portal sessions)
      └─ sessions: {sid → PortalSession}
            ├─ session_store         (this browser's Session)
            ├─ auth: AuthContext     (this browser's current user)
            └─ open stores           (released on logout / teardown)

Because the cache registry is shared, an admin approving a request
updates the very mirror another admin's page reads.
"""

import uuid
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

import structlog

from musaib.auth.context import AuthContext
from musaib.auth.profile_loader import ProfileLoader
from musaib.backend import Backend
from musaib.backend.session import Session
from musaib.backend.session_store import AuthEvent
from musaib.config import Settings
from musaib.middleware.portal_session import new_sid
from musaib.stores.base import CollectionStore
from musaib.stores.cache import CacheRegistry
from musaib.stores.family import FamilyMemberStore
from musaib.stores.profiles import ProfileStore
from musaib.stores.requests import ServiceRequestStore
from musaib.stores.services import ServiceStore

logger = structlog.get_logger()


class PortalSession:
    """Auth state and open stores of one browser session."""

    def __init__(
        self,
        sid: str,
        backend: Backend,
        caches: CacheRegistry,
        settings: Settings,
    ):
        self.sid = sid
        self.backend = backend
        self.caches = caches
        self.session_store = backend.session_store()
        self.auth = AuthContext(
            self.session_store,
            ProfileLoader(backend.profiles),
            backend.profiles,
            settings.password_change_url,
        )
        self.last_seen = datetime.now(timezone.utc)
        self._stores: dict[str, CollectionStore] = {}
        self._subscription = None

    # ─── Lifecycle ───────────────────────────────────────

    async def start(self) -> None:
        await self.auth.start()
        self._subscription = self.session_store.on_session_change(
            self._on_session_change
        )

    async def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None
        await self.close_stores()
        await self.auth.close()

    def touch(self) -> None:
        self.last_seen = datetime.now(timezone.utc)

    async def _on_session_change(
        self, event: AuthEvent, session: Optional[Session]
    ) -> None:
        # Member-scoped stores belong to whoever was signed in
        if session is None or event == AuthEvent.SIGNED_IN:
            await self.close_stores(scoped_only=True)

    # ─── Stores ──────────────────────────────────────────

    async def _open(self, name: str, factory: Callable[[], CollectionStore]):
        store = self._stores.get(name)
        if store is None:
            store = self._stores[name] = factory()
        await store.open()
        return store

    async def close_stores(self, scoped_only: bool = False) -> None:
        for name in list(self._stores):
            if scoped_only and ":" not in name:
                continue
            await self._stores.pop(name).close()

    async def update_profile(self, updates: dict) -> bool:
        """Self-service profile edit; the directory and request lists refetch."""
        if not await self.auth.update_profile(updates):
            return False
        await self.caches.changed("profiles")
        return True

    def _user_id(self) -> uuid.UUID:
        if self.auth.current_user is None:
            raise RuntimeError("No signed-in user")
        return self.auth.current_user.id

    async def services(self) -> ServiceStore:
        return await self._open(
            "services", lambda: ServiceStore(self.backend, self.caches)
        )

    async def profiles(self) -> ProfileStore:
        return await self._open(
            "profiles", lambda: ProfileStore(self.backend, self.caches)
        )

    async def all_requests(self) -> ServiceRequestStore:
        return await self._open(
            "requests", lambda: ServiceRequestStore(self.backend, self.caches)
        )

    async def my_requests(self) -> ServiceRequestStore:
        user_id = self._user_id()
        return await self._open(
            f"requests:{user_id}",
            lambda: ServiceRequestStore(self.backend, self.caches, user_id=user_id),
        )

    async def family(self) -> FamilyMemberStore:
        user_id = self._user_id()
        return await self._open(
            f"family:{user_id}",
            lambda: FamilyMemberStore(self.backend, self.caches, user_id),
        )


class PortalRuntime:
    """Registry of live portal sessions plus the shared cache."""

    def __init__(
        self,
        backend: Backend,
        settings: Settings,
        caches: Optional[CacheRegistry] = None,
    ):
        self.backend = backend
        self.settings = settings
        self.caches = caches or CacheRegistry()
        self._sessions: dict[str, PortalSession] = {}

    def __len__(self) -> int:
        return len(self._sessions)

    def __contains__(self, sid: str) -> bool:
        return sid in self._sessions

    async def session(self, sid: str) -> PortalSession:
        """The portal session for a cookie value, created on first use."""
        await self.sweep()
        portal = self._sessions.get(sid)
        if portal is None:
            portal = PortalSession(sid, self.backend, self.caches, self.settings)
            await portal.start()
            self._sessions[sid] = portal
        else:
            # Expired → SIGNED_OUT, close to expiry → TOKEN_REFRESHED
            await portal.session_store.get_session()
        portal.touch()
        return portal

    def rotate(self, portal: PortalSession) -> str:
        """Re-key a portal session under a fresh id; the old id stops working.

        Called whenever a browser becomes signed in, so an id handed out
        before login can never name the signed-in session.
        """
        old = portal.sid
        self._sessions.pop(old, None)
        portal.sid = new_sid()
        self._sessions[portal.sid] = portal
        logger.info("portal.session_rotated", old=old[:8], new=portal.sid[:8])
        return portal.sid

    async def discard(self, sid: str) -> None:
        portal = self._sessions.pop(sid, None)
        if portal is not None:
            await portal.close()

    async def sweep(self) -> None:
        """Tear down sessions idle for longer than portal_idle_minutes."""
        cutoff = datetime.now(timezone.utc) - timedelta(
            minutes=self.settings.portal_idle_minutes
        )
        idle = [sid for sid, p in self._sessions.items() if p.last_seen < cutoff]
        for sid in idle:
            logger.info("portal.session_expired", sid=sid[:8])
            await self.discard(sid)

    async def close(self) -> None:
        for sid in list(self._sessions):
            await self.discard(sid)
        self.caches.clear()
