"""Auth context — the current user of one application instance.

Learn: the context is an explicitly owned object, not a global. Whoever
creates it starts it and closes it (or uses `async with`), and closing is
what releases the session-change subscription:

    async with AuthContext(store, loader, profiles, reset_url) as auth:
        await auth.login(email, password)
        auth.current_user   # already loaded here

State is just (current_user, loading). loading starts True and always
ends False after start(), whether or not a profile could be loaded.

login and logout are symmetric: both apply the state change as soon as
the session store confirms it. The session-change subscription is a
second, idempotent path — it only reloads when the session's user is not
the one already loaded, so a sign-in that happens elsewhere (password
verification, a recovery link, a token refresh) still ends in a
consistent state.
"""

from typing import Any, Optional

import structlog
from pydantic import ValidationError

from musaib.auth.profile_loader import ProfileLoader
from musaib.backend.auth_provider import AuthError
from musaib.backend.rows import BackendError, Table
from musaib.backend.session import Session
from musaib.backend.session_store import AuthEvent, SessionStore, Subscription
from musaib.schemas.profile import CurrentUser, ProfileRead, ProfileSelfUpdate

logger = structlog.get_logger()


class AuthContext:
    """Current user + loading flag, synchronized with a SessionStore."""

    def __init__(
        self,
        session_store: SessionStore,
        profile_loader: ProfileLoader,
        profiles: Table[ProfileRead],
        password_change_url: str,
    ):
        self.session_store = session_store
        self.profile_loader = profile_loader
        self.profiles = profiles
        self.password_change_url = password_change_url

        self.current_user: Optional[CurrentUser] = None
        self.loading = True
        # True between a recovery-link exchange and the password update
        self.recovering = False
        self._subscription: Optional[Subscription] = None

    # ─── Lifecycle ───────────────────────────────────────

    async def start(self) -> None:
        """Restore the current session, then follow session changes."""
        if self._subscription is not None:
            return

        session = await self.session_store.get_session()
        if session is not None:
            await self._load(session.user_id, session.email)
        else:
            self.loading = False

        self._subscription = self.session_store.on_session_change(
            self._on_session_change
        )

    async def close(self) -> None:
        if self._subscription is not None:
            self._subscription.unsubscribe()
            self._subscription = None

    async def __aenter__(self) -> "AuthContext":
        await self.start()
        return self

    async def __aexit__(self, *exc_info) -> None:
        await self.close()

    @property
    def started(self) -> bool:
        return self._subscription is not None

    # ─── Synchronization ─────────────────────────────────

    async def _load(self, user_id, email: str) -> None:
        try:
            self.current_user = await self.profile_loader.load(user_id, email)
        finally:
            self.loading = False

    def _is_loaded(self, session: Session) -> bool:
        return self.current_user is not None and self.current_user.id == session.user_id

    async def _on_session_change(
        self, event: AuthEvent, session: Optional[Session]
    ) -> None:
        if session is None:
            self.current_user = None
            self.recovering = False
            self.loading = False
            return

        if event == AuthEvent.PASSWORD_RECOVERY:
            self.recovering = True
        if not self._is_loaded(session):
            await self._load(session.user_id, session.email)

    # ─── Operations ──────────────────────────────────────

    async def login(self, email: str, password: str) -> bool:
        """True iff a session was established.

        The profile is loaded before returning; if it can't be loaded the
        session still counts but current_user stays None.
        """
        try:
            session = await self.session_store.sign_in(email, password)
        except AuthError as e:
            logger.info("auth.login_failed", email=email, error=str(e))
            return False

        self.recovering = False
        if not self._is_loaded(session):
            await self._load(session.user_id, session.email)
        logger.info("auth.login", user_id=str(session.user_id))
        return True

    async def logout(self) -> None:
        """End the session. current_user is None when this returns."""
        try:
            await self.session_store.sign_out()
        finally:
            self.current_user = None
            self.recovering = False
            self.loading = False

    async def reset_password(self, email: str) -> bool:
        try:
            await self.session_store.send_password_reset(email, self.password_change_url)
        except AuthError as e:
            logger.warning("auth.reset_failed", error=str(e))
            return False
        return True

    async def change_password(self, current_password: str, new_password: str) -> bool:
        """Verify the current password by signing in again, then change it.

        Returns False when verification or the update fails, without
        saying which.
        """
        session = await self.session_store.get_session()
        if self.current_user is not None:
            email = self.current_user.email
        elif session is not None:
            email = session.email
        else:
            return False

        try:
            await self.session_store.sign_in(email, current_password)
            await self.session_store.update_credentials(new_password)
        except AuthError as e:
            logger.info("auth.change_password_failed", error=str(e))
            return False

        await self._clear_first_login()
        return True

    async def complete_recovery(self, new_password: str) -> bool:
        """Set a new password after a recovery-link sign-in."""
        if not self.recovering:
            return False
        try:
            await self.session_store.update_credentials(new_password)
        except AuthError as e:
            logger.info("auth.recovery_failed", error=str(e))
            return False

        self.recovering = False
        await self._clear_first_login()
        return True

    async def _clear_first_login(self) -> None:
        user = self.current_user
        if user is not None and user.first_login:
            # Not a self-service field: written directly, never via update_profile
            await self._write_profile(user, {"first_login": False})

    async def update_profile(self, updates: dict[str, Any]) -> bool:
        """Write allowed profile fields, then reload the profile in full."""
        user = self.current_user
        if user is None:
            return False

        try:
            changes = ProfileSelfUpdate.model_validate(updates).model_dump(
                exclude_unset=True
            )
        except ValidationError as e:
            logger.info("auth.profile_update_rejected", user_id=str(user.id), error=str(e))
            return False

        return await self._write_profile(user, changes)

    async def _write_profile(self, user: CurrentUser, changes: dict[str, Any]) -> bool:
        if changes:
            try:
                await self.profiles.update(user.id, changes)
            except BackendError as e:
                logger.warning("auth.profile_update_failed", user_id=str(user.id), error=str(e))
                return False

        await self._load(user.id, user.email)
        return True
