"""Session store — one client's view of its authentication session.

Learn: each browser session of the portal owns one SessionStore. It
holds the current Session (nothing else does) and tells subscribers
when it changes:

    store.on_session_change(callback)  →  callback(event, session)

Events mirror what a hosted auth client emits: SIGNED_IN, SIGNED_OUT,
USER_UPDATED, PASSWORD_RECOVERY, TOKEN_REFRESHED. Listeners are awaited
in subscription order; a listener that raises is logged and skipped so
one bad subscriber can't break sign-in for everyone else.
"""

import enum
from typing import Awaitable, Callable, Optional

import structlog

from musaib.backend.auth_provider import AuthError, AuthProvider
from musaib.backend.session import Session

logger = structlog.get_logger()


class AuthEvent(str, enum.Enum):
    SIGNED_IN = "SIGNED_IN"
    SIGNED_OUT = "SIGNED_OUT"
    USER_UPDATED = "USER_UPDATED"
    PASSWORD_RECOVERY = "PASSWORD_RECOVERY"
    TOKEN_REFRESHED = "TOKEN_REFRESHED"


SessionListener = Callable[[AuthEvent, Optional[Session]], Awaitable[None]]


class Subscription:
    """Handle returned by on_session_change. unsubscribe() is idempotent."""

    def __init__(self, store: "SessionStore", listener: SessionListener):
        self._store = store
        self._listener = listener

    def unsubscribe(self) -> None:
        self._store._listeners = [
            l for l in self._store._listeners if l is not self._listener
        ]


class SessionStore:
    """Holds the current Session and emits session-change events."""

    def __init__(
        self,
        provider: AuthProvider,
        refresh_margin_seconds: int = 60,
        session: Optional[Session] = None,
    ):
        self.provider = provider
        self.refresh_margin_seconds = refresh_margin_seconds
        self._session = session
        self._listeners: list[SessionListener] = []

    # ─── Subscription ────────────────────────────────────

    def on_session_change(self, listener: SessionListener) -> Subscription:
        self._listeners.append(listener)
        return Subscription(self, listener)

    async def _emit(self, event: AuthEvent, session: Optional[Session]) -> None:
        for listener in list(self._listeners):
            try:
                await listener(event, session)
            except Exception:
                logger.exception("session.listener_failed", event=event.value)

    # ─── Session access ──────────────────────────────────

    async def get_session(self) -> Optional[Session]:
        """Current session, refreshed when close to expiry.

        An expired session is dropped and reported as SIGNED_OUT.
        """
        session = self._session
        if session is None:
            return None

        if session.expired:
            self._session = None
            logger.info("session.expired", user_id=str(session.user_id))
            await self._emit(AuthEvent.SIGNED_OUT, None)
            return None

        if session.expires_within(self.refresh_margin_seconds):
            try:
                refreshed = await self.provider.refresh(session.access_token)
            except AuthError as e:
                logger.warning("session.refresh_failed", error=str(e))
                return session
            self._session = refreshed
            await self._emit(AuthEvent.TOKEN_REFRESHED, refreshed)
            return refreshed

        return session

    # ─── Provider operations ─────────────────────────────

    async def sign_in(self, email: str, password: str) -> Session:
        """Password sign-in. Raises AuthError on bad credentials."""
        session = await self.provider.sign_in_with_password(email, password)
        self._session = session
        await self._emit(AuthEvent.SIGNED_IN, session)
        return session

    async def sign_out(self) -> None:
        self._session = None
        await self._emit(AuthEvent.SIGNED_OUT, None)

    async def send_password_reset(self, email: str, redirect_url: str) -> None:
        await self.provider.reset_password_for_email(email, redirect_url)

    async def update_credentials(self, new_password: str) -> None:
        """Change the password of the signed-in account."""
        if self._session is None:
            raise AuthError("Not signed in")
        await self.provider.update_user(self._session.access_token, new_password)
        await self._emit(AuthEvent.USER_UPDATED, self._session)

    async def exchange_recovery_token(self, token: str) -> Session:
        """Turn a password-reset link token into a session."""
        session = await self.provider.verify_recovery(token)
        self._session = session
        await self._emit(AuthEvent.PASSWORD_RECOVERY, session)
        return session
