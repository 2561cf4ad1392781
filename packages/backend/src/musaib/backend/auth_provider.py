"""Auth provider — the server side of every client's SessionStore.

Learn: credentials live in auth_users, separate from profiles. The
provider only knows emails, password hashes and tokens:
- sign_in_with_password → verify bcrypt hash → issue access token
- get_user → verify an access token, confirm the account still exists
- reset_password_for_email → mail a recovery link (silently no-op for
  unknown emails so the endpoint can't be used to enumerate accounts)
- verify_recovery → exchange a recovery token for an access token
- update_user → replace the password of the token's account

Every failure is an AuthError with a short message. Callers (the session
store and, above it, the auth context) decide how much of it to surface.
"""

import uuid
from datetime import datetime, timezone
from urllib.parse import urlencode

import structlog
from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from musaib.auth.jwt import ACCESS, RECOVERY, TokenError, create_token, verify_token
from musaib.auth.password import hash_password, verify_password
from musaib.backend.mailer import Mailer
from musaib.backend.session import Session
from musaib.config import Settings
from musaib.db.models import AuthUser

logger = structlog.get_logger()


class AuthError(Exception):
    """Raised when an auth operation fails."""


class AuthProvider:
    """Credential verification and token issue backed by auth_users."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        mailer: Mailer,
        settings: Settings,
    ):
        self.session_factory = session_factory
        self.mailer = mailer
        self.settings = settings

    def _issue(self, user_id: uuid.UUID, email: str) -> Session:
        token, expires_at = create_token(self.settings, str(user_id), email, ACCESS)
        return Session(
            access_token=token,
            user_id=user_id,
            email=email,
            expires_at=expires_at,
        )

    async def _find_by_email(self, db: AsyncSession, email: str) -> AuthUser | None:
        result = await db.execute(
            select(AuthUser).where(AuthUser.email == email.strip().lower())
        )
        return result.scalars().first()

    # ─── Registration (used by the create-user command) ──

    async def sign_up(self, email: str, password: str) -> uuid.UUID:
        try:
            async with self.session_factory() as db:
                user = AuthUser(
                    email=email.strip().lower(),
                    password_hash=hash_password(password, self.settings.bcrypt_rounds),
                )
                db.add(user)
                await db.commit()
                return user.id
        except IntegrityError:
            raise AuthError("Email already registered")
        except SQLAlchemyError as e:
            raise AuthError(f"Sign-up failed: {e}") from e

    # ─── Sessions ────────────────────────────────────────

    async def sign_in_with_password(self, email: str, password: str) -> Session:
        try:
            async with self.session_factory() as db:
                user = await self._find_by_email(db, email)
                if not user or not verify_password(password, user.password_hash):
                    raise AuthError("Invalid login credentials")
                user.last_sign_in_at = datetime.now(timezone.utc)
                await db.commit()
                return self._issue(user.id, user.email)
        except SQLAlchemyError as e:
            raise AuthError(f"Sign-in failed: {e}") from e

    async def get_user(self, access_token: str) -> tuple[uuid.UUID, str]:
        """Resolve an access token to (user_id, email)."""
        try:
            payload = verify_token(self.settings, access_token, ACCESS)
        except TokenError as e:
            raise AuthError(str(e)) from e

        user_id = uuid.UUID(payload["sub"])
        try:
            async with self.session_factory() as db:
                user = await db.get(AuthUser, user_id)
        except SQLAlchemyError as e:
            raise AuthError(f"User lookup failed: {e}") from e
        if not user:
            raise AuthError("User not found")
        return user.id, user.email

    async def get_user_email(self, user_id: uuid.UUID) -> str:
        """Admin lookup: the login email behind a profile id."""
        try:
            async with self.session_factory() as db:
                user = await db.get(AuthUser, user_id)
        except SQLAlchemyError as e:
            raise AuthError(f"User lookup failed: {e}") from e
        if not user:
            raise AuthError("User not found")
        return user.email

    async def refresh(self, access_token: str) -> Session:
        """Issue a fresh access token for a still-valid one."""
        user_id, email = await self.get_user(access_token)
        return self._issue(user_id, email)

    # ─── Password management ─────────────────────────────

    async def reset_password_for_email(self, email: str, redirect_to: str) -> None:
        try:
            async with self.session_factory() as db:
                user = await self._find_by_email(db, email)
        except SQLAlchemyError as e:
            raise AuthError(f"Password reset failed: {e}") from e

        if not user:
            logger.info("auth.reset_unknown_email")
            return

        token, _ = create_token(self.settings, str(user.id), user.email, RECOVERY)
        link = f"{redirect_to}?{urlencode({'token': token})}"
        await self.mailer.send_password_reset(user.email, link)

    async def verify_recovery(self, recovery_token: str) -> Session:
        try:
            payload = verify_token(self.settings, recovery_token, RECOVERY)
        except TokenError as e:
            raise AuthError(str(e)) from e
        return self._issue(uuid.UUID(payload["sub"]), payload["email"])

    async def update_user(self, access_token: str, password: str) -> None:
        user_id, _ = await self.get_user(access_token)
        try:
            async with self.session_factory() as db:
                user = await db.get(AuthUser, user_id)
                if not user:
                    raise AuthError("User not found")
                user.password_hash = hash_password(password, self.settings.bcrypt_rounds)
                await db.commit()
        except SQLAlchemyError as e:
            raise AuthError(f"Password update failed: {e}") from e
