"""JWT token creation and verification.

Learn: two token types share one signing key:
- access: the session credential held by a client's SessionStore
- recovery: embedded in a password-reset link, exchanged once for a session

The "type" claim keeps one from being used as the other.
"""

from datetime import datetime, timedelta, timezone

import jwt

from musaib.config import Settings

ACCESS = "access"
RECOVERY = "recovery"


class TokenError(Exception):
    """Raised when token creation/verification fails."""


def create_token(
    settings: Settings,
    user_id: str,
    email: str,
    token_type: str = ACCESS,
) -> tuple[str, datetime]:
    """Create a signed token. Returns (token, expires_at)."""
    minutes = (
        settings.recovery_token_expire_minutes
        if token_type == RECOVERY
        else settings.access_token_expire_minutes
    )
    now = datetime.now(timezone.utc)
    expires = now + timedelta(minutes=minutes)
    payload = {
        "sub": user_id,
        "email": email,
        "type": token_type,
        "exp": expires,
        "iat": now,
    }
    token = jwt.encode(payload, settings.jwt_secret, algorithm=settings.jwt_algorithm)
    return token, expires


def verify_token(settings: Settings, token: str, token_type: str = ACCESS) -> dict:
    """Verify and decode a token of the expected type.

    Returns the payload dict on success.
    Raises TokenError on failure.
    """
    try:
        payload = jwt.decode(
            token, settings.jwt_secret, algorithms=[settings.jwt_algorithm]
        )
    except jwt.ExpiredSignatureError:
        raise TokenError("Token has expired")
    except jwt.InvalidTokenError as e:
        raise TokenError(f"Invalid token: {e}")

    if payload.get("type") != token_type:
        raise TokenError(f"Not a {token_type} token")
    return payload
