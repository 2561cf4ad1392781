"""Public pages — login, logout, password reset, password change.

Learn: these pages never run the route guard. They drive the browser's
AuthContext directly and tell the client where to go next:

- after login: /change-password on first login, else the role's home
- after logout: /login
- after a password change: the role's home
"""

from typing import Optional

import structlog
from fastapi import APIRouter, Depends, HTTPException, Query, Request
from fastapi.responses import RedirectResponse

from musaib.auth.routes import LOGIN_PATH, home_for
from musaib.backend.auth_provider import AuthError
from musaib.portal.dependencies import get_portal, get_runtime
from musaib.portal.runtime import PortalRuntime, PortalSession
from musaib.schemas.auth import (
    ChangePasswordRequest,
    LoginRequest,
    PasswordResetRequest,
)
from musaib.schemas.profile import CurrentUser

logger = structlog.get_logger()
router = APIRouter()

CHANGE_PASSWORD_PATH = "/change-password"


def landing_for(user: Optional[CurrentUser]) -> str:
    """Where a freshly signed-in user goes."""
    if user is None:
        return LOGIN_PATH
    if user.first_login:
        return CHANGE_PASSWORD_PATH
    return home_for(user.role)


@router.get("/")
async def root():
    return RedirectResponse(LOGIN_PATH, status_code=303)


# ═══════════════════════════════════════════════════════════
# Login / Logout
# ═══════════════════════════════════════════════════════════


@router.get("/login")
async def login_page(portal: PortalSession = Depends(get_portal)):
    user = portal.auth.current_user
    if user is not None:
        return RedirectResponse(landing_for(user), status_code=303)
    return {"page": "login"}


def _rotate(request: Request, runtime: PortalRuntime, portal: PortalSession) -> None:
    """Move a freshly signed-in browser to a new session id."""
    request.state.portal_sid = runtime.rotate(portal)


@router.post("/login")
async def login(
    body: LoginRequest,
    request: Request,
    portal: PortalSession = Depends(get_portal),
    runtime: PortalRuntime = Depends(get_runtime),
):
    """Sign in. 401 on bad credentials, without saying which part was wrong."""
    if not await portal.auth.login(body.email, body.password):
        raise HTTPException(status_code=401, detail="Invalid credentials")
    _rotate(request, runtime, portal)

    user = portal.auth.current_user
    if user is None:
        # Signed in, but no profile: the portal treats that as signed out
        logger.warning("portal.login_without_profile", email=body.email)
    return {"redirect": landing_for(user), "user": user}


@router.post("/logout")
async def logout(portal: PortalSession = Depends(get_portal)):
    await portal.auth.logout()
    await portal.close_stores()
    return RedirectResponse(LOGIN_PATH, status_code=303)


# ═══════════════════════════════════════════════════════════
# Password reset
# ═══════════════════════════════════════════════════════════


@router.get("/password-reset")
async def password_reset_page():
    return {"page": "password-reset"}


@router.post("/password-reset")
async def password_reset(
    body: PasswordResetRequest,
    portal: PortalSession = Depends(get_portal),
):
    """Mail a reset link. Unknown addresses report success too."""
    return {"sent": await portal.auth.reset_password(body.email)}


@router.get(CHANGE_PASSWORD_PATH)
async def change_password_page(
    request: Request,
    token: Optional[str] = Query(None),
    portal: PortalSession = Depends(get_portal),
    runtime: PortalRuntime = Depends(get_runtime),
):
    """Landing page of reset links (?token=...) and of first logins."""
    if token:
        try:
            await portal.session_store.exchange_recovery_token(token)
        except AuthError as e:
            logger.info("portal.recovery_link_rejected", error=str(e))
            raise HTTPException(status_code=400, detail="Invalid or expired link")
        _rotate(request, runtime, portal)

    auth = portal.auth
    return {
        "page": "change-password",
        "recovering": auth.recovering,
        "first_login": bool(auth.current_user and auth.current_user.first_login),
        "signed_in": auth.current_user is not None,
    }


@router.post(CHANGE_PASSWORD_PATH)
async def change_password(
    body: ChangePasswordRequest,
    portal: PortalSession = Depends(get_portal),
):
    auth = portal.auth
    if auth.recovering:
        ok = await auth.complete_recovery(body.new_password)
    else:
        ok = await auth.change_password(body.current_password, body.new_password)
    if not ok:
        raise HTTPException(status_code=400, detail="Password could not be changed")

    return {"redirect": landing_for(auth.current_user)}
