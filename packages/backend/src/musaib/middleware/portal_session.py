"""Portal session cookie middleware.

Learn: each browser gets an opaque, random session id in a cookie. The id
only names the browser's PortalSession on the server; tokens never leave
the server.

Only ids the server issued are honoured. A request without the cookie, or
with an id the runtime has no PortalSession for (made up, swept, or
rotated away), gets a fresh id. Handlers that change who is signed in
(login, recovery links) rotate the id through request.state.portal_sid,
and the new value is written back to the cookie here.
"""

import secrets

from starlette.middleware.base import BaseHTTPMiddleware
from starlette.requests import Request
from starlette.responses import Response


def new_sid() -> str:
    return secrets.token_urlsafe(32)


class PortalSessionMiddleware(BaseHTTPMiddleware):
    """Attach request.state.portal_sid and keep the cookie in step with it."""

    def __init__(self, app, cookie_name: str = "musaib_sid", secure: bool = False):
        super().__init__(app)
        self.cookie_name = cookie_name
        self.secure = secure

    def _issued(self, request: Request, sid: str) -> bool:
        runtime = getattr(request.app.state, "runtime", None)
        return runtime is not None and sid in runtime

    async def dispatch(self, request: Request, call_next) -> Response:
        sent = request.cookies.get(self.cookie_name)
        sid = sent if sent and self._issued(request, sent) else new_sid()
        request.state.portal_sid = sid

        response: Response = await call_next(request)

        sid = request.state.portal_sid
        if sid != sent:
            response.set_cookie(
                self.cookie_name,
                sid,
                httponly=True,
                samesite="lax",
                secure=self.secure,
            )
        return response
