"""FastAPI portal dependencies.

Learn: These are used as Depends() in page handlers. get_portal finds
the browser's PortalSession from the cookie set by
PortalSessionMiddleware. require_page runs the route guard for the
requested path and turns its decision into an exception that main.py
maps to a response:

    WAIT      → GuardWait      → 202 {"status": "loading"}
    REDIRECT  → GuardRedirect  → 303 to the login page
    ALLOW     → the PortalSession is handed to the handler
"""

from fastapi import Depends, Request

from musaib.auth.guard import GuardOutcome, check_path
from musaib.portal.runtime import PortalRuntime, PortalSession


class GuardRedirect(Exception):
    """The guard sent the browser elsewhere."""

    def __init__(self, location: str):
        super().__init__(location)
        self.location = location


class GuardWait(Exception):
    """Auth state is still loading; the page shows a neutral waiting state."""


def get_runtime(request: Request) -> PortalRuntime:
    return request.app.state.runtime


async def get_portal(
    request: Request,
    runtime: PortalRuntime = Depends(get_runtime),
) -> PortalSession:
    return await runtime.session(request.state.portal_sid)


async def require_page(
    request: Request,
    portal: PortalSession = Depends(get_portal),
) -> PortalSession:
    """The PortalSession, if the route table lets this browser see the path.

    The required role comes from musaib.auth.routes (sub-paths inherit
    their page's role), so the page routers carry no role of their own.
    """
    decision = check_path(request.url.path, portal.auth)
    if decision.outcome == GuardOutcome.WAIT:
        raise GuardWait()
    if decision.outcome == GuardOutcome.REDIRECT:
        raise GuardRedirect(decision.location)
    return portal
