"""Route guard — wait, redirect or allow.

Learn: the guard is a pure decision over the auth context's state,
re-run on every request:

    loading               → WAIT (neutral waiting state, no redirect)
    no current user       → REDIRECT to /login
    wrong role            → REDIRECT to /login (no separate "forbidden" page)
    otherwise             → ALLOW
"""

import enum
from dataclasses import dataclass
from typing import Optional, Protocol

from musaib.auth.routes import LOGIN_PATH, RouteSpec, resolve
from musaib.schemas.profile import CurrentUser


class AuthState(Protocol):
    loading: bool
    current_user: Optional[CurrentUser]


class GuardOutcome(str, enum.Enum):
    WAIT = "wait"
    REDIRECT = "redirect"
    ALLOW = "allow"


@dataclass(frozen=True)
class GuardDecision:
    outcome: GuardOutcome
    location: Optional[str] = None

    @property
    def allowed(self) -> bool:
        return self.outcome == GuardOutcome.ALLOW


WAIT = GuardDecision(GuardOutcome.WAIT)
ALLOW = GuardDecision(GuardOutcome.ALLOW)
TO_LOGIN = GuardDecision(GuardOutcome.REDIRECT, LOGIN_PATH)


class RouteGuard:
    """Gate for pages that need a signed-in user, optionally of one role."""

    def __init__(self, required_role: Optional[str] = None):
        self.required_role = required_role

    @classmethod
    def for_route(cls, route: RouteSpec) -> "RouteGuard":
        return cls(route.required_role)

    def evaluate(self, auth: AuthState) -> GuardDecision:
        if auth.loading:
            return WAIT
        user = auth.current_user
        if user is None:
            return TO_LOGIN
        if self.required_role and user.role != self.required_role:
            return TO_LOGIN
        return ALLOW


def check_path(path: str, auth: AuthState) -> GuardDecision:
    """Guard decision for an arbitrary path; unmatched paths go to /login."""
    route = resolve(path)
    if route is None:
        return TO_LOGIN
    if route.public:
        return ALLOW
    return RouteGuard.for_route(route).evaluate(auth)
