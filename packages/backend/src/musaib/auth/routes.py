"""Portal route table — which pages exist and who may see them."""

from dataclasses import dataclass
from typing import Optional

LOGIN_PATH = "/login"


@dataclass(frozen=True)
class RouteSpec:
    path: str
    required_role: Optional[str] = None  # None = public

    @property
    def public(self) -> bool:
        return self.required_role is None


ROUTES: dict[str, RouteSpec] = {
    route.path: route
    for route in (
        # Public
        RouteSpec(LOGIN_PATH),
        RouteSpec("/password-reset"),
        RouteSpec("/change-password"),
        # Admin area
        RouteSpec("/admin", "admin"),
        RouteSpec("/admin/users", "admin"),
        RouteSpec("/admin/requests", "admin"),
        RouteSpec("/admin/services", "admin"),
        RouteSpec("/admin/profile", "admin"),
        # Member area
        RouteSpec("/member", "member"),
        RouteSpec("/member/profile", "member"),
        RouteSpec("/member/family", "member"),
        RouteSpec("/member/request", "member"),
        RouteSpec("/member/history", "member"),
    )
}

HOME_BY_ROLE = {"admin": "/admin", "member": "/member"}


def resolve(path: str) -> Optional[RouteSpec]:
    """The route for a path, or None when unmatched.

    Sub-paths inherit their area's route (/admin/services/<id> → /admin/services).
    """
    path = path.rstrip("/") or "/"
    while path and path != "/":
        if path in ROUTES:
            return ROUTES[path]
        path = path.rsplit("/", 1)[0]
    return None


def home_for(role: Optional[str]) -> str:
    """Landing page for a role; unknown roles go back to the login page."""
    return HOME_BY_ROLE.get(role or "", LOGIN_PATH)
