"""Route table and route guard tests — pure decisions, no I/O."""

import uuid
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Optional

import pytest

from musaib.auth.guard import (
    ALLOW,
    TO_LOGIN,
    WAIT,
    GuardOutcome,
    RouteGuard,
    check_path,
)
from musaib.auth.routes import LOGIN_PATH, ROUTES, home_for, resolve
from musaib.schemas.profile import CurrentUser, ProfileRead


def make_user(role: str) -> CurrentUser:
    now = datetime.now(timezone.utc)
    profile = ProfileRead(
        id=uuid.uuid4(),
        first_name="Test",
        last_name="User",
        nip="NIP-1",
        role=role,
        status="active",
        first_login=False,
        created_at=now,
        updated_at=now,
    )
    return CurrentUser.from_profile("test@musaib.tn", profile)


@dataclass
class FakeAuth:
    loading: bool = False
    current_user: Optional[CurrentUser] = None


# ═══════════════════════════════════════════════════════════
# Route table
# ═══════════════════════════════════════════════════════════


def test_all_portal_routes_declared():
    assert set(ROUTES) == {
        "/login", "/password-reset", "/change-password",
        "/admin", "/admin/users", "/admin/requests", "/admin/services", "/admin/profile",
        "/member", "/member/profile", "/member/family", "/member/request", "/member/history",
    }


@pytest.mark.parametrize("path,role", [
    ("/login", None),
    ("/admin", "admin"),
    ("/admin/services/", "admin"),
    ("/admin/services/1234", "admin"),
    ("/member/family/abc", "member"),
])
def test_resolve(path, role):
    route = resolve(path)
    assert route is not None
    assert route.required_role == role


@pytest.mark.parametrize("path", ["/", "/nowhere", "/adminx"])
def test_resolve_unmatched(path):
    assert resolve(path) is None


def test_home_for_role():
    assert home_for("admin") == "/admin"
    assert home_for("member") == "/member"
    assert home_for(None) == LOGIN_PATH
    assert home_for("auditor") == LOGIN_PATH


# ═══════════════════════════════════════════════════════════
# Guard
# ═══════════════════════════════════════════════════════════


def test_guard_waits_while_loading():
    decision = RouteGuard("admin").evaluate(FakeAuth(loading=True))
    assert decision == WAIT
    assert decision.location is None


def test_guard_redirects_anonymous_to_login():
    decision = RouteGuard("member").evaluate(FakeAuth())
    assert decision.outcome == GuardOutcome.REDIRECT
    assert decision.location == LOGIN_PATH


def test_guard_redirects_wrong_role_to_login():
    auth = FakeAuth(current_user=make_user("member"))
    assert RouteGuard("admin").evaluate(auth) == TO_LOGIN


def test_guard_allows_matching_role():
    auth = FakeAuth(current_user=make_user("admin"))
    decision = RouteGuard("admin").evaluate(auth)
    assert decision == ALLOW
    assert decision.allowed


def test_guard_without_role_only_needs_a_user():
    assert RouteGuard().evaluate(FakeAuth(current_user=make_user("member"))).allowed
    assert RouteGuard().evaluate(FakeAuth()) == TO_LOGIN


def test_check_path():
    member = FakeAuth(current_user=make_user("member"))
    assert check_path("/member/history", member).allowed
    assert check_path("/admin/users", member) == TO_LOGIN
    assert check_path("/login", FakeAuth()).allowed
    assert check_path("/somewhere-else", member) == TO_LOGIN
