"""Test fixtures — a fresh in-memory database per test.

Learn: Testing pattern for the portal:

1. Each test gets its own Backend on "sqlite+aiosqlite:///:memory:".
   The engine uses a StaticPool, so the one in-memory database lives
   as long as the Backend and vanishes with it.
2. Reset mails go to a MemoryMailer instead of the log, so tests can
   follow a reset link like a user would.
3. The app is built with create_app(runtime=...). The in-process HTTP
   transport doesn't run the lifespan, so the test owns the runtime.

Each AsyncClient keeps its own cookie jar, i.e. one client = one browser.
"""

import uuid
from typing import Optional

import pytest
import pytest_asyncio
from httpx import ASGITransport, AsyncClient

from musaib.backend import Backend
from musaib.backend.mailer import Mailer
from musaib.config import Settings
from musaib.main import create_app
from musaib.portal.runtime import PortalRuntime

ADMIN_EMAIL = "admin@musaib.tn"
MEMBER_EMAIL = "member@musaib.tn"
PASSWORD = "password_123"


class MemoryMailer(Mailer):
    """Keeps every reset link it was asked to send."""

    def __init__(self):
        self.sent: list[tuple[str, str]] = []

    async def send_password_reset(self, email: str, link: str) -> None:
        self.sent.append((email, link))

    def last_token(self) -> str:
        _, link = self.sent[-1]
        return link.split("token=", 1)[1]


async def create_user(
    backend: Backend,
    email: str,
    password: str = PASSWORD,
    role: str = "member",
    first_login: bool = False,
    with_profile: bool = True,
    **profile,
) -> uuid.UUID:
    """Register an account and (optionally) its profile."""
    user_id = await backend.auth.sign_up(email, password)
    if with_profile:
        await backend.profiles.insert({
            "id": user_id,
            "first_name": profile.pop("first_name", "Test"),
            "last_name": profile.pop("last_name", role.capitalize()),
            "nip": profile.pop("nip", f"NIP-{uuid.uuid4().hex[:6]}"),
            "role": role,
            "status": "active",
            "first_login": first_login,
            **profile,
        })
    return user_id


@pytest.fixture()
def test_settings():
    return Settings(
        database_url="sqlite+aiosqlite:///:memory:",
        jwt_secret="test-secret",
        bcrypt_rounds=4,
        environment="development",
        site_url="http://test",
    )


@pytest.fixture()
def mailer():
    return MemoryMailer()


@pytest_asyncio.fixture()
async def backend(test_settings, mailer):
    backend = Backend(test_settings, mailer=mailer)
    await backend.create_schema()
    try:
        yield backend
    finally:
        await backend.close()


@pytest_asyncio.fixture()
async def admin_id(backend):
    return await create_user(
        backend, ADMIN_EMAIL, role="admin", first_name="Amine", last_name="Admin"
    )


@pytest_asyncio.fixture()
async def member_id(backend):
    return await create_user(
        backend, MEMBER_EMAIL, first_name="Sami", last_name="Trabelsi", nip="NIP-001"
    )


@pytest_asyncio.fixture()
async def runtime(backend, test_settings):
    runtime = PortalRuntime(backend, test_settings)
    try:
        yield runtime
    finally:
        await runtime.close()


@pytest_asyncio.fixture()
async def app(runtime):
    return create_app(runtime=runtime)


@pytest_asyncio.fixture()
async def make_client(app):
    """Factory for extra browsers: each call returns a new cookie jar."""
    clients: list[AsyncClient] = []

    async def factory(email: Optional[str] = None, password: str = PASSWORD):
        ac = AsyncClient(transport=ASGITransport(app=app), base_url="http://test")
        clients.append(ac)
        if email:
            r = await ac.post("/login", json={"email": email, "password": password})
            assert r.status_code == 200, r.text
        return ac

    yield factory

    for ac in clients:
        await ac.aclose()


@pytest_asyncio.fixture()
async def client(make_client):
    """Anonymous browser."""
    return await make_client()


@pytest_asyncio.fixture()
async def admin_client(make_client, admin_id):
    return await make_client(ADMIN_EMAIL)


@pytest_asyncio.fixture()
async def member_client(make_client, member_id):
    return await make_client(MEMBER_EMAIL)
