"""CLI tests — click commands against a throwaway SQLite file."""

import asyncio

import pytest
from click.testing import CliRunner

from musaib.backend import Backend
from musaib.cli import main as cli_module
from musaib.config import Settings


@pytest.fixture()
def cli_settings(tmp_path, monkeypatch):
    settings = Settings(
        database_url=f"sqlite+aiosqlite:///{tmp_path / 'musaib.db'}",
        jwt_secret="test-secret",
        bcrypt_rounds=4,
        environment="development",
    )
    monkeypatch.setattr(cli_module, "settings", settings)
    return settings


def invoke(*args):
    return CliRunner().invoke(cli_module.main, list(args))


async def load_profile(settings, email):
    backend = Backend(settings)
    try:
        session = await backend.auth.sign_in_with_password(email, "initial_pass")
        return await backend.profiles.get(session.user_id)
    finally:
        await backend.close()


def test_version():
    result = invoke("--version")
    assert result.exit_code == 0
    assert "musaib" in result.output


def test_init_db_then_create_user(cli_settings):
    result = invoke("init-db")
    assert result.exit_code == 0, result.output
    assert "schema created" in result.output

    result = invoke(
        "create-user", "chef@musaib.tn", "--password", "initial_pass",
        "--role", "admin", "--first-name", "Amine", "--last-name", "Ben Ali",
    )
    assert result.exit_code == 0, result.output
    assert "Created admin chef@musaib.tn" in result.output

    profile = asyncio.run(load_profile(cli_settings, "chef@musaib.tn"))
    assert profile.role == "admin"
    assert profile.first_login is True
    assert profile.full_name == "Amine Ben Ali"


def test_create_user_twice_fails(cli_settings):
    invoke("init-db")
    args = [
        "create-user", "dup@musaib.tn", "--password", "initial_pass",
        "--first-name", "A", "--last-name", "B",
    ]
    assert invoke(*args).exit_code == 0

    result = invoke(*args)
    assert result.exit_code == 1
    assert "Email already registered" in result.output


def test_create_user_rejects_unknown_role(cli_settings):
    result = invoke(
        "create-user", "x@musaib.tn", "--password", "p", "--role", "root",
        "--first-name", "A", "--last-name", "B",
    )
    assert result.exit_code == 2


def test_health_unreachable(monkeypatch):
    monkeypatch.setenv("MUSAIB_API_URL", "http://127.0.0.1:9")
    result = invoke("health")
    assert result.exit_code == 1
    assert "portal unreachable" in result.output
