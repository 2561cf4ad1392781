"""MuSAIB CLI — set up the database, create accounts, run the portal.

Usage:
    musaib init-db                                   # Create all tables
    musaib create-user admin@musaib.tn -r admin \\
        --first-name Amine --last-name Ben Ali       # Account + profile
    musaib serve --reload                            # Run the portal
    musaib health                                    # Ask a running portal
"""

from __future__ import annotations

import asyncio
import concurrent.futures
import json
import os
from typing import Optional

import click
import httpx

from musaib import __version__
from musaib.backend import AuthError, Backend, BackendError
from musaib.config import settings

# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------

DEFAULT_API_URL = "http://localhost:8000"


def _api_url() -> str:
    return os.environ.get("MUSAIB_API_URL", DEFAULT_API_URL).rstrip("/")


def _run(coro):
    """Run an async coroutine from synchronous Click handler.

    Handles nested event loops (e.g. when invoked via Click CliRunner
    inside an existing async context like tests) by offloading to a thread.
    """
    try:
        asyncio.get_running_loop()
    except RuntimeError:
        return asyncio.run(coro)
    else:
        with concurrent.futures.ThreadPoolExecutor(max_workers=1) as pool:
            return pool.submit(asyncio.run, coro).result()


def _fail(message: str) -> None:
    """Abort the command; click prints "Error: <message>" and exits 1."""
    raise click.ClickException(message)


# ---------------------------------------------------------------------------
# CLI group
# ---------------------------------------------------------------------------


@click.group()
@click.version_option(version=__version__, prog_name="musaib")
def main():
    """MuSAIB — mutual benefit society portal."""


# ---------------------------------------------------------------------------
# musaib init-db
# ---------------------------------------------------------------------------


@main.command("init-db")
def init_db():
    """Create every portal table in MUSAIB_DATABASE_URL."""
    _run(_init_db_impl())
    click.secho("Database schema created", fg="green")


async def _init_db_impl():
    backend = Backend(settings)
    try:
        await backend.create_schema()
    finally:
        await backend.close()


# ---------------------------------------------------------------------------
# musaib create-user
# ---------------------------------------------------------------------------


@main.command("create-user")
@click.argument("email")
@click.option("--password", "-p", prompt=True, hide_input=True,
              confirmation_prompt=True, help="Initial password")
@click.option("--role", "-r", type=click.Choice(["admin", "member"]),
              default="member", show_default=True)
@click.option("--first-name", required=True)
@click.option("--last-name", required=True)
@click.option("--nip", default="", help="Member identification number")
@click.option("--phone", default=None)
def create_user(email: str, password: str, role: str, first_name: str,
                last_name: str, nip: str, phone: Optional[str]):
    """Register an account and its profile.

    The user is asked to change the password on first login.
    """
    user_id = _run(_create_user_impl(
        email, password, role, first_name, last_name, nip, phone
    ))
    click.secho(f"Created {role} {email} ({user_id})", fg="green")


async def _create_user_impl(email, password, role, first_name, last_name, nip, phone):
    backend = Backend(settings)
    try:
        try:
            user_id = await backend.auth.sign_up(email, password)
        except AuthError as e:
            _fail(str(e))
        try:
            await backend.profiles.insert({
                "id": user_id,
                "first_name": first_name,
                "last_name": last_name,
                "nip": nip,
                "phone": phone,
                "role": role,
                "status": "active",
                "first_login": True,
            })
        except BackendError as e:
            _fail(f"account created but profile failed: {e}")
        return user_id
    finally:
        await backend.close()


# ---------------------------------------------------------------------------
# musaib serve
# ---------------------------------------------------------------------------


@main.command()
@click.option("--host", default=None, help="Bind address (default: MUSAIB_HOST)")
@click.option("--port", type=int, default=None, help="Port (default: MUSAIB_PORT)")
@click.option("--reload", is_flag=True, help="Auto-reload on code changes")
def serve(host: Optional[str], port: Optional[int], reload: bool):
    """Run the portal with uvicorn."""
    import uvicorn

    uvicorn.run(
        "musaib.main:app",
        host=host or settings.host,
        port=port or settings.port,
        reload=reload,
    )


# ---------------------------------------------------------------------------
# musaib health
# ---------------------------------------------------------------------------


@main.command()
def health():
    """Check a running portal (MUSAIB_API_URL, default localhost:8000)."""
    data = _run(_health_impl())
    color = "green" if data.get("status") == "healthy" else "yellow"
    click.secho(data.get("status", "unknown"), fg=color, bold=True)
    click.echo(json.dumps(data, indent=2, default=str))


async def _health_impl() -> dict:
    try:
        async with httpx.AsyncClient(base_url=_api_url(), timeout=10.0) as c:
            r = await c.get("/api/v1/health")
            r.raise_for_status()
            return r.json()
    except httpx.HTTPError as e:
        _fail(f"portal unreachable at {_api_url()}: {e}")


if __name__ == "__main__":
    main()
