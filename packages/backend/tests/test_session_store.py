"""Session store tests — events, expiry, refresh, recovery tokens."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from musaib.auth.jwt import ACCESS, RECOVERY, TokenError, create_token, verify_token
from musaib.backend import AuthError
from musaib.backend.session_store import AuthEvent

from conftest import MEMBER_EMAIL, PASSWORD


def recorder():
    events = []

    async def listener(event, session):
        events.append((event, session))

    return events, listener


@pytest.mark.asyncio
async def test_sign_in_emits_signed_in(backend, member_id):
    store = backend.session_store()
    events, listener = recorder()
    store.on_session_change(listener)

    session = await store.sign_in(MEMBER_EMAIL, PASSWORD)
    assert session.user_id == member_id
    assert events == [(AuthEvent.SIGNED_IN, session)]
    assert await store.get_session() == session


@pytest.mark.asyncio
async def test_bad_credentials_raise_and_emit_nothing(backend, member_id):
    store = backend.session_store()
    events, listener = recorder()
    store.on_session_change(listener)

    with pytest.raises(AuthError):
        await store.sign_in(MEMBER_EMAIL, "wrong")
    assert events == []
    assert await store.get_session() is None


@pytest.mark.asyncio
async def test_sign_out_emits_none(backend, member_id):
    store = backend.session_store()
    await store.sign_in(MEMBER_EMAIL, PASSWORD)
    events, listener = recorder()
    store.on_session_change(listener)

    await store.sign_out()
    assert events == [(AuthEvent.SIGNED_OUT, None)]


@pytest.mark.asyncio
async def test_unsubscribe_is_idempotent(backend, member_id):
    store = backend.session_store()
    events, listener = recorder()
    sub = store.on_session_change(listener)
    sub.unsubscribe()
    sub.unsubscribe()

    await store.sign_in(MEMBER_EMAIL, PASSWORD)
    assert events == []


@pytest.mark.asyncio
async def test_expired_session_is_dropped(backend, member_id):
    store = backend.session_store()
    session = await store.sign_in(MEMBER_EMAIL, PASSWORD)
    store._session = replace(
        session, expires_at=datetime.now(timezone.utc) - timedelta(seconds=1)
    )
    events, listener = recorder()
    store.on_session_change(listener)

    assert await store.get_session() is None
    assert events == [(AuthEvent.SIGNED_OUT, None)]


@pytest.mark.asyncio
async def test_session_near_expiry_is_refreshed(backend, member_id):
    store = backend.session_store()
    session = await store.sign_in(MEMBER_EMAIL, PASSWORD)
    store._session = replace(
        session, expires_at=datetime.now(timezone.utc) + timedelta(seconds=10)
    )
    events, listener = recorder()
    store.on_session_change(listener)

    refreshed = await store.get_session()
    assert refreshed.user_id == member_id
    assert refreshed.expires_at > datetime.now(timezone.utc) + timedelta(minutes=5)
    assert events[0][0] == AuthEvent.TOKEN_REFRESHED


@pytest.mark.asyncio
async def test_update_credentials_requires_session(backend):
    store = backend.session_store()
    with pytest.raises(AuthError, match="Not signed in"):
        await store.update_credentials("new_password")


@pytest.mark.asyncio
async def test_recovery_token_exchange(backend, mailer, member_id):
    store = backend.session_store()
    await store.send_password_reset(MEMBER_EMAIL, "http://test/change-password")
    events, listener = recorder()
    store.on_session_change(listener)

    session = await store.exchange_recovery_token(mailer.last_token())
    assert session.user_id == member_id
    assert events[0][0] == AuthEvent.PASSWORD_RECOVERY


@pytest.mark.asyncio
async def test_access_token_is_not_a_recovery_token(backend, member_id):
    store = backend.session_store()
    session = await store.sign_in(MEMBER_EMAIL, PASSWORD)
    with pytest.raises(AuthError):
        await store.exchange_recovery_token(session.access_token)


def test_token_type_is_checked(test_settings):
    token, _ = create_token(test_settings, "user-1", "a@b.c", RECOVERY)
    assert verify_token(test_settings, token, RECOVERY)["sub"] == "user-1"
    with pytest.raises(TokenError):
        verify_token(test_settings, token, ACCESS)


def test_garbage_token_rejected(test_settings):
    with pytest.raises(TokenError):
        verify_token(test_settings, "not-a-jwt")
