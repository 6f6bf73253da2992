from datetime import datetime, timedelta, timezone

import pytest
from sqlalchemy import select

from idcore.core.errors import InvalidCredential, ResetTokenInvalid
from idcore.core.security import digest_token
from idcore.models.auth import PasswordReset
from idcore.services.local_auth import authenticate, register
from idcore.services.password_reset import (
    confirm_password_reset,
    is_reset_usable,
    request_password_reset,
)


@pytest.fixture
def alice(db_session):
    return register(db_session, email="a@x.com", username="alice01", password="Abcdef12")


def test_request_for_unknown_email_returns_none(db_session, alice):
    assert request_password_reset(db_session, email="nobody@x.com") is None
    assert db_session.execute(select(PasswordReset)).scalars().all() == []


def test_request_matches_email_only_never_username(db_session, alice):
    assert request_password_reset(db_session, email="alice01") is None
    assert db_session.execute(select(PasswordReset)).scalars().all() == []


def test_issued_token_is_stored_only_as_digest(db_session, alice):
    issued = request_password_reset(db_session, email="A@x.com")

    row = db_session.execute(select(PasswordReset)).scalar_one()
    assert row.id == issued.reset_id
    assert row.auth_id == alice.auth.id
    assert row.token == digest_token(issued.token)
    assert row.token != issued.token
    assert row.used is False
    assert is_reset_usable(row)


def test_confirm_sets_new_password_and_consumes_token(db_session, alice):
    issued = request_password_reset(db_session, email="a@x.com")

    confirm_password_reset(db_session, token=issued.token, new_password="Newpass99")

    authenticate(db_session, identifier="alice01", password="Newpass99")
    with pytest.raises(InvalidCredential):
        authenticate(db_session, identifier="alice01", password="Abcdef12")
    row = db_session.execute(select(PasswordReset)).scalar_one()
    assert row.used is True


def test_token_cannot_be_used_twice(db_session, alice):
    issued = request_password_reset(db_session, email="a@x.com")
    confirm_password_reset(db_session, token=issued.token, new_password="Newpass99")

    with pytest.raises(ResetTokenInvalid):
        confirm_password_reset(db_session, token=issued.token, new_password="Other999x")
    authenticate(db_session, identifier="alice01", password="Newpass99")


def test_expired_token_is_rejected(db_session, alice):
    issued = request_password_reset(db_session, email="a@x.com")
    row = db_session.execute(select(PasswordReset)).scalar_one()
    row.expires_at = datetime.now(timezone.utc) - timedelta(seconds=1)
    db_session.commit()

    with pytest.raises(ResetTokenInvalid):
        confirm_password_reset(db_session, token=issued.token, new_password="Newpass99")
    authenticate(db_session, identifier="alice01", password="Abcdef12")


def test_unknown_token_is_rejected(db_session, alice):
    with pytest.raises(ResetTokenInvalid) as exc:
        confirm_password_reset(db_session, token="not-a-real-token", new_password="Newpass99")
    assert exc.value.field == "token"


def test_ttl_follows_settings(db_session, alice, monkeypatch):
    from idcore.core.config import get_settings

    monkeypatch.setenv("IDC_AUTH_PASSWORD_RESET_TTL_SECONDS", "60")
    get_settings.cache_clear()

    before = datetime.now(timezone.utc)
    issued = request_password_reset(db_session, email="a@x.com")
    assert before + timedelta(seconds=59) <= issued.expires_at <= before + timedelta(seconds=61)


def test_is_reset_usable_handles_used_and_naive_expiry():
    future = datetime.now(timezone.utc).replace(tzinfo=None) + timedelta(minutes=5)
    assert is_reset_usable(PasswordReset(token="t", expires_at=future, used=False))
    assert not is_reset_usable(PasswordReset(token="t", expires_at=future, used=True))
