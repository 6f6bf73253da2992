from uuid import uuid4

import pytest
from sqlalchemy import event, func, select
from sqlalchemy.exc import IntegrityError, OperationalError
from sqlalchemy.orm import Session

from idcore.core.errors import DuplicateIdentity, StoreUnavailable
from idcore.models.auth import Auth, OAuthIdentity, PasswordReset, TwoFactorAuth
from idcore.models.profile import UserProfile
from idcore.services.credential_repository import (
    NewCredential,
    create_identity,
    find_by_oauth,
    find_credential,
    find_identity,
    soft_delete_identity,
    update_profile,
    username_taken,
)
from idcore.schemas.profile import ProfileUpdateRequest, SocialLinks


def _credential(email: str, username: str, **kwargs) -> NewCredential:
    kwargs.setdefault("password_hash", "stored-hash")
    kwargs.setdefault("password_salt", "stored-salt")
    return NewCredential(email=email, username=username, **kwargs)


def _count(db: Session, model) -> int:
    return db.execute(select(func.count()).select_from(model)).scalar_one()


def test_create_identity_creates_auth_and_profile_together(db_session):
    identity = create_identity(db_session, _credential("a@x.com", "alice01"))

    assert identity.auth.username == "alice01"
    assert identity.profile.username == "alice01"
    assert identity.profile.auth_id == identity.auth.id
    assert identity.profile.id != identity.auth.id
    assert identity.profile.timezone == "UTC"
    assert identity.profile.theme == "light"
    assert identity.profile.profile_visibility == "public"
    assert identity.profile.social_links["custom"] == []
    assert identity.auth.is_active is True
    assert identity.auth.email_verified is False
    assert identity.auth.two_factor_enabled is False
    assert _count(db_session, Auth) == 1
    assert _count(db_session, UserProfile) == 1


def test_identity_projection_omits_credential_material(db_session):
    identity = create_identity(db_session, _credential("a@x.com", "alice01"))
    dumped = identity.model_dump()

    assert "password_hash" not in dumped["auth"]
    assert "password_salt" not in dumped["auth"]
    assert "two_factor_secret" not in dumped["auth"]
    assert dumped["auth"]["has_password"] is True


def test_find_identity_by_email_and_username(db_session):
    created = create_identity(db_session, _credential("a@x.com", "alice01"))

    by_email = find_identity(db_session, "a@x.com")
    by_username = find_identity(db_session, "alice01")

    assert by_email is not None and by_username is not None
    assert by_email.auth.id == by_username.auth.id == created.auth.id


def test_find_identity_returns_none_when_missing(db_session):
    assert find_identity(db_session, "nobody@x.com") is None
    assert find_identity(db_session, "nobody") is None


def test_find_identity_email_is_normalized_username_is_exact(db_session):
    create_identity(db_session, _credential("Alice@X.com", "Alice01"))

    assert find_identity(db_session, "  ALICE@x.COM ") is not None
    assert find_identity(db_session, "Alice01") is not None
    assert find_identity(db_session, "alice01") is None


def test_find_identity_prefers_email_match(db_session):
    # 一个账号的用户名恰好等于另一个账号的邮箱时，邮箱匹配优先。
    by_email = create_identity(db_session, _credential("x@y.io", "owner01"))
    create_identity(db_session, NewCredential(email="other@y.io", username="someone"))
    profile = db_session.execute(select(UserProfile).where(UserProfile.username == "someone")).scalar_one()
    profile.username = "x@y.io"
    db_session.commit()

    found = find_identity(db_session, "x@y.io")
    assert found is not None
    assert found.auth.id == by_email.auth.id


def test_create_identity_duplicate_email_or_username(db_session):
    create_identity(db_session, _credential("a@x.com", "alice01"))

    with pytest.raises(DuplicateIdentity) as email_exc:
        create_identity(db_session, _credential("a@x.com", "alice02"))
    assert email_exc.value.field == "email"

    with pytest.raises(DuplicateIdentity) as username_exc:
        create_identity(db_session, _credential("b@x.com", "alice01"))
    assert username_exc.value.field == "username"

    assert _count(db_session, Auth) == 1
    assert _count(db_session, UserProfile) == 1


def test_create_identity_rolls_back_auth_when_profile_insert_collides(db_session):
    create_identity(db_session, _credential("first@x.com", "first01"))
    profile = db_session.execute(select(UserProfile)).scalar_one()
    profile.username = "taken01"
    db_session.commit()

    # Auth 行可以插入，资料行命中唯一约束，整体必须回滚。
    with pytest.raises(DuplicateIdentity):
        create_identity(db_session, _credential("second@x.com", "taken01"))

    assert db_session.execute(select(Auth).where(Auth.email == "second@x.com")).scalar_one_or_none() is None
    assert _count(db_session, Auth) == 1


def test_create_identity_store_fault_between_inserts_leaves_no_auth(db_session, session_factory):
    def _fail(_mapper, _connection, _target):
        raise OperationalError("INSERT INTO user_profiles", {}, Exception("simulated store fault"))

    event.listen(UserProfile, "before_insert", _fail)
    try:
        with pytest.raises(StoreUnavailable):
            create_identity(db_session, _credential("a@x.com", "alice01"))
    finally:
        event.remove(UserProfile, "before_insert", _fail)

    inspector = session_factory()
    try:
        assert _count(inspector, Auth) == 0
        assert _count(inspector, UserProfile) == 0
    finally:
        inspector.close()


def test_password_pair_constraint_rejects_half_credentials(db_session):
    with pytest.raises(IntegrityError):
        create_identity(db_session, NewCredential(email="a@x.com", username="alice01", password_hash="only-hash"))
    assert _count(db_session, Auth) == 0


def test_oauth_identity_lookup_and_uniqueness(db_session):
    identity = create_identity(
        db_session,
        NewCredential(email="gh@x.com", username="octo01", oauth_links=[("github", "42")]),
    )
    assert identity.auth.has_password is False
    assert identity.auth.oauth_providers == ["github"]

    found = find_by_oauth(db_session, provider="github", provider_id="42")
    assert found is not None and found.auth.id == identity.auth.id
    assert find_by_oauth(db_session, provider="google", provider_id="42") is None

    with pytest.raises(DuplicateIdentity) as exc:
        create_identity(
            db_session,
            NewCredential(email="gh2@x.com", username="octo02", oauth_links=[("github", "42")]),
        )
    assert exc.value.field == "oauth"
    assert find_identity(db_session, "octo02") is None


def test_soft_deleted_identity_is_hidden_but_keeps_uniqueness(db_session):
    identity = create_identity(db_session, _credential("a@x.com", "alice01"))
    soft_delete_identity(db_session, auth_id=identity.auth.id)

    assert find_identity(db_session, "a@x.com") is None
    assert find_credential(db_session, "alice01") is None
    assert username_taken(db_session, "alice01")
    assert _count(db_session, Auth) == 1


def test_update_profile_changes_only_given_fields(db_session):
    identity = create_identity(db_session, _credential("a@x.com", "alice01"))

    updated = update_profile(
        db_session,
        auth_id=identity.auth.id,
        changes=ProfileUpdateRequest(bio="hello", theme="dark", social_links=SocialLinks(github="alice")),
    )

    assert updated.profile.bio == "hello"
    assert updated.profile.theme == "dark"
    assert updated.profile.social_links["github"] == "alice"
    assert updated.profile.language == "en"
    assert updated.profile.username == "alice01"


def test_update_profile_ignores_explicit_none_for_required_preferences(db_session):
    identity = create_identity(db_session, _credential("a@x.com", "alice01"))
    update_profile(db_session, auth_id=identity.auth.id, changes=ProfileUpdateRequest(theme="dark"))

    updated = update_profile(
        db_session,
        auth_id=identity.auth.id,
        changes=ProfileUpdateRequest(theme=None, timezone=None, language=None, profile_visibility=None, bio=None),
    )

    assert updated.profile.theme == "dark"
    assert updated.profile.timezone == "UTC"
    assert updated.profile.language == "en"
    assert updated.profile.profile_visibility == "public"
    assert updated.profile.bio is None


def test_deleting_auth_cascades_to_dependents(db_session):
    identity = create_identity(
        db_session,
        _credential("a@x.com", "alice01", oauth_links=[("discord", "d-1")]),
    )
    auth_id = identity.auth.id
    db_session.add(PasswordReset(auth_id=auth_id, token=uuid4().hex, expires_at=func.now(), used=False))
    db_session.add(TwoFactorAuth(auth_id=auth_id, secret="S", backup_codes=[], enabled_at=func.now()))
    db_session.commit()

    db_session.delete(db_session.get(Auth, auth_id))
    db_session.commit()

    for model in (Auth, UserProfile, OAuthIdentity, PasswordReset, TwoFactorAuth):
        assert _count(db_session, model) == 0
