"""凭据仓储。

Auth / UserProfile / OAuthIdentity 行只通过本模块读写。
约定：
1. create_identity、update_profile、soft_delete_identity 是独立工作单元，自行提交。
2. 其余写操作只 flush，由服务层与相关记录在同一事务内提交。
3. 驱动异常统一翻译为 DuplicateIdentity / StoreUnavailable。
"""

from __future__ import annotations

import logging
import re
from collections.abc import Iterator
from contextlib import contextmanager
from dataclasses import dataclass, field
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.exc import IntegrityError, InterfaceError, OperationalError
from sqlalchemy.orm import Session, selectinload

from idcore.core.errors import DuplicateIdentity, IdentityNotFound, StoreUnavailable
from idcore.core.validation import normalize_email
from idcore.models.auth import Auth, OAuthIdentity
from idcore.models.profile import UserProfile
from idcore.schemas.auth import AuthPublicData, IdentityData
from idcore.schemas.profile import ProfileUpdateRequest, UserProfileData

logger = logging.getLogger("idcore")

# 唯一约束名 / 列名 -> 冲突字段提示。
_COLLISION_PATTERNS: tuple[tuple[str, re.Pattern[str]], ...] = (
    ("oauth", re.compile(r"auth_oauth_identities|uk_oauth_")),
    ("username", re.compile(r"uk_auth_username|uk_user_profiles_username|\bauth\.username|user_profiles\.username")),
    ("email", re.compile(r"uk_auth_email|\bauth\.email")),
    ("invitation_code", re.compile(r"invitation_code")),
)


@dataclass
class NewCredential:
    """创建身份所需数据；口令字段只接受哈希与盐值。"""

    email: str
    username: str
    password_hash: str | None = None
    password_salt: str | None = None
    # (provider, provider_id) 列表。
    oauth_links: list[tuple[str, str]] = field(default_factory=list)
    email_verified: bool = False


@dataclass
class StoredCredential:
    """登录校验用的内部投影，只在服务层内部流转。"""

    auth_id: UUID
    is_active: bool
    two_factor_enabled: bool
    password_hash: str | None = field(default=None, repr=False)
    password_salt: str | None = field(default=None, repr=False)

    @property
    def has_password(self) -> bool:
        return self.password_hash is not None and self.password_salt is not None


def _is_unique_violation(exc: IntegrityError) -> bool:
    code = getattr(exc.orig, "sqlstate", None) or getattr(exc.orig, "pgcode", None)
    if code is not None:
        return code == "23505"
    return "unique" in str(exc.orig).lower()


def _collided_field(exc: IntegrityError) -> str | None:
    text = str(exc.orig)
    for field_name, pattern in _COLLISION_PATTERNS:
        if pattern.search(text):
            return field_name
    return None


@contextmanager
def store_guard(db: Session) -> Iterator[None]:
    """将驱动层异常翻译为凭据错误，并回滚当前事务。

    只有唯一约束冲突翻译为 DuplicateIdentity，其余完整性错误原样上抛。
    """
    try:
        yield
    except IntegrityError as exc:
        db.rollback()
        if not _is_unique_violation(exc):
            raise
        field_hint = _collided_field(exc)
        logger.info("unique constraint rejected write field=%s", field_hint)
        raise DuplicateIdentity(field=field_hint) from exc
    except (OperationalError, InterfaceError) as exc:
        db.rollback()
        logger.warning("credential store unavailable error=%s", exc.__class__.__name__)
        raise StoreUnavailable() from exc


def release_connection(db: Session) -> None:
    """结束只读事务并归还连接；调用前会话内不得有待提交写入。"""
    if db.in_transaction():
        db.rollback()


def _live_auth_query():
    return (
        select(Auth)
        .where(Auth.deleted_at.is_(None))
        .options(selectinload(Auth.profile), selectinload(Auth.oauth_identities))
    )


def _find_auth(db: Session, identifier: str) -> Auth | None:
    """先按邮箱精确匹配，未命中再按资料用户名匹配。"""
    auth = db.execute(_live_auth_query().where(Auth.email == normalize_email(identifier))).scalar_one_or_none()
    if auth is not None:
        return auth
    return db.execute(
        _live_auth_query()
        .join(UserProfile, UserProfile.auth_id == Auth.id)
        .where(UserProfile.username == identifier)
    ).scalar_one_or_none()


def _get_live_auth(db: Session, auth_id: UUID) -> Auth:
    auth = db.execute(_live_auth_query().where(Auth.id == auth_id)).scalar_one_or_none()
    if auth is None:
        raise IdentityNotFound(field="auth_id")
    return auth


def _to_identity(auth: Auth) -> IdentityData | None:
    if auth.profile is None:
        # 正常流程不会出现，视为不存在。
        logger.error("auth without profile auth_id=%s", auth.id)
        return None
    return IdentityData(
        auth=AuthPublicData(
            id=auth.id,
            email=auth.email,
            username=auth.username,
            email_verified=auth.email_verified,
            is_active=auth.is_active,
            two_factor_enabled=auth.two_factor_enabled,
            has_password=auth.password_hash is not None,
            oauth_providers=[item.provider for item in auth.oauth_identities],
            last_login=auth.last_login,
            password_changed_at=auth.password_changed_at,
            created_at=auth.created_at,
            updated_at=auth.updated_at,
        ),
        profile=UserProfileData.model_validate(auth.profile),
    )


def find_identity(db: Session, identifier: str) -> IdentityData | None:
    """按邮箱或用户名查找身份，未命中返回 None。"""
    with store_guard(db):
        auth = _find_auth(db, identifier)
        return _to_identity(auth) if auth is not None else None


def find_identity_by_id(db: Session, auth_id: UUID) -> IdentityData | None:
    with store_guard(db):
        auth = db.execute(_live_auth_query().where(Auth.id == auth_id)).scalar_one_or_none()
        return _to_identity(auth) if auth is not None else None


def find_by_oauth(db: Session, *, provider: str, provider_id: str) -> IdentityData | None:
    """按第三方身份查找已关联的账号。"""
    with store_guard(db):
        auth = db.execute(
            _live_auth_query()
            .join(OAuthIdentity, OAuthIdentity.auth_id == Auth.id)
            .where(OAuthIdentity.provider == str(provider))
            .where(OAuthIdentity.provider_id == provider_id)
        ).scalar_one_or_none()
        return _to_identity(auth) if auth is not None else None


def _to_credential(auth: Auth) -> StoredCredential:
    return StoredCredential(
        auth_id=auth.id,
        is_active=auth.is_active,
        two_factor_enabled=auth.two_factor_enabled,
        password_hash=auth.password_hash,
        password_salt=auth.password_salt,
    )


def find_credential(db: Session, identifier: str) -> StoredCredential | None:
    """读取登录校验所需的口令材料。"""
    with store_guard(db):
        auth = _find_auth(db, identifier)
        return _to_credential(auth) if auth is not None else None


def find_credential_by_email(db: Session, email: str) -> StoredCredential | None:
    """只按规范化邮箱查找，不回退到用户名。"""
    with store_guard(db):
        auth = db.execute(_live_auth_query().where(Auth.email == normalize_email(email))).scalar_one_or_none()
        return _to_credential(auth) if auth is not None else None


def find_credential_by_id(db: Session, auth_id: UUID) -> StoredCredential:
    with store_guard(db):
        return _to_credential(_get_live_auth(db, auth_id))


def username_taken(db: Session, username: str) -> bool:
    """用户名是否已被占用（包含逻辑删除的记录，与唯一约束口径一致）。"""
    with store_guard(db):
        in_auth = db.execute(select(Auth.id).where(Auth.username == username).limit(1)).first()
        if in_auth is not None:
            return True
        in_profile = db.execute(select(UserProfile.id).where(UserProfile.username == username).limit(1)).first()
        return in_profile is not None


def email_taken(db: Session, email: str) -> bool:
    """邮箱是否已被占用（包含逻辑删除的记录）。"""
    with store_guard(db):
        row = db.execute(select(Auth.id).where(Auth.email == normalize_email(email)).limit(1)).first()
        return row is not None


def create_identity(db: Session, data: NewCredential) -> IdentityData:
    """在同一事务内创建 Auth、UserProfile 与第三方关联，要么全部成功要么全部回滚。"""
    with store_guard(db):
        auth = Auth(
            email=normalize_email(data.email),
            username=data.username,
            password_hash=data.password_hash,
            password_salt=data.password_salt,
            email_verified=data.email_verified,
        )
        db.add(auth)
        db.flush()

        db.add(UserProfile(auth_id=auth.id, username=auth.username))
        for provider, provider_id in data.oauth_links:
            db.add(OAuthIdentity(auth_id=auth.id, provider=str(provider), provider_id=provider_id))
        db.flush()
        db.commit()
        auth_id = auth.id

    logger.info("identity created auth_id=%s", auth_id)
    identity = find_identity_by_id(db, auth_id)
    if identity is None:
        raise IdentityNotFound(field="auth_id")
    return identity


def update_password(db: Session, *, auth_id: UUID, password_hash: str, password_salt: str) -> None:
    """替换口令哈希与盐值并记录修改时间。"""
    with store_guard(db):
        auth = _get_live_auth(db, auth_id)
        auth.password_hash = password_hash
        auth.password_salt = password_salt
        auth.password_changed_at = datetime.now(timezone.utc)
        db.flush()


def record_login(db: Session, *, auth_id: UUID) -> None:
    with store_guard(db):
        auth = _get_live_auth(db, auth_id)
        auth.last_login = datetime.now(timezone.utc)
        db.flush()


def link_oauth_identity(db: Session, *, auth_id: UUID, provider: str, provider_id: str) -> None:
    """为已有账号追加第三方身份关联。"""
    with store_guard(db):
        _get_live_auth(db, auth_id)
        db.add(OAuthIdentity(auth_id=auth_id, provider=str(provider), provider_id=provider_id))
        db.flush()


def get_two_factor_secret(db: Session, *, auth_id: UUID) -> str | None:
    """读取最近签发的双因素密钥（可能尚未确认，生效密钥见 TwoFactorAuth.secret）。"""
    with store_guard(db):
        return _get_live_auth(db, auth_id).two_factor_secret


def set_two_factor_state(db: Session, *, auth_id: UUID, enabled: bool, secret: str | None) -> None:
    with store_guard(db):
        auth = _get_live_auth(db, auth_id)
        auth.two_factor_enabled = enabled
        auth.two_factor_secret = secret
        db.flush()


# 资料表中不可为空的偏好列，显式传 None 视为不修改。
_REQUIRED_PROFILE_FIELDS = frozenset({"timezone", "language", "theme", "profile_visibility"})


def update_profile(db: Session, *, auth_id: UUID, changes: ProfileUpdateRequest) -> IdentityData:
    """更新资料字段，未传入的字段保持不变。"""
    with store_guard(db):
        auth = _get_live_auth(db, auth_id)
        profile = auth.profile
        if profile is None:
            raise IdentityNotFound(field="profile")
        values = changes.model_dump(exclude_unset=True, mode="json")
        if changes.social_links is not None:
            # 社交链接整体替换，保留完整结构。
            values["social_links"] = changes.social_links.model_dump(mode="json")
        for name, value in values.items():
            if value is None and name in _REQUIRED_PROFILE_FIELDS:
                continue
            setattr(profile, name, value)
        db.commit()

    identity = find_identity_by_id(db, auth_id)
    if identity is None:
        raise IdentityNotFound(field="auth_id")
    return identity


def soft_delete_identity(db: Session, *, auth_id: UUID) -> None:
    """逻辑删除身份与资料；唯一约束仍占用原邮箱与用户名。"""
    with store_guard(db):
        auth = _get_live_auth(db, auth_id)
        now = datetime.now(timezone.utc)
        auth.deleted_at = now
        auth.is_active = False
        if auth.profile is not None:
            auth.profile.deleted_at = now
        db.commit()
    logger.info("identity soft-deleted auth_id=%s", auth_id)

