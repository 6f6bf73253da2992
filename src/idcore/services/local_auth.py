"""本地账号注册与认证服务。

注册流程先做用户名、邮箱两次独立预检查，给出明确错误原因；
并发场景下真正的正确性由存储层唯一约束保证，冲突后再回查具体字段。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from uuid import UUID

from sqlalchemy.orm import Session

from idcore.core.errors import DuplicateIdentity, EmailTaken, InvalidCredential, UsernameTaken
from idcore.core.security import generate_salt, hash_password, verify_password
from idcore.models.enums import OAuthProvider
from idcore.schemas.auth import IdentityData
from idcore.services import credential_repository as repo

logger = logging.getLogger("idcore")


@dataclass
class LoginResult:
    """登录结果；令牌签发不在本模块职责内。"""

    identity: IdentityData
    two_factor_required: bool


def _ensure_available(db: Session, *, email: str, username: str) -> None:
    """用户名与邮箱分别预检查，先检查用户名。"""
    if repo.find_identity(db, username) is not None:
        raise UsernameTaken()
    if repo.find_identity(db, email) is not None:
        raise EmailTaken()


def _classify_collision(db: Session, exc: DuplicateIdentity, *, email: str, username: str) -> Exception:
    """唯一约束冲突后回查冲突字段，翻译为用户可理解的错误。"""
    if repo.username_taken(db, username):
        return UsernameTaken()
    if repo.email_taken(db, email):
        return EmailTaken()
    return exc


def _create(db: Session, data: repo.NewCredential) -> IdentityData:
    try:
        return repo.create_identity(db, data)
    except DuplicateIdentity as exc:
        logger.info("registration lost uniqueness race field=%s", exc.field)
        raise _classify_collision(db, exc, email=data.email, username=data.username) from exc


def register(db: Session, *, email: str, username: str, password: str) -> IdentityData:
    """注册本地账号，返回不含凭据材料的身份视图。"""
    _ensure_available(db, email=email, username=username)
    # 预检查只读，哈希前归还连接。
    repo.release_connection(db)

    salt = generate_salt()
    password_hash = hash_password(password, salt)

    return _create(
        db,
        repo.NewCredential(
            email=email,
            username=username,
            password_hash=password_hash,
            password_salt=salt,
        ),
    )


def register_oauth(
    db: Session,
    *,
    provider: OAuthProvider | str,
    provider_id: str,
    email: str,
    username: str,
) -> IdentityData:
    """第三方身份登录/注册：已关联直接返回，否则创建无口令账号。

    不会按邮箱自动绑定已有账号，绑定需走已认证的 link_oauth_provider。
    """
    provider_key = OAuthProvider(provider).value
    existing = repo.find_by_oauth(db, provider=provider_key, provider_id=provider_id)
    if existing is not None:
        return existing

    _ensure_available(db, email=email, username=username)
    return _create(
        db,
        repo.NewCredential(
            email=email,
            username=username,
            oauth_links=[(provider_key, provider_id)],
        ),
    )


def link_oauth_provider(
    db: Session,
    *,
    auth_id: UUID,
    provider: OAuthProvider | str,
    provider_id: str,
) -> IdentityData:
    """为已认证账号追加第三方身份关联。"""
    provider_key = OAuthProvider(provider).value
    with repo.store_guard(db):
        repo.link_oauth_identity(db, auth_id=auth_id, provider=provider_key, provider_id=provider_id)
        db.commit()
    logger.info("oauth identity linked auth_id=%s provider=%s", auth_id, provider_key)
    identity = repo.find_identity_by_id(db, auth_id)
    if identity is None:
        raise InvalidCredential()
    return identity


def _password_matches(password: str, credential: repo.StoredCredential) -> bool:
    candidate = hash_password(password, credential.password_salt or "")
    return verify_password(candidate, credential.password_hash or "")


def authenticate(db: Session, *, identifier: str, password: str) -> LoginResult:
    """邮箱或用户名 + 口令登录。

    标识不存在、无本地口令、账号停用、口令错误均统一返回 InvalidCredential。
    """
    credential = repo.find_credential(db, identifier)
    repo.release_connection(db)

    if credential is None or not credential.has_password:
        # 未命中时仍执行一次派生，避免通过耗时区分账号是否存在。
        hash_password(password, generate_salt())
        raise InvalidCredential()
    if not _password_matches(password, credential):
        raise InvalidCredential()
    if not credential.is_active:
        raise InvalidCredential()

    with repo.store_guard(db):
        repo.record_login(db, auth_id=credential.auth_id)
        db.commit()

    identity = repo.find_identity_by_id(db, credential.auth_id)
    if identity is None:
        raise InvalidCredential()
    logger.info("login succeeded auth_id=%s", credential.auth_id)
    return LoginResult(identity=identity, two_factor_required=credential.two_factor_enabled)


def verify_current_password(db: Session, *, auth_id: UUID, password: str) -> None:
    """校验账号当前口令，不匹配时抛出 InvalidCredential。"""
    credential = repo.find_credential_by_id(db, auth_id)
    repo.release_connection(db)
    if not credential.has_password or not _password_matches(password, credential):
        raise InvalidCredential(field="password")


def change_password(db: Session, *, auth_id: UUID, current_password: str, new_password: str) -> None:
    """校验当前口令后更换口令。"""
    verify_current_password(db, auth_id=auth_id, password=current_password)
    salt = generate_salt()
    password_hash = hash_password(new_password, salt)
    with repo.store_guard(db):
        repo.update_password(db, auth_id=auth_id, password_hash=password_hash, password_salt=salt)
        db.commit()
    logger.info("password changed auth_id=%s", auth_id)
