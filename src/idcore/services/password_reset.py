"""口令重置服务。

令牌只在签发时以明文返回一次，库中保存摘要；
令牌仅在 used = false 且当前时间早于 expires_at 时可用，使用后不可恢复。
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from uuid import UUID

from sqlalchemy import select, update
from sqlalchemy.orm import Session

from idcore.core.config import get_settings
from idcore.core.errors import ResetTokenInvalid
from idcore.core.security import digest_token, generate_opaque_token, generate_salt, hash_password
from idcore.models.auth import PasswordReset
from idcore.services import credential_repository as repo

logger = logging.getLogger("idcore")


@dataclass
class IssuedReset:
    """签发结果，token 为明文，只交给投递渠道。"""

    reset_id: UUID
    token: str
    expires_at: datetime


def _as_utc(value: datetime) -> datetime:
    # SQLite 读回的时间不带时区，按 UTC 处理。
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value


def is_reset_usable(reset: PasswordReset, *, now: datetime | None = None) -> bool:
    """令牌是否仍可使用。"""
    current = now or datetime.now(timezone.utc)
    return not reset.used and current < _as_utc(reset.expires_at)


def request_password_reset(db: Session, *, email: str) -> IssuedReset | None:
    """为邮箱对应账号签发重置令牌；账号不存在时返回 None。"""
    credential = repo.find_credential_by_email(db, email)
    if credential is None:
        repo.release_connection(db)
        return None

    settings = get_settings()
    token = generate_opaque_token()
    expires_at = datetime.now(timezone.utc) + timedelta(seconds=settings.auth_password_reset_ttl_seconds)
    reset = PasswordReset(
        auth_id=credential.auth_id,
        token=digest_token(token),
        expires_at=expires_at,
        used=False,
    )
    with repo.store_guard(db):
        db.add(reset)
        db.commit()
        reset_id = reset.id

    logger.info("password reset issued auth_id=%s reset_id=%s", credential.auth_id, reset_id)
    return IssuedReset(reset_id=reset_id, token=token, expires_at=expires_at)


def confirm_password_reset(db: Session, *, token: str, new_password: str) -> None:
    """校验令牌并设置新口令；令牌在同一事务内标记为已使用。"""
    # 先完成耗时派生，再占用连接。
    salt = generate_salt()
    password_hash = hash_password(new_password, salt)
    now = datetime.now(timezone.utc)

    with repo.store_guard(db):
        reset = db.execute(select(PasswordReset).where(PasswordReset.token == digest_token(token))).scalar_one_or_none()
        if reset is None or not is_reset_usable(reset, now=now):
            db.rollback()
            raise ResetTokenInvalid()

        # 条件更新保证并发确认时只有一方能消费令牌。
        consumed = db.execute(
            update(PasswordReset)
            .where(PasswordReset.id == reset.id)
            .where(PasswordReset.used.is_(False))
            .values(used=True)
            .execution_options(synchronize_session=False)
        )
        if consumed.rowcount != 1:
            db.rollback()
            raise ResetTokenInvalid()

        repo.update_password(db, auth_id=reset.auth_id, password_hash=password_hash, password_salt=salt)
        db.commit()
        auth_id = reset.auth_id

    logger.info("password reset completed auth_id=%s", auth_id)
