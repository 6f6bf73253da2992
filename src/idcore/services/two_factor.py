"""双因素生命周期服务。

只维护数据契约：密钥生成、启用、轮换、停用与备用码消费；
动态口令（TOTP）的计算与校验由调用方完成。

生效密钥以 TwoFactorAuth.secret 为准；Auth.two_factor_secret 只记录最近一次签发的
（可能尚未确认的）密钥，确认或取消设置后两者重新一致。
"""

from __future__ import annotations

import base64
import logging
import secrets
from datetime import datetime, timezone
from uuid import UUID

from sqlalchemy import select
from sqlalchemy.orm import Session

from idcore.core.config import get_settings
from idcore.core.errors import TwoFactorStateError
from idcore.core.security import digest_token, secrets_match
from idcore.models.auth import TwoFactorAuth
from idcore.schemas.auth import TwoFactorStatusData
from idcore.services import credential_repository as repo
from idcore.services.local_auth import verify_current_password

logger = logging.getLogger("idcore")


def generate_two_factor_secret() -> str:
    """生成 160 位 base32 密钥。"""
    return base64.b32encode(secrets.token_bytes(20)).decode("ascii").rstrip("=")


def generate_backup_codes(count: int) -> list[str]:
    return [f"{secrets.token_hex(4)}-{secrets.token_hex(4)}" for _ in range(count)]


def _normalize_backup_code(code: str) -> str:
    return code.strip().lower()


def _current_record(db: Session, auth_id: UUID) -> TwoFactorAuth | None:
    return db.execute(select(TwoFactorAuth).where(TwoFactorAuth.auth_id == auth_id)).scalar_one_or_none()


def begin_two_factor_setup(db: Session, *, auth_id: UUID, password: str) -> str:
    """确认口令后生成待确认密钥。

    已启用时即为密钥轮换：待确认密钥只写入 Auth，TwoFactorAuth 中的生效密钥在确认前不变。
    """
    verify_current_password(db, auth_id=auth_id, password=password)
    credential = repo.find_credential_by_id(db, auth_id)
    secret = generate_two_factor_secret()
    with repo.store_guard(db):
        repo.set_two_factor_state(db, auth_id=auth_id, enabled=credential.two_factor_enabled, secret=secret)
        db.commit()
    logger.info("two-factor setup started auth_id=%s", auth_id)
    return secret


def confirm_two_factor_setup(db: Session, *, auth_id: UUID, secret: str) -> list[str]:
    """以新记录替换当前双因素记录并启用，返回仅展示一次的备用码明文。"""
    pending = repo.get_two_factor_secret(db, auth_id=auth_id)
    if pending is None or not secrets_match(secret, pending):
        raise TwoFactorStateError("no matching two-factor setup in progress", field="secret")

    settings = get_settings()
    codes = generate_backup_codes(settings.auth_two_factor_backup_code_count)
    with repo.store_guard(db):
        previous = _current_record(db, auth_id)
        if previous is not None:
            db.delete(previous)
            # 先删后插，避免 auth_id 唯一约束冲突。
            db.flush()
        db.add(
            TwoFactorAuth(
                auth_id=auth_id,
                secret=pending,
                backup_codes=[digest_token(code) for code in codes],
                enabled_at=datetime.now(timezone.utc),
                last_used=None,
            )
        )
        repo.set_two_factor_state(db, auth_id=auth_id, enabled=True, secret=pending)
        db.commit()
    logger.info("two-factor enabled auth_id=%s rotated=%s", auth_id, previous is not None)
    return codes


def get_active_two_factor_secret(db: Session, *, auth_id: UUID) -> str | None:
    """返回当前生效的密钥，供调用方校验动态口令；未启用时返回 None。"""
    with repo.store_guard(db):
        record = _current_record(db, auth_id)
        return record.secret if record is not None else None


def cancel_two_factor_setup(db: Session, *, auth_id: UUID) -> None:
    """放弃进行中的设置或轮换，Auth 上的密钥恢复为生效密钥。"""
    with repo.store_guard(db):
        record = _current_record(db, auth_id)
        if record is None:
            repo.set_two_factor_state(db, auth_id=auth_id, enabled=False, secret=None)
        else:
            repo.set_two_factor_state(db, auth_id=auth_id, enabled=True, secret=record.secret)
        db.commit()
    logger.info("two-factor setup cancelled auth_id=%s", auth_id)


def get_two_factor_status(db: Session, *, auth_id: UUID) -> TwoFactorStatusData:
    with repo.store_guard(db):
        record = _current_record(db, auth_id)
        if record is None:
            return TwoFactorStatusData(enabled=False)
        return TwoFactorStatusData(
            enabled=True,
            enabled_at=record.enabled_at,
            last_used=record.last_used,
            backup_codes_remaining=len(record.backup_codes or []),
        )


def record_two_factor_use(db: Session, *, auth_id: UUID) -> None:
    """调用方完成动态口令校验后记录使用时间。"""
    with repo.store_guard(db):
        record = _current_record(db, auth_id)
        if record is None:
            raise TwoFactorStateError("two-factor is not enabled")
        record.last_used = datetime.now(timezone.utc)
        db.commit()


def consume_backup_code(db: Session, *, auth_id: UUID, code: str) -> bool:
    """消费一个备用码；命中后立即移除，重复使用返回 False。"""
    digest = digest_token(_normalize_backup_code(code))
    with repo.store_guard(db):
        record = _current_record(db, auth_id)
        if record is None:
            raise TwoFactorStateError("two-factor is not enabled")
        remaining = list(record.backup_codes or [])
        matched = None
        for stored in remaining:
            if secrets_match(digest, stored):
                matched = stored
        if matched is None:
            db.rollback()
            return False
        remaining.remove(matched)
        # 整体赋值，JSON 列原地修改不会被追踪。
        record.backup_codes = remaining
        record.last_used = datetime.now(timezone.utc)
        db.commit()
    logger.info("backup code consumed auth_id=%s remaining=%s", auth_id, len(remaining))
    return True


def disable_two_factor(db: Session, *, auth_id: UUID, password: str) -> None:
    """确认口令后停用双因素并删除当前记录。"""
    verify_current_password(db, auth_id=auth_id, password=password)
    with repo.store_guard(db):
        record = _current_record(db, auth_id)
        if record is not None:
            db.delete(record)
        repo.set_two_factor_state(db, auth_id=auth_id, enabled=False, secret=None)
        db.commit()
    logger.info("two-factor disabled auth_id=%s", auth_id)
