"""口令处理原语。

只负责盐值生成、口令派生与恒定时间比较，不感知存储与传输。
"""

import base64
import hashlib
import hmac
import logging
import secrets

from idcore.core.config import get_settings
from idcore.core.errors import ComparisonFailure

logger = logging.getLogger("idcore")


def generate_salt() -> str:
    """生成随机盐值（默认 64 字节），以 base64 文本返回。"""
    settings = get_settings()
    # 熵源异常直接上抛，不回退到弱随机源。
    raw = secrets.token_bytes(settings.auth_salt_bytes)
    return base64.b64encode(raw).decode("ascii")


def hash_password(password: str, salt: str) -> str:
    """使用 PBKDF2 派生口令哈希；相同 (password, salt) 输出恒定。"""
    settings = get_settings()
    digest = hashlib.pbkdf2_hmac(
        settings.auth_password_hash_algorithm,
        password.encode("utf-8"),
        salt.encode("utf-8"),
        settings.auth_password_hash_iterations,
        dklen=settings.auth_password_hash_length,
    )
    return base64.b64encode(digest).decode("ascii")


def _constant_time_equals(candidate_hash: str, stored_hash: str) -> bool:
    try:
        candidate = candidate_hash.encode("ascii")
        stored = stored_hash.encode("ascii")
    except (AttributeError, UnicodeEncodeError) as exc:
        raise ComparisonFailure() from exc
    # 长度不同时 compare_digest 仍按 stored 长度完整遍历后返回 False。
    return hmac.compare_digest(candidate, stored)


def verify_password(candidate_hash: str, stored_hash: str) -> bool:
    """恒定时间比较两个哈希；比较过程出现任何故障都按不匹配处理。"""
    try:
        return _constant_time_equals(candidate_hash, stored_hash)
    except ComparisonFailure:
        logger.warning("password hash comparison failed, treated as invalid credential")
        return False


def check_password(password: str, salt: str, stored_hash: str) -> bool:
    """用存量盐值派生候选哈希并与存量哈希比较。"""
    return verify_password(hash_password(password, salt), stored_hash)


def generate_opaque_token(nbytes: int = 32) -> str:
    """生成一次性不透明令牌（URL 安全）。"""
    return secrets.token_urlsafe(nbytes)


def digest_token(token: str) -> str:
    """一次性令牌落库前的摘要，库中不保存明文。"""
    return hashlib.sha256(token.encode("utf-8")).hexdigest()


def secrets_match(candidate: str, expected: str) -> bool:
    """恒定时间比较一次性秘密（双因素密钥等），故障同样按不匹配处理。"""
    return verify_password(candidate, expected)
