"""标识符与口令格式校验。

邮箱、用户名、口令的格式规则只在这里定义一次，请求结构统一复用。
"""

import re

USERNAME_MIN_LENGTH = 3
USERNAME_MAX_LENGTH = 30
PASSWORD_MIN_LENGTH = 8

EMAIL_PATTERN = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
_USERNAME_CHARS = re.compile(r"^[a-zA-Z0-9_-]+$")
_USERNAME_EDGE = re.compile(r"^[a-zA-Z0-9](?:.*[a-zA-Z0-9])?$", re.DOTALL)
_PASSWORD_CLASSES = re.compile(r"^(?=.*[a-z])(?=.*[A-Z])(?=.*\d)", re.DOTALL)


def normalize_email(email: str) -> str:
    """规范化邮箱（去空白 + 小写），入库与查询都使用该形式。"""
    return email.strip().lower()


def is_email(identifier: str) -> bool:
    return bool(EMAIL_PATTERN.match(identifier))


def username_problem(username: str) -> str | None:
    """返回用户名不合规的原因，合规时返回 None。"""
    if len(username) < USERNAME_MIN_LENGTH:
        return f"Username must be at least {USERNAME_MIN_LENGTH} characters"
    if len(username) > USERNAME_MAX_LENGTH:
        return f"Username must be at most {USERNAME_MAX_LENGTH} characters"
    if not _USERNAME_CHARS.match(username):
        return "Username can only contain letters, numbers, underscores, and hyphens"
    if not _USERNAME_EDGE.match(username):
        return "Username must start and end with a letter or number"
    return None


def is_username(identifier: str) -> bool:
    return username_problem(identifier) is None


def validate_username(username: str) -> str:
    """校验用户名，不合规时抛出 ValueError。"""
    problem = username_problem(username)
    if problem:
        raise ValueError(problem)
    return username


def validate_email(email: str) -> str:
    """校验并规范化邮箱。"""
    normalized = normalize_email(email)
    if not is_email(normalized):
        raise ValueError("Invalid email address")
    return normalized


def validate_password_strength(password: str) -> str:
    """口令至少 8 位，且同时包含小写字母、大写字母与数字。"""
    if len(password) < PASSWORD_MIN_LENGTH:
        raise ValueError(f"Password must be at least {PASSWORD_MIN_LENGTH} characters")
    if not _PASSWORD_CLASSES.match(password):
        raise ValueError(
            "Password must contain at least one lowercase letter, one uppercase letter, and one number"
        )
    return password


def validate_identifier(identifier: str) -> str:
    """登录标识必须是合法邮箱或合法用户名。"""
    value = identifier.strip()
    if not value:
        raise ValueError("Email or username is required")
    if not (is_email(value) or is_username(value)):
        raise ValueError("Must be a valid email or username")
    return value
