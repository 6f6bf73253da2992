"""ORM 模型导出集合。"""

from idcore.models.auth import Auth, OAuthIdentity, PasswordReset, TwoFactorAuth
from idcore.models.profile import UserProfile

__all__ = [
    "Auth",
    "OAuthIdentity",
    "PasswordReset",
    "TwoFactorAuth",
    "UserProfile",
]
