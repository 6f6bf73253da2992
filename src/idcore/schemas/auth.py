"""注册、登录与口令重置的请求与视图结构。

视图结构只包含对外可见字段，口令哈希、盐值与双因素密钥不会出现在任何视图中。
"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from idcore.core.validation import (
    EMAIL_PATTERN,
    validate_email,
    validate_identifier,
    validate_password_strength,
    validate_username,
)
from idcore.schemas.common import BaseSchema
from idcore.schemas.profile import UserProfileData


class AuthRegisterRequest(BaseModel):
    """本地账号注册请求。"""

    email: str = Field(
        min_length=5,
        max_length=256,
        pattern=EMAIL_PATTERN.pattern,
        description="登录邮箱。",
        examples=["alice@example.com"],
    )
    username: str = Field(min_length=3, max_length=30, description="用户名。", examples=["alice01"])
    password: str = Field(min_length=8, max_length=128, description="登录密码。", examples=["Abcdef12"])

    @field_validator("email")
    @classmethod
    def check_email(cls, value: str) -> str:
        return validate_email(value)

    @field_validator("username")
    @classmethod
    def check_username(cls, value: str) -> str:
        return validate_username(value)

    @field_validator("password")
    @classmethod
    def check_password(cls, value: str) -> str:
        return validate_password_strength(value)


class AuthLoginRequest(BaseModel):
    """邮箱或用户名登录请求。"""

    identifier: str = Field(min_length=1, max_length=256, description="邮箱或用户名。", examples=["alice01"])
    password: str = Field(min_length=8, max_length=128, description="登录密码。")

    @field_validator("identifier")
    @classmethod
    def check_identifier(cls, value: str) -> str:
        return validate_identifier(value)


class PasswordResetRequest(BaseModel):
    """申请口令重置。"""

    email: str = Field(min_length=5, max_length=256, pattern=EMAIL_PATTERN.pattern, description="账号邮箱。")


class PasswordResetConfirmRequest(BaseModel):
    """使用重置令牌设置新口令。"""

    token: str = Field(min_length=1, max_length=256, description="重置令牌。")
    new_password: str = Field(min_length=8, max_length=128, description="新口令。")

    @field_validator("new_password")
    @classmethod
    def check_new_password(cls, value: str) -> str:
        return validate_password_strength(value)


class AuthPublicData(BaseSchema):
    """对外身份视图，不含任何凭据材料。"""

    id: UUID = Field(description="身份 ID。")
    email: str = Field(description="登录邮箱。")
    username: str = Field(description="用户名。")
    email_verified: bool = Field(description="邮箱是否已验证。")
    is_active: bool = Field(description="账号是否可用。")
    two_factor_enabled: bool = Field(description="是否已启用双因素。")
    has_password: bool = Field(description="是否设置了本地口令。")
    oauth_providers: list[str] = Field(default_factory=list, description="已关联的第三方提供方。")
    last_login: datetime | None = Field(default=None, description="最近登录时间。")
    password_changed_at: datetime | None = Field(default=None, description="最近修改口令时间。")
    created_at: datetime | None = None
    updated_at: datetime | None = None


class IdentityData(BaseSchema):
    """身份 + 资料组合视图。"""

    auth: AuthPublicData
    profile: UserProfileData

    @property
    def id(self) -> UUID:
        return self.auth.id

    @property
    def username(self) -> str:
        return self.auth.username


class AuthLoginData(BaseSchema):
    """登录结果；令牌签发由上层负责。"""

    identity: IdentityData
    two_factor_required: bool = Field(description="是否还需完成双因素校验。")


class PasswordResetRequestedData(BaseSchema):
    accepted: bool = Field(description="请求已受理；邮箱不存在时同样返回 true。")
    expires_at: datetime | None = Field(default=None, description="令牌过期时间（仅调试环境返回）。")
    reset_token: str | None = Field(default=None, description="重置令牌（仅调试环境返回）。")


class PasswordResetDoneData(BaseSchema):
    reset: bool = Field(description="口令是否已重置。")


class TwoFactorStatusData(BaseSchema):
    """双因素状态视图，不含密钥与备用码。"""

    enabled: bool
    enabled_at: datetime | None = None
    last_used: datetime | None = None
    backup_codes_remaining: int = 0
