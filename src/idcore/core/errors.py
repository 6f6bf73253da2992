"""凭据生命周期错误分类。

所有业务失败都携带 `kind` 与可选 `field`，传输层据此选择状态码与文案，
无需匹配错误字符串。
"""

from enum import StrEnum


class ErrorKind(StrEnum):
    """错误类别。"""

    USERNAME_TAKEN = "username_taken"  # 用户名已被占用。
    EMAIL_TAKEN = "email_taken"  # 邮箱已被占用。
    DUPLICATE_IDENTITY = "duplicate_identity"  # 存储层唯一约束冲突（翻译前）。
    STORE_UNAVAILABLE = "store_unavailable"  # 存储暂时不可用，可由调用方退避重试。
    INVALID_CREDENTIAL = "invalid_credential"  # 凭据校验失败。
    COMPARISON_FAILURE = "comparison_failure"  # 恒定时间比较内部故障，按校验失败处理。
    IDENTITY_NOT_FOUND = "identity_not_found"  # 身份不存在或已逻辑删除。
    RESET_TOKEN_INVALID = "reset_token_invalid"  # 重置令牌无效、已使用或已过期。
    TWO_FACTOR_STATE = "two_factor_state"  # 双因素状态不允许当前操作。


class CredentialError(Exception):
    """凭据核心错误基类。"""

    kind: ErrorKind = ErrorKind.INVALID_CREDENTIAL
    default_message = "credential error"

    def __init__(self, message: str | None = None, *, field: str | None = None) -> None:
        self.message = message or self.default_message
        self.field = field
        super().__init__(self.message)

    def as_dict(self) -> dict[str, str | None]:
        return {"kind": str(self.kind), "field": self.field, "message": self.message}


class UsernameTaken(CredentialError):
    kind = ErrorKind.USERNAME_TAKEN
    default_message = "username already exists"

    def __init__(self, message: str | None = None, *, field: str | None = "username") -> None:
        super().__init__(message, field=field)


class EmailTaken(CredentialError):
    kind = ErrorKind.EMAIL_TAKEN
    default_message = "email already exists"

    def __init__(self, message: str | None = None, *, field: str | None = "email") -> None:
        super().__init__(message, field=field)


class DuplicateIdentity(CredentialError):
    """唯一约束冲突，`field` 为约束名推断出的字段提示，可能为空。"""

    kind = ErrorKind.DUPLICATE_IDENTITY
    default_message = "identity already exists"


class StoreUnavailable(CredentialError):
    kind = ErrorKind.STORE_UNAVAILABLE
    default_message = "credential store unavailable"


class InvalidCredential(CredentialError):
    kind = ErrorKind.INVALID_CREDENTIAL
    default_message = "invalid credentials"


class ComparisonFailure(InvalidCredential):
    """比较过程内部故障；继承 InvalidCredential，对调用方始终表现为校验失败。"""

    kind = ErrorKind.COMPARISON_FAILURE
    default_message = "invalid credentials"


class IdentityNotFound(CredentialError):
    kind = ErrorKind.IDENTITY_NOT_FOUND
    default_message = "identity not found"


class ResetTokenInvalid(CredentialError):
    kind = ErrorKind.RESET_TOKEN_INVALID
    default_message = "reset token is invalid or expired"

    def __init__(self, message: str | None = None, *, field: str | None = "token") -> None:
        super().__init__(message, field=field)


class TwoFactorStateError(CredentialError):
    kind = ErrorKind.TWO_FACTOR_STATE
    default_message = "two-factor state does not allow this operation"
