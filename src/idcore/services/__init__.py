"""服务层能力导出集合。"""

from idcore.services.credential_repository import (
    NewCredential,
    StoredCredential,
    create_identity,
    find_identity,
    find_identity_by_id,
)
from idcore.services.local_auth import (
    LoginResult,
    authenticate,
    change_password,
    link_oauth_provider,
    register,
    register_oauth,
)
from idcore.services.password_reset import confirm_password_reset, request_password_reset
from idcore.services.two_factor import (
    begin_two_factor_setup,
    cancel_two_factor_setup,
    confirm_two_factor_setup,
    consume_backup_code,
    disable_two_factor,
    get_active_two_factor_secret,
    get_two_factor_status,
    record_two_factor_use,
)

__all__ = [
    "NewCredential",
    "StoredCredential",
    "create_identity",
    "find_identity",
    "find_identity_by_id",
    "LoginResult",
    "authenticate",
    "change_password",
    "link_oauth_provider",
    "register",
    "register_oauth",
    "request_password_reset",
    "confirm_password_reset",
    "begin_two_factor_setup",
    "cancel_two_factor_setup",
    "confirm_two_factor_setup",
    "consume_backup_code",
    "disable_two_factor",
    "get_active_two_factor_secret",
    "get_two_factor_status",
    "record_two_factor_use",
]
