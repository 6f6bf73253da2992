"""领域枚举定义。"""

from enum import StrEnum


class OAuthProvider(StrEnum):
    """支持关联的第三方身份提供方。"""

    GITHUB = "github"
    GOOGLE = "google"
    DISCORD = "discord"


class Theme(StrEnum):
    """界面主题偏好。"""

    LIGHT = "light"
    DARK = "dark"
    AUTO = "auto"  # 跟随系统。


class ProfileVisibility(StrEnum):
    """资料可见范围。"""

    PUBLIC = "public"  # 所有人可见。
    PRIVATE = "private"  # 仅本人可见。
    FRIENDS = "friends"  # 仅好友可见。
