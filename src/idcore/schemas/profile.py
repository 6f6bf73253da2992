"""用户资料结构。"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import BaseModel, Field

from idcore.models.enums import ProfileVisibility, Theme
from idcore.schemas.common import BaseSchema


class CustomSocialLink(BaseModel):
    name: str = Field(min_length=1, max_length=64)
    url: str = Field(min_length=1, max_length=2048)
    icon: str | None = None


class SocialLinks(BaseModel):
    """社交链接，自定义链接放在 custom 列表中。"""

    website: str | None = None
    github: str | None = None
    linkedin: str | None = None
    twitter: str | None = None
    instagram: str | None = None
    youtube: str | None = None
    custom: list[CustomSocialLink] = Field(default_factory=list)


class UserProfileData(BaseSchema):
    """对外资料视图。"""

    id: UUID = Field(description="资料 ID。")
    auth_id: UUID = Field(description="所属身份 ID。")
    username: str = Field(description="用户名。")
    first_name: str | None = None
    last_name: str | None = None
    bio: str | None = None
    avatar_url: str | None = None
    cover_url: str | None = None
    social_links: dict[str, Any] | None = None
    invitation_code: str | None = None
    location: str | None = None
    timezone: str = "UTC"
    language: str = "en"
    theme: str = Theme.LIGHT
    profile_visibility: str = ProfileVisibility.PUBLIC
    created_at: datetime | None = None
    updated_at: datetime | None = None


class ProfileUpdateRequest(BaseModel):
    """资料更新请求，未传字段保持不变；用户名不可在此修改。"""

    first_name: str | None = Field(default=None, max_length=128)
    last_name: str | None = Field(default=None, max_length=128)
    bio: str | None = Field(default=None, max_length=2000)
    avatar_url: str | None = Field(default=None, max_length=2048)
    cover_url: str | None = Field(default=None, max_length=2048)
    social_links: SocialLinks | None = None
    location: str | None = Field(default=None, max_length=128)
    timezone: str | None = Field(default=None, max_length=64)
    language: str | None = Field(default=None, max_length=16)
    theme: Theme | None = None
    profile_visibility: ProfileVisibility | None = None
