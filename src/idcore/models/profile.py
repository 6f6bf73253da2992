"""用户公开资料模型。"""

from __future__ import annotations

from typing import TYPE_CHECKING, Any
from uuid import UUID

from sqlalchemy import ForeignKey, String, Text
from sqlalchemy.orm import Mapped, mapped_column, relationship

from idcore.models.auth import JSONVariant
from idcore.models.base import Base, SoftDeleteMixin, TimestampMixin, UUIDPrimaryKeyMixin
from idcore.models.enums import ProfileVisibility, Theme

if TYPE_CHECKING:
    from idcore.models.auth import Auth


def default_social_links() -> dict[str, Any]:
    """社交链接默认结构。"""
    return {
        "website": None,
        "github": None,
        "linkedin": None,
        "twitter": None,
        "instagram": None,
        "youtube": None,
        "custom": [],
    }


class UserProfile(Base, UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin):
    """公开资料，与 Auth 一对一，随 Auth 一起创建与删除。"""

    __tablename__ = "user_profiles"

    auth_id: Mapped[UUID] = mapped_column(
        ForeignKey("auth.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    # 创建时从 Auth 复制，便于按用户名查询。
    username: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)

    first_name: Mapped[str | None] = mapped_column(String(128))
    last_name: Mapped[str | None] = mapped_column(String(128))
    bio: Mapped[str | None] = mapped_column(Text)
    avatar_url: Mapped[str | None] = mapped_column(Text)
    cover_url: Mapped[str | None] = mapped_column(Text)
    social_links: Mapped[dict[str, Any] | None] = mapped_column(JSONVariant, default=default_social_links)
    invitation_code: Mapped[str | None] = mapped_column(String(64), unique=True)
    location: Mapped[str | None] = mapped_column(String(128))
    timezone: Mapped[str] = mapped_column(String(64), nullable=False, default="UTC")
    language: Mapped[str] = mapped_column(String(16), nullable=False, default="en")
    theme: Mapped[str] = mapped_column(String(16), nullable=False, default=Theme.LIGHT)
    profile_visibility: Mapped[str] = mapped_column(String(16), nullable=False, default=ProfileVisibility.PUBLIC)

    auth: Mapped[Auth] = relationship(back_populates="profile")
