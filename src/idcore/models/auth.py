"""认证身份相关模型。"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING
from uuid import UUID

from sqlalchemy import JSON, Boolean, CheckConstraint, DateTime, ForeignKey, String, Text, UniqueConstraint
from sqlalchemy.dialects.postgresql import JSONB
from sqlalchemy.orm import Mapped, mapped_column, relationship

from idcore.models.base import Base, SoftDeleteMixin, TimestampMixin, UUIDPrimaryKeyMixin

if TYPE_CHECKING:
    from idcore.models.profile import UserProfile

JSONVariant = JSON().with_variant(JSONB(), "postgresql")


class Auth(Base, UUIDPrimaryKeyMixin, TimestampMixin, SoftDeleteMixin):
    """凭据身份根实体，资料、重置令牌、双因素记录均归属于它。"""

    __tablename__ = "auth"
    __table_args__ = (
        # 口令哈希与盐值必须成对出现；仅第三方登录账号两者同时为空。
        CheckConstraint(
            "(password_hash IS NULL) = (password_salt IS NULL)",
            name="password_pair",
        ),
    )

    # 规范化（小写）后的邮箱，全局唯一。
    email: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    # 登录用户名，区分大小写，全局唯一。
    username: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    password_hash: Mapped[str | None] = mapped_column(Text)
    password_salt: Mapped[str | None] = mapped_column(Text)

    email_verified: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)
    two_factor_enabled: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)
    # 仅在双因素已启用或设置流程进行中时有值。
    two_factor_secret: Mapped[str | None] = mapped_column(Text)

    # 以下时间由服务层维护，不接受客户端写入。
    last_login: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    password_changed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    profile: Mapped[UserProfile | None] = relationship(
        back_populates="auth",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    oauth_identities: Mapped[list[OAuthIdentity]] = relationship(
        back_populates="auth",
        cascade="all, delete-orphan",
        passive_deletes=True,
        order_by="OAuthIdentity.provider",
    )
    password_resets: Mapped[list[PasswordReset]] = relationship(
        back_populates="auth",
        cascade="all, delete-orphan",
        passive_deletes=True,
    )
    two_factor: Mapped[TwoFactorAuth | None] = relationship(
        back_populates="auth",
        uselist=False,
        cascade="all, delete-orphan",
        passive_deletes=True,
    )


class OAuthIdentity(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """第三方身份关联，每个提供方下的主体 ID 全局唯一。"""

    __tablename__ = "auth_oauth_identities"
    __table_args__ = (
        UniqueConstraint("provider", "provider_id", name="uk_oauth_provider_subject"),
        # 每个账号在同一提供方下至多关联一个身份。
        UniqueConstraint("auth_id", "provider", name="uk_oauth_auth_provider"),
    )

    auth_id: Mapped[UUID] = mapped_column(ForeignKey("auth.id", ondelete="CASCADE"), nullable=False, index=True)
    # 提供方标识（github/google/discord）。
    provider: Mapped[str] = mapped_column(String(32), nullable=False)
    # 提供方侧的用户 ID。
    provider_id: Mapped[str] = mapped_column(String(256), nullable=False)

    auth: Mapped[Auth] = relationship(back_populates="oauth_identities")


class PasswordReset(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """口令重置令牌记录，只会从未使用变为已使用，过期后不再恢复。"""

    __tablename__ = "password_resets"

    auth_id: Mapped[UUID] = mapped_column(ForeignKey("auth.id", ondelete="CASCADE"), nullable=False, index=True)
    # 令牌摘要，明文只在签发时返回一次。
    token: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    expires_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    used: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)

    auth: Mapped[Auth] = relationship(back_populates="password_resets")


class TwoFactorAuth(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """当前生效的双因素记录，轮换密钥时整行替换。"""

    __tablename__ = "two_factor_auth"

    auth_id: Mapped[UUID] = mapped_column(
        ForeignKey("auth.id", ondelete="CASCADE"),
        nullable=False,
        unique=True,
    )
    secret: Mapped[str] = mapped_column(Text, nullable=False)
    # 备用码摘要列表，每个只能使用一次。
    backup_codes: Mapped[list[str] | None] = mapped_column(JSONVariant)
    enabled_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    last_used: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))

    auth: Mapped[Auth] = relationship(back_populates="two_factor")
