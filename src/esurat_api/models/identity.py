"""用户、角色、权限与团队模型。"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, DateTime, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from esurat_api.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin, utcnow
from esurat_api.models.enums import TeamMemberRole


class User(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """系统账号。"""

    __tablename__ = "users"

    # 展示名。
    name: Mapped[str] = mapped_column(String(128), nullable=False)
    # 登录邮箱，全局唯一。
    email: Mapped[str] = mapped_column(String(256), nullable=False, unique=True)
    # PBKDF2 口令哈希。
    password_hash: Mapped[str] = mapped_column(String(512), nullable=False)
    # 可选手机号（通知渠道预留）。
    phone_number: Mapped[str | None] = mapped_column(String(32))
    # 停用账号无法登录，也不能作为批示接收人。
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class Role(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """角色。"""

    __tablename__ = "roles"

    # 角色名，全局唯一。
    name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    # 角色说明。
    description: Mapped[str | None] = mapped_column(Text)
    # 系统内置角色不可修改或删除。
    is_system: Mapped[bool] = mapped_column(Boolean, nullable=False, default=False)


class Permission(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """权限点，例如 letter.create。"""

    __tablename__ = "permissions"

    # 权限标识，全局唯一。
    name: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    # 权限说明。
    description: Mapped[str | None] = mapped_column(Text)
    # 所属模块，例如 letter/user/disposition。
    module: Mapped[str] = mapped_column(String(32), nullable=False)


class UserRole(Base, UUIDPrimaryKeyMixin):
    """用户与角色的关联。"""

    __tablename__ = "user_roles"
    __table_args__ = (UniqueConstraint("user_id", "role_id", name="uk_user_role"),)

    # 逻辑关联 users.id。
    user_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 逻辑关联 roles.id。
    role_id: Mapped[UUID] = mapped_column(nullable=False, index=True)


class RolePermission(Base, UUIDPrimaryKeyMixin):
    """角色与权限点的关联。"""

    __tablename__ = "role_permissions"
    __table_args__ = (UniqueConstraint("role_id", "permission_id", name="uk_role_permission"),)

    # 逻辑关联 roles.id。
    role_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 逻辑关联 permissions.id。
    permission_id: Mapped[UUID] = mapped_column(nullable=False, index=True)


class Team(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """工作团队，仅用于组织展示，不参与权限判断。"""

    __tablename__ = "teams"

    # 团队名，全局唯一。
    name: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    description: Mapped[str | None] = mapped_column(Text)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class TeamMember(Base, UUIDPrimaryKeyMixin):
    """团队成员。"""

    __tablename__ = "team_members"
    __table_args__ = (UniqueConstraint("team_id", "user_id", name="uk_team_member"),)

    # 逻辑关联 teams.id。
    team_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 逻辑关联 users.id。
    user_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # LEADER 或 MEMBER。
    role: Mapped[str] = mapped_column(String(16), nullable=False, default=TeamMemberRole.MEMBER)
    joined_at: Mapped[datetime] = mapped_column(DateTime(timezone=True), default=utcnow, nullable=False)
