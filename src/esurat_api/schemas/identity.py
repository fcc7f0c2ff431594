"""用户、角色与权限管理结构。"""

from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from esurat_api.schemas.common import BaseSchema, optional_text, required_text


class UserCreateRequest(BaseModel):
    """创建用户请求体。"""

    name: str = Field(description="展示名。", examples=["Budi Santoso"])
    email: str = Field(description="登录邮箱，全局唯一。", examples=["budi@esurat.local"])
    password: str = Field(description="初始口令。")
    phone_number: str | None = Field(default=None, description="手机号。")
    is_active: bool = Field(default=True, description="是否启用。")
    role_ids: list[UUID] = Field(default_factory=list, description="分配的角色 ID。")

    @field_validator("name")
    @classmethod
    def _name(cls, value: str) -> str:
        return required_text(value, "Nama harus diisi", max_length=128)

    @field_validator("email")
    @classmethod
    def _email(cls, value: str) -> str:
        text = required_text(value, "Email harus diisi", max_length=256).lower()
        if "@" not in text:
            raise ValueError("Format email tidak valid")
        return text

    @field_validator("password")
    @classmethod
    def _password(cls, value: str) -> str:
        if len(value or "") < 6:
            raise ValueError("Password minimal 6 karakter")
        return value

    @field_validator("phone_number")
    @classmethod
    def _phone(cls, value: str | None) -> str | None:
        return optional_text(value)


class UserUpdateRequest(BaseModel):
    """更新用户请求体，未提供的字段保持不变；role_ids 提供时整体替换。"""

    name: str | None = Field(default=None, description="展示名。")
    email: str | None = Field(default=None, description="登录邮箱。")
    password: str | None = Field(default=None, description="新口令，留空表示不修改。")
    phone_number: str | None = Field(default=None, description="手机号。")
    is_active: bool | None = Field(default=None, description="是否启用。")
    role_ids: list[UUID] | None = Field(default=None, description="替换后的角色 ID 列表。")

    @field_validator("name")
    @classmethod
    def _name(cls, value: str | None) -> str | None:
        return None if value is None else required_text(value, "Nama harus diisi", max_length=128)

    @field_validator("email")
    @classmethod
    def _email(cls, value: str | None) -> str | None:
        if value is None:
            return None
        text = required_text(value, "Email harus diisi", max_length=256).lower()
        if "@" not in text:
            raise ValueError("Format email tidak valid")
        return text

    @field_validator("password")
    @classmethod
    def _password(cls, value: str | None) -> str | None:
        if not value:
            return None
        if len(value) < 6:
            raise ValueError("Password minimal 6 karakter")
        return value


class UserRoleData(BaseSchema):
    id: UUID = Field(description="角色 ID。")
    name: str = Field(description="角色名。")


class UserData(BaseSchema):
    """用户详情。"""

    id: UUID = Field(description="用户 ID。")
    name: str = Field(description="展示名。")
    email: str = Field(description="邮箱。")
    phone_number: str | None = Field(default=None, description="手机号。")
    is_active: bool = Field(description="是否启用。")
    roles: list[UserRoleData] = Field(default_factory=list, description="角色列表。")


class RoleCreateRequest(BaseModel):
    """创建角色请求体。"""

    name: str = Field(description="角色名，全局唯一。")
    description: str | None = Field(default=None, description="角色说明。")
    permission_ids: list[UUID] = Field(default_factory=list, description="授予的权限点 ID。")

    @field_validator("name")
    @classmethod
    def _name(cls, value: str) -> str:
        return required_text(value, "Nama role harus diisi", max_length=64)

    @field_validator("description")
    @classmethod
    def _description(cls, value: str | None) -> str | None:
        return optional_text(value)


class RoleUpdateRequest(BaseModel):
    """更新角色请求体；permission_ids 提供时整体替换。"""

    name: str | None = Field(default=None, description="角色名。")
    description: str | None = Field(default=None, description="角色说明。")
    permission_ids: list[UUID] | None = Field(default=None, description="替换后的权限点 ID 列表。")

    @field_validator("name")
    @classmethod
    def _name(cls, value: str | None) -> str | None:
        return None if value is None else required_text(value, "Nama role harus diisi", max_length=64)


class PermissionData(BaseSchema):
    id: UUID = Field(description="权限点 ID。")
    name: str = Field(description="权限标识。")
    description: str | None = Field(default=None, description="说明。")
    module: str = Field(description="所属模块。")


class RoleData(BaseSchema):
    """角色详情。"""

    id: UUID = Field(description="角色 ID。")
    name: str = Field(description="角色名。")
    description: str | None = Field(default=None, description="角色说明。")
    is_system: bool = Field(description="是否系统内置。")
    user_count: int = Field(default=0, description="拥有该角色的用户数。")
    permissions: list[PermissionData] = Field(default_factory=list, description="已授予的权限点。")


class UserOptionData(BaseSchema):
    """审批人、签署人下拉选项。"""

    id: UUID = Field(description="用户 ID。")
    name: str = Field(description="展示名。")
    email: str = Field(description="邮箱。")
    role: str = Field(description="首个角色名，无角色时为 User。")
