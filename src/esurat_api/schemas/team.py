"""团队与成员管理结构。"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from esurat_api.models.enums import TeamMemberRole
from esurat_api.schemas.common import BaseSchema, optional_text, required_text


class TeamCreateRequest(BaseModel):
    name: str = Field(description="团队名，全局唯一。", examples=["Tim Pemberitaan"])
    description: str | None = Field(default=None, description="团队说明。")

    @field_validator("name")
    @classmethod
    def _name(cls, value: str) -> str:
        return required_text(value, "Nama tim harus diisi", max_length=128)

    @field_validator("description")
    @classmethod
    def _description(cls, value: str | None) -> str | None:
        return optional_text(value)


class TeamUpdateRequest(BaseModel):
    """未提供的字段保持不变。"""

    name: str | None = Field(default=None, description="团队名。")
    description: str | None = Field(default=None, description="团队说明。")
    is_active: bool | None = Field(default=None, description="是否启用。")

    @field_validator("name")
    @classmethod
    def _name(cls, value: str | None) -> str | None:
        return None if value is None else required_text(value, "Nama tim harus diisi", max_length=128)

    @field_validator("description")
    @classmethod
    def _description(cls, value: str | None) -> str | None:
        return optional_text(value)


class TeamMemberAddRequest(BaseModel):
    user_id: UUID = Field(description="加入团队的用户 ID。")
    role: TeamMemberRole = Field(default=TeamMemberRole.MEMBER, description="团队内角色。")


class TeamMemberRoleRequest(BaseModel):
    role: TeamMemberRole = Field(description="新的团队内角色。")


class TeamMemberData(BaseSchema):
    user_id: UUID = Field(description="用户 ID。")
    name: str = Field(description="展示名。")
    email: str = Field(description="邮箱。")
    is_active: bool = Field(description="账号是否启用。")
    role: TeamMemberRole = Field(description="团队内角色。")
    joined_at: datetime = Field(description="加入时间。")


class TeamData(BaseSchema):
    """团队详情，成员按加入时间排序。"""

    id: UUID = Field(description="团队 ID。")
    name: str = Field(description="团队名。")
    description: str | None = Field(default=None, description="团队说明。")
    is_active: bool = Field(description="是否启用。")
    member_count: int = Field(default=0, description="成员数。")
    members: list[TeamMemberData] = Field(default_factory=list, description="成员列表。")


class TeamCandidateData(BaseSchema):
    id: UUID = Field(description="用户 ID。")
    name: str = Field(description="展示名。")
    email: str = Field(description="邮箱。")
