"""认证相关结构。"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field

from esurat_api.schemas.common import BaseSchema


class AuthLoginRequest(BaseModel):
    """登录请求体。"""

    email: str = Field(min_length=3, max_length=256, description="登录邮箱。", examples=["admin@esurat.local"])
    password: str = Field(min_length=1, max_length=128, description="登录口令。")


class AuthUserData(BaseSchema):
    """当前用户信息。"""

    id: UUID = Field(description="用户 ID。")
    name: str = Field(description="展示名。")
    email: str = Field(description="邮箱。")
    roles: list[str] = Field(default_factory=list, description="角色名列表。")
    permissions: list[str] = Field(default_factory=list, description="权限点列表。")


class AuthLoginData(BaseSchema):
    """登录结果。"""

    access_token: str = Field(description="Bearer 访问令牌。")
    token_type: str = Field(default="bearer", description="令牌类型。")
    expires_at: datetime = Field(description="过期时间。")
    user: AuthUserData = Field(description="登录用户信息。")


class AuthLogoutData(BaseSchema):
    """登出结果。"""

    revoked: bool = Field(description="令牌是否已加入黑名单。")
