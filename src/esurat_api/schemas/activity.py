"""操作日志查询结构。"""

from datetime import datetime
from typing import Any
from uuid import UUID

from pydantic import Field

from esurat_api.schemas.common import BaseSchema


class ActivityUserData(BaseSchema):
    name: str
    email: str


class ActivityLogData(BaseSchema):
    id: UUID = Field(description="日志 ID。")
    action: str = Field(description="动作标识。")
    description: str = Field(description="动作说明。")
    user: ActivityUserData | None = Field(default=None, description="操作人，已删除或系统动作为空。")
    letter_id: UUID | None = Field(default=None, description="相关公文。")
    metadata: dict[str, Any] | None = Field(default=None, description="附加上下文。")
    ip: str | None = Field(default=None, description="客户端 IP。")
    created_at: datetime = Field(description="记录时间。")
