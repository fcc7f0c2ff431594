"""系统设置结构。"""

from typing import Any

from pydantic import BaseModel, Field

from esurat_api.schemas.common import BaseSchema
from esurat_api.services.system_settings import SystemSettings


class SettingsUpdateRequest(BaseModel):
    """按 key 批量更新设置，例如 {"values": {"qr.default_size": 120}}。"""

    values: dict[str, Any] = Field(min_length=1, description="待更新的设置键值。")


class WhatsAppSettingsRequest(BaseModel):
    """消息网关配置。"""

    api_url: str = Field(default="", description="网关地址。")
    session: str = Field(default="default", description="会话名。")
    api_key: str = Field(default="", description="网关密钥。")


class SettingsData(BaseSchema):
    settings: SystemSettings = Field(description="当前类型化设置。")
    changed_keys: list[str] = Field(default_factory=list, description="本次实际变更的键。")
