"""全局通用结构。

用于定义统一响应包裹结构，便于在线接口文档展示与联调。
"""

from typing import Any, Generic, TypeVar
from uuid import UUID

from pydantic import BaseModel, ConfigDict, Field


class BaseSchema(BaseModel):
    """基础结构，开启对象映射能力。"""

    model_config = ConfigDict(from_attributes=True)


class ErrorPayload(BaseSchema):
    """错误主体。"""

    code: str = Field(description="机器可识别错误码。")
    message: str = Field(description="面向用户的错误信息（印尼语）。")
    details: dict[str, Any] = Field(default_factory=dict, description="可选扩展错误细节。")


class ErrorResponse(BaseSchema):
    """统一错误响应。"""

    success: bool = Field(default=False, description="固定为 false。")
    request_id: str | None = Field(description="服务端生成的请求追踪 ID。")
    error: ErrorPayload = Field(description="错误主体。")


T = TypeVar("T")


class SuccessResponse(BaseSchema, Generic[T]):
    """统一成功响应。"""

    success: bool = Field(default=True, description="固定为 true。")
    request_id: str | None = Field(description="服务端生成的请求追踪 ID。")
    data: T = Field(description="业务返回数据主体。")
    meta: dict[str, Any] = Field(default_factory=dict, description="可选扩展元信息。")


class HealthStatusData(BaseSchema):
    status: str = Field(description="探针状态。")


class DeletedData(BaseSchema):
    """删除类接口返回体。"""

    id: UUID = Field(description="被删除对象 ID。")
    deleted: bool = Field(default=True, description="是否已删除。")


def required_text(value: str | None, message: str, *, max_length: int | None = None) -> str:
    """去除首尾空白后校验非空与长度，失败时以 message 抛出。"""
    text = (value or "").strip()
    if not text:
        raise ValueError(message)
    if max_length is not None and len(text) > max_length:
        raise ValueError(f"Maksimal {max_length} karakter")
    return text


def optional_text(value: str | None) -> str | None:
    """空白字符串视为未填写。"""
    if value is None:
        return None
    text = value.strip()
    return text or None
