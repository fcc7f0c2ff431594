"""分类、档案编码与模板结构。"""

import re
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from esurat_api.schemas.common import BaseSchema, optional_text, required_text

HEX_COLOR_PATTERN = re.compile(r"^#[0-9A-F]{6}$", re.IGNORECASE)
DEFAULT_CATEGORY_COLOR = "#3B82F6"


class CategoryRequest(BaseModel):
    """创建或更新分类请求体。"""

    name: str = Field(description="分类名称，1-100 字符。", examples=["Surat Keputusan"])
    code: str = Field(description="分类代码，1-20 字符。", examples=["SK"])
    description: str | None = Field(default=None, description="说明。")
    color: str = Field(default=DEFAULT_CATEGORY_COLOR, description="HEX 颜色。", examples=["#3B82F6"])

    @field_validator("name")
    @classmethod
    def _name(cls, value: str) -> str:
        return required_text(value, "Nama kategori harus diisi", max_length=100)

    @field_validator("code")
    @classmethod
    def _code(cls, value: str) -> str:
        return required_text(value, "Kode kategori harus diisi", max_length=20)

    @field_validator("description")
    @classmethod
    def _description(cls, value: str | None) -> str | None:
        return optional_text(value)

    @field_validator("color")
    @classmethod
    def _color(cls, value: str) -> str:
        if not HEX_COLOR_PATTERN.match(value or ""):
            raise ValueError("Format warna harus HEX (contoh: #FF0000)")
        return value


class CategoryData(BaseSchema):
    id: UUID = Field(description="分类 ID。")
    name: str = Field(description="名称。")
    code: str = Field(description="代码。")
    description: str | None = Field(default=None, description="说明。")
    color: str = Field(description="HEX 颜色。")
    letter_count: int = Field(default=0, description="引用该分类的公文数。")


class CategoryListData(BaseSchema):
    items: list[CategoryData] = Field(description="分类列表。")
    can_manage: bool = Field(description="当前用户是否可维护分类。")


class ArchiveCodeRequest(BaseModel):
    """创建或更新档案编码请求体。"""

    code: str = Field(description="编码，1-20 字符。", examples=["000.1"])
    name: str | None = Field(default=None, description="名称。")
    description: str | None = Field(default=None, description="说明。")

    @field_validator("code")
    @classmethod
    def _code(cls, value: str) -> str:
        return required_text(value, "Kode harus diisi", max_length=20)

    @field_validator("name", "description")
    @classmethod
    def _optional(cls, value: str | None) -> str | None:
        return optional_text(value)


class ArchiveCodeData(BaseSchema):
    id: UUID = Field(description="编码 ID。")
    code: str = Field(description="编码。")
    name: str | None = Field(default=None, description="名称。")
    description: str | None = Field(default=None, description="说明。")


class ArchiveCodeListData(BaseSchema):
    items: list[ArchiveCodeData] = Field(description="编码列表。")
    can_manage: bool = Field(description="当前用户是否可维护编码。")


class TemplateData(BaseSchema):
    id: UUID = Field(description="模板 ID。")
    title: str = Field(description="标题。")
    description: str | None = Field(default=None, description="说明。")
    file_url: str = Field(description="文件访问路径。")
    file_type: str = Field(description="PDF 或 DOCX。")
    uploader_id: UUID = Field(description="上传人 ID。")
    uploader_name: str | None = Field(default=None, description="上传人姓名。")


class TemplateListData(BaseSchema):
    items: list[TemplateData] = Field(description="模板列表。")
    can_manage: bool = Field(description="当前用户是否可维护模板。")
