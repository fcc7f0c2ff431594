"""模板、系统设置与操作日志模型。"""

from datetime import datetime
from typing import Any
from uuid import UUID

from sqlalchemy import JSON, DateTime, String, Text
from sqlalchemy.orm import Mapped, mapped_column

from esurat_api.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin, utcnow
from esurat_api.models.enums import SettingType, TemplateFileType


class Template(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """公文模板文件。"""

    __tablename__ = "templates"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    # 访问路径，形如 /api/uploads/templates/<file>。
    file_url: Mapped[str] = mapped_column(String(512), nullable=False)
    file_type: Mapped[str] = mapped_column(String(8), nullable=False, default=TemplateFileType.PDF)
    # 上传人，逻辑关联 users.id。
    uploader_id: Mapped[UUID] = mapped_column(nullable=False)


class Setting(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """键值形式的系统设置。"""

    __tablename__ = "settings"

    key: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    # 统一以字符串存储，读取时按 type 转换。
    value: Mapped[str] = mapped_column(Text, nullable=False, default="")
    type: Mapped[str] = mapped_column(String(16), nullable=False, default=SettingType.STRING)


class ActivityLog(Base, UUIDPrimaryKeyMixin):
    """业务操作日志（仅追加）。"""

    __tablename__ = "activity_logs"

    # 动作标识，例如 CREATE/APPROVE/DISPOSITION_CREATED。
    action: Mapped[str] = mapped_column(String(64), nullable=False, index=True)
    description: Mapped[str] = mapped_column(Text, nullable=False)
    # 操作人，逻辑关联 users.id。
    user_id: Mapped[UUID | None] = mapped_column(index=True)
    # 相关公文，逻辑关联 letters.id。
    letter_id: Mapped[UUID | None] = mapped_column(index=True)
    # 附加上下文。
    metadata_json: Mapped[dict[str, Any] | None] = mapped_column("metadata", JSON)
    # 客户端 IP。
    ip: Mapped[str | None] = mapped_column(String(64))
    # 客户端 User-Agent。
    user_agent: Mapped[str | None] = mapped_column(Text)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), default=utcnow, nullable=False
    )
