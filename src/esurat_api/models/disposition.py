"""批示模型。"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import Boolean, DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from esurat_api.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from esurat_api.models.enums import DispositionStatus, DispositionUrgency, RecipientStatus


class Disposition(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """针对已签署公文的批示单。"""

    __tablename__ = "dispositions"

    # 逻辑关联 letters.id。
    letter_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 批示编号，登记后全局唯一；创建时为空。
    number: Mapped[str | None] = mapped_column(String(64), unique=True)
    # 发起人，逻辑关联 users.id。
    from_user_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    urgency: Mapped[str] = mapped_column(String(16), nullable=False, default=DispositionUrgency.BIASA)
    notes: Mapped[str | None] = mapped_column(Text)
    status: Mapped[str] = mapped_column(
        String(32), nullable=False, default=DispositionStatus.PENDING_NUMBER, index=True
    )
    # 系统生成的批示单 PDF。
    file_draft: Mapped[str | None] = mapped_column(String(512))
    # 发起人上传的签署版。
    file_signed: Mapped[str | None] = mapped_column(String(512))
    signed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class DispositionInstruction(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """批示意见选项，例如“请阅处”。"""

    __tablename__ = "disposition_instructions"

    name: Mapped[str] = mapped_column(String(128), nullable=False, unique=True)
    sort_order: Mapped[int] = mapped_column(Integer, nullable=False, default=0)
    is_active: Mapped[bool] = mapped_column(Boolean, nullable=False, default=True)


class DispositionRecipient(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """批示接收人及其处理进度。"""

    __tablename__ = "disposition_recipients"
    __table_args__ = (UniqueConstraint("disposition_id", "user_id", name="uk_disposition_recipient"),)

    disposition_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    user_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=RecipientStatus.PENDING)
    read_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    completed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    # 接收人办结时的回复。
    response: Mapped[str | None] = mapped_column(Text)


class DispositionInstructionLink(Base, UUIDPrimaryKeyMixin):
    """批示单勾选的意见。"""

    __tablename__ = "disposition_instruction_links"
    __table_args__ = (
        UniqueConstraint("disposition_id", "instruction_id", name="uk_disposition_instruction"),
    )

    disposition_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    instruction_id: Mapped[UUID] = mapped_column(nullable=False)
