"""公文、分类、档案编码与审批人模型。"""

from datetime import datetime
from uuid import UUID

from sqlalchemy import DateTime, Float, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from esurat_api.models.base import Base, TimestampMixin, UUIDPrimaryKeyMixin
from esurat_api.models.enums import ApproverStatus, LetterPriority, LetterStatus, SecurityLevel


class LetterCategory(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """公文分类。"""

    __tablename__ = "letter_categories"

    # 分类名称，全局唯一。
    name: Mapped[str] = mapped_column(String(100), nullable=False, unique=True)
    # 分类代码，全局唯一，例如 SK/SP。
    code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    # 分类说明。
    description: Mapped[str | None] = mapped_column(Text)
    # 展示色，#RRGGBB。
    color: Mapped[str] = mapped_column(String(7), nullable=False, default="#3B82F6")


class ArchiveCode(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """档案分类编码。"""

    __tablename__ = "archive_codes"

    # 编码，全局唯一。
    code: Mapped[str] = mapped_column(String(20), nullable=False, unique=True)
    # 可选名称。
    name: Mapped[str | None] = mapped_column(String(255))
    # 可选说明。
    description: Mapped[str | None] = mapped_column(Text)


class Letter(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """公文主体。"""

    __tablename__ = "letters"

    title: Mapped[str] = mapped_column(String(255), nullable=False)
    description: Mapped[str | None] = mapped_column(Text)
    # 公文文号，由创建人录入。
    letter_number: Mapped[str] = mapped_column(String(100), nullable=False, index=True)
    # 逻辑关联 letter_categories.id。
    category_id: Mapped[UUID | None] = mapped_column(index=True)
    priority: Mapped[str] = mapped_column(String(16), nullable=False, default=LetterPriority.NORMAL)
    security_level: Mapped[str] = mapped_column(String(16), nullable=False, default=SecurityLevel.BIASA)
    status: Mapped[str] = mapped_column(String(32), nullable=False, default=LetterStatus.DRAFT, index=True)

    # 原始草稿、盖章版与最终签署版的访问路径。
    file_draft: Mapped[str] = mapped_column(String(512), nullable=False)
    file_stamped: Mapped[str | None] = mapped_column(String(512))
    file_final: Mapped[str | None] = mapped_column(String(512))

    # 验证二维码使用的随机标识。
    qr_hash: Mapped[str] = mapped_column(String(64), nullable=False, unique=True)
    # 二维码位置：页码从 1 开始，坐标为页面宽高比例。
    qr_page: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    qr_x_percent: Mapped[float] = mapped_column(Float, nullable=False, default=0.75)
    qr_y_percent: Mapped[float] = mapped_column(Float, nullable=False, default=0.80)
    qr_size: Mapped[int] = mapped_column(Integer, nullable=False, default=100)
    # 单审批人模式下的草签位置。
    paraf_page: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    paraf_x_percent: Mapped[float] = mapped_column(Float, nullable=False, default=0.75)
    paraf_y_percent: Mapped[float] = mapped_column(Float, nullable=False, default=0.70)
    paraf_size: Mapped[int] = mapped_column(Integer, nullable=False, default=50)

    # 逻辑关联 users.id。
    creator_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 单审批人模式下指定的审批人。
    assigned_approver_id: Mapped[UUID | None] = mapped_column(index=True)
    assigned_signer_id: Mapped[UUID | None] = mapped_column(index=True)
    # 实际审批人与签署人。
    approver_id: Mapped[UUID | None] = mapped_column()
    signer_id: Mapped[UUID | None] = mapped_column()
    rejection_reason: Mapped[str | None] = mapped_column(Text)

    submitted_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
    signed_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))


class LetterApprover(Base, UUIDPrimaryKeyMixin, TimestampMixin):
    """多级审批链中的一个审批人。"""

    __tablename__ = "letter_approvers"
    __table_args__ = (UniqueConstraint("letter_id", "order", name="uk_letter_approver_order"),)

    # 逻辑关联 letters.id。
    letter_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 逻辑关联 users.id。
    user_id: Mapped[UUID] = mapped_column(nullable=False, index=True)
    # 审批顺序，从 1 开始。
    order: Mapped[int] = mapped_column(Integer, nullable=False)
    status: Mapped[str] = mapped_column(String(16), nullable=False, default=ApproverStatus.PENDING)
    # 该审批人的草签位置。
    paraf_page: Mapped[int] = mapped_column(Integer, nullable=False, default=1)
    paraf_x_percent: Mapped[float] = mapped_column(Float, nullable=False, default=0.75)
    paraf_y_percent: Mapped[float] = mapped_column(Float, nullable=False, default=0.70)
    paraf_size: Mapped[int] = mapped_column(Integer, nullable=False, default=50)
    # 驳回理由等备注。
    notes: Mapped[str | None] = mapped_column(Text)
    approved_at: Mapped[datetime | None] = mapped_column(DateTime(timezone=True))
