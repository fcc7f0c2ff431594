"""公文相关结构。"""

from datetime import datetime
import json
from uuid import UUID

from pydantic import BaseModel, Field, ValidationError, field_validator

from esurat_api.models.enums import LetterPriority, SecurityLevel
from esurat_api.schemas.common import BaseSchema, optional_text, required_text

MAX_APPROVERS = 8


class ApproverInput(BaseModel):
    """审批链中的单个审批人及其草签位置。"""

    user_id: UUID
    paraf_page: int | None = Field(default=None, ge=1)
    paraf_x_percent: float = Field(default=0.75, ge=0, le=1)
    paraf_y_percent: float = Field(default=0.70, ge=0, le=1)
    paraf_size: int | None = Field(default=None, ge=20, le=100)


def parse_approvers(raw: str | None) -> list[ApproverInput]:
    """解析表单中的 approvers JSON；空值表示不使用多级审批。"""
    if raw is None or not raw.strip():
        return []
    try:
        items = json.loads(raw)
    except json.JSONDecodeError as exc:
        raise ValueError("Format data penyetuju tidak valid") from exc
    if not isinstance(items, list):
        raise ValueError("Format data penyetuju tidak valid")
    if not items:
        raise ValueError("Minimal 1 penyetuju harus dipilih")
    if len(items) > MAX_APPROVERS:
        raise ValueError(f"Maksimal {MAX_APPROVERS} penyetuju")
    try:
        return [ApproverInput.model_validate(item) for item in items]
    except ValidationError as exc:
        raise ValueError("Format data penyetuju tidak valid") from exc


class LetterCreateRequest(BaseModel):
    """创建公文的表单字段（文件单独上传）。"""

    title: str = Field(description="标题。")
    letter_number: str = Field(description="公文文号。")
    description: str | None = Field(default=None, description="摘要说明。")
    category_id: UUID | None = Field(default=None, description="分类 ID。")
    priority: LetterPriority = Field(default=LetterPriority.NORMAL, description="优先级。")
    security_level: SecurityLevel = Field(default=SecurityLevel.BIASA, description="密级。")
    qr_page: int = Field(default=1, ge=1, description="二维码所在页，从 1 开始。")
    qr_x_percent: float = Field(default=0.75, ge=0, le=1, description="二维码中心横向比例。")
    qr_y_percent: float = Field(default=0.80, ge=0, le=1, description="二维码中心纵向比例（自顶部）。")
    qr_size: int | None = Field(default=None, ge=50, le=200, description="二维码边长（pt），缺省取系统设置。")
    paraf_page: int = Field(default=1, ge=1, description="草签所在页。")
    paraf_x_percent: float = Field(default=0.75, ge=0, le=1, description="草签中心横向比例。")
    paraf_y_percent: float = Field(default=0.70, ge=0, le=1, description="草签中心纵向比例。")
    paraf_size: int = Field(default=50, ge=20, le=100, description="草签边长（pt）。")
    approvers: list[ApproverInput] = Field(default_factory=list, description="按顺序排列的审批人，1-8 个。")
    assigned_approver_id: UUID | None = Field(default=None, description="单审批人模式下的审批人。")
    assigned_signer_id: UUID | None = Field(default=None, description="指定签署人。")

    @field_validator("title")
    @classmethod
    def _title(cls, value: str) -> str:
        return required_text(value, "Judul harus diisi", max_length=255)

    @field_validator("letter_number")
    @classmethod
    def _letter_number(cls, value: str) -> str:
        return required_text(value, "Nomor surat harus diisi", max_length=100)

    @field_validator("description")
    @classmethod
    def _description(cls, value: str | None) -> str | None:
        return optional_text(value)

    @field_validator("approvers", mode="before")
    @classmethod
    def _approvers(cls, value: object) -> object:
        if isinstance(value, str) or value is None:
            return parse_approvers(value)
        return value


class LetterApproveRequest(BaseModel):
    """审批请求体。"""

    signature_image: str | None = Field(
        default=None,
        description="可选草签图片，base64 PNG，可带 data:image/png;base64, 前缀。",
    )


class LetterRejectRequest(BaseModel):
    """驳回请求体。"""

    reason: str = Field(default="", description="驳回理由。")

    @field_validator("reason")
    @classmethod
    def _reason(cls, value: str) -> str:
        return required_text(value, "Alasan penolakan harus diisi")


class UserBrief(BaseSchema):
    id: UUID
    name: str


class LetterApproverData(BaseSchema):
    id: UUID
    user: UserBrief | None = None
    order: int
    status: str
    paraf_page: int
    paraf_x_percent: float
    paraf_y_percent: float
    paraf_size: int
    notes: str | None = None
    approved_at: datetime | None = None


class ActivityLogData(BaseSchema):
    id: UUID
    action: str
    description: str
    user: UserBrief | None = None
    created_at: datetime


class CategoryBrief(BaseSchema):
    id: UUID
    name: str
    code: str
    color: str


class LetterData(BaseSchema):
    """公文详情。"""

    id: UUID
    title: str
    description: str | None = None
    letter_number: str
    status: str
    priority: str
    security_level: str
    category: CategoryBrief | None = None
    file_draft: str
    file_stamped: str | None = None
    file_final: str | None = None
    qr_hash: str
    qr_page: int
    qr_x_percent: float
    qr_y_percent: float
    qr_size: int
    paraf_page: int
    paraf_x_percent: float
    paraf_y_percent: float
    paraf_size: int
    creator: UserBrief | None = None
    assigned_approver_id: UUID | None = None
    assigned_signer_id: UUID | None = None
    approver: UserBrief | None = None
    signer: UserBrief | None = None
    rejection_reason: str | None = None
    submitted_at: datetime | None = None
    approved_at: datetime | None = None
    signed_at: datetime | None = None
    created_at: datetime
    approvers: list[LetterApproverData] = Field(default_factory=list)
    logs: list[ActivityLogData] = Field(default_factory=list)


class LetterVerifyData(BaseSchema):
    """二维码公开验证结果。"""

    valid: bool
    letter_number: str
    title: str
    status: str
    signer: UserBrief | None = None
    signed_at: datetime | None = None
    approved_at: datetime | None = None
