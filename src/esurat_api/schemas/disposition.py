"""批示相关结构。"""

from datetime import datetime
from uuid import UUID

from pydantic import BaseModel, Field, field_validator

from esurat_api.models.enums import DispositionUrgency
from esurat_api.schemas.common import BaseSchema, optional_text, required_text
from esurat_api.schemas.letter import UserBrief


class DispositionCreateRequest(BaseModel):
    """创建批示请求体。"""

    letter_id: UUID = Field(description="已签署公文 ID。")
    recipient_ids: list[UUID] = Field(default_factory=list, description="接收人用户 ID。")
    instruction_ids: list[UUID] = Field(default_factory=list, description="勾选的批示意见 ID。")
    urgency: DispositionUrgency = Field(default=DispositionUrgency.BIASA, description="紧急程度。")
    notes: str | None = Field(default=None, description="补充说明。")

    @field_validator("recipient_ids")
    @classmethod
    def _recipients(cls, value: list[UUID]) -> list[UUID]:
        if not value:
            raise ValueError("Pilih minimal satu penerima disposisi")
        return list(dict.fromkeys(value))

    @field_validator("instruction_ids")
    @classmethod
    def _instructions(cls, value: list[UUID]) -> list[UUID]:
        if not value:
            raise ValueError("Pilih minimal satu instruksi")
        return list(dict.fromkeys(value))

    @field_validator("notes")
    @classmethod
    def _notes(cls, value: str | None) -> str | None:
        return optional_text(value)


class DispositionNumberRequest(BaseModel):
    """登记批示编号。"""

    number: str = Field(description="批示编号，全局唯一。", examples=["DISP/2026/0001"])

    @field_validator("number")
    @classmethod
    def _number(cls, value: str) -> str:
        return required_text(value, "Nomor disposisi harus diisi", max_length=64)


class DispositionCompleteRequest(BaseModel):
    """办结批示。"""

    response: str | None = Field(default=None, description="接收人回复。")

    @field_validator("response")
    @classmethod
    def _response(cls, value: str | None) -> str | None:
        return optional_text(value)


class InstructionData(BaseSchema):
    id: UUID
    name: str
    sort_order: int = 0


class RecipientData(BaseSchema):
    id: UUID
    user: UserBrief | None = None
    status: str
    read_at: datetime | None = None
    completed_at: datetime | None = None
    response: str | None = None


class LetterBrief(BaseSchema):
    id: UUID
    title: str
    letter_number: str
    status: str


class DispositionData(BaseSchema):
    """批示详情。"""

    id: UUID
    number: str | None = None
    status: str
    urgency: str
    notes: str | None = None
    letter: LetterBrief | None = None
    from_user: UserBrief | None = None
    recipients: list[RecipientData] = Field(default_factory=list)
    instructions: list[InstructionData] = Field(default_factory=list)
    file_draft: str | None = None
    file_signed: str | None = None
    signed_at: datetime | None = None
    created_at: datetime


class DispositionStatsData(BaseSchema):
    pending: int
    read: int
    completed: int
    total: int


class EligibleRecipientData(BaseSchema):
    id: UUID
    name: str
    email: str
    roles: list[str] = Field(default_factory=list)


class NextNumberData(BaseSchema):
    number: str
