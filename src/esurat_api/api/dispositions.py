"""批示接口。"""

from uuid import UUID

from fastapi import APIRouter, Depends, File, Path, Query, Request, UploadFile, status
from fastapi.responses import RedirectResponse
from sqlalchemy import select
from sqlalchemy.orm import Session

from esurat_api.core.config import get_settings
from esurat_api.db.session import get_db
from esurat_api.dependencies import RequestContext, get_request_context, require_permission
from esurat_api.models.disposition import (
    Disposition,
    DispositionInstruction,
    DispositionInstructionLink,
    DispositionRecipient,
)
from esurat_api.models.identity import User
from esurat_api.models.letter import Letter
from esurat_api.schemas.common import ErrorResponse, SuccessResponse
from esurat_api.schemas.disposition import (
    DispositionCompleteRequest,
    DispositionCreateRequest,
    DispositionData,
    DispositionNumberRequest,
    DispositionStatsData,
    EligibleRecipientData,
    InstructionData,
    NextNumberData,
    RecipientData,
)
from esurat_api.services import PermissionAction
from esurat_api.services import dispositions as disposition_service
from esurat_api.utils.response import success

router = APIRouter(prefix="/dispositions", tags=["dispositions"])

_COMMON_ERRORS = {
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
    409: {"model": ErrorResponse},
}


def _brief(db: Session, user_id: UUID | None) -> dict | None:
    if user_id is None:
        return None
    user = db.get(User, user_id)
    return {"id": user.id, "name": user.name} if user else None


def _recipient_payload(db: Session, recipient: DispositionRecipient) -> dict:
    return {
        "id": recipient.id,
        "user": _brief(db, recipient.user_id),
        "status": recipient.status,
        "read_at": recipient.read_at,
        "completed_at": recipient.completed_at,
        "response": recipient.response,
    }


def _disposition_payload(db: Session, disposition: Disposition) -> dict:
    """组装批示返回体，包含公文摘要、接收人与勾选意见。"""
    recipients = db.execute(
        select(DispositionRecipient)
        .where(DispositionRecipient.disposition_id == disposition.id)
        .order_by(DispositionRecipient.created_at.asc())
    ).scalars().all()
    instructions = db.execute(
        select(DispositionInstruction)
        .join(DispositionInstructionLink, DispositionInstructionLink.instruction_id == DispositionInstruction.id)
        .where(DispositionInstructionLink.disposition_id == disposition.id)
        .order_by(DispositionInstruction.sort_order.asc())
    ).scalars().all()
    return {
        "id": disposition.id,
        "number": disposition.number,
        "status": disposition.status,
        "urgency": disposition.urgency,
        "notes": disposition.notes,
        "letter": db.get(Letter, disposition.letter_id),
        "from_user": _brief(db, disposition.from_user_id),
        "recipients": [_recipient_payload(db, item) for item in recipients],
        "instructions": instructions,
        "file_draft": disposition.file_draft,
        "file_signed": disposition.file_signed,
        "signed_at": disposition.signed_at,
        "created_at": disposition.created_at,
    }


def _many(db: Session, dispositions: list[Disposition]) -> list[dict]:
    return [_disposition_payload(db, item) for item in dispositions]


@router.get(
    "/instructions",
    summary="批示意见选项",
    description="按排序返回启用中的批示意见。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[InstructionData]],
    responses={401: {"model": ErrorResponse}},
)
def list_instructions(
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    return success(request, disposition_service.list_active_instructions(db))


@router.get(
    "/next-number",
    summary="建议编号",
    description="返回当年下一个建议编号，形如 DISP/2026/0001。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[NextNumberData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def next_number(
    request: Request,
    ctx: RequestContext = Depends(require_permission(PermissionAction.DISPOSITION_SET_NUMBER)),
    db: Session = Depends(get_db),
):
    return success(request, {"number": disposition_service.next_disposition_number(db)})


@router.get(
    "/mine",
    summary="我收到的批示",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[DispositionData]],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def list_mine(
    request: Request,
    status_filter: str | None = Query(default=None, alias="status", description="PENDING/READ/COMPLETED。"),
    ctx: RequestContext = Depends(require_permission(PermissionAction.DISPOSITION_VIEW)),
    db: Session = Depends(get_db),
):
    rows = disposition_service.list_for_recipient(db, ctx.user_id, status_filter)
    return success(request, _many(db, rows))


@router.get(
    "/all",
    summary="全部批示",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[DispositionData]],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def list_all(
    request: Request,
    ctx: RequestContext = Depends(require_permission(PermissionAction.DISPOSITION_VIEW_ALL)),
    db: Session = Depends(get_db),
):
    return success(request, _many(db, disposition_service.list_all(db)))


@router.get(
    "/sent",
    summary="我发起的批示",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[DispositionData]],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def list_sent(
    request: Request,
    ctx: RequestContext = Depends(require_permission(PermissionAction.DISPOSITION_VIEW)),
    db: Session = Depends(get_db),
):
    return success(request, _many(db, disposition_service.list_sent(db, ctx.user_id)))


@router.get(
    "/pending-number",
    summary="待登记编号的批示",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[DispositionData]],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def list_pending_number(
    request: Request,
    ctx: RequestContext = Depends(require_permission(PermissionAction.DISPOSITION_SET_NUMBER)),
    db: Session = Depends(get_db),
):
    return success(request, _many(db, disposition_service.list_pending_number(db)))


@router.get(
    "/stats",
    summary="接收批示统计",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[DispositionStatsData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def stats(
    request: Request,
    ctx: RequestContext = Depends(require_permission(PermissionAction.DISPOSITION_VIEW)),
    db: Session = Depends(get_db),
):
    return success(request, disposition_service.recipient_stats(db, ctx.user_id))


@router.get(
    "/eligible-recipients",
    summary="可选接收人",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[EligibleRecipientData]],
    responses={401: {"model": ErrorResponse}},
)
def list_eligible_recipients(
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    return success(request, disposition_service.eligible_recipients(db))


@router.get(
    "/letter/{letter_id}",
    summary="公文的批示",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[DispositionData]],
    responses={401: {"model": ErrorResponse}},
)
def list_for_letter(
    request: Request,
    letter_id: UUID = Path(..., description="公文 ID。"),
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    return success(request, _many(db, disposition_service.list_for_letter(db, letter_id)))


@router.post(
    "",
    summary="发起批示",
    description="仅已签署公文可发起批示，编号留空待登记。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[DispositionData],
    responses={**_COMMON_ERRORS, 422: {"model": ErrorResponse}},
)
def create_disposition(
    payload: DispositionCreateRequest,
    request: Request,
    ctx: RequestContext = Depends(require_permission(PermissionAction.DISPOSITION_CREATE)),
    db: Session = Depends(get_db),
):
    disposition = disposition_service.create_disposition(db, request, user_id=ctx.user_id, payload=payload)
    db.commit()
    return success(request, _disposition_payload(db, disposition))


@router.get(
    "/{disposition_id}",
    summary="批示详情",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[DispositionData],
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def get_disposition(
    request: Request,
    disposition_id: UUID = Path(..., description="批示 ID。"),
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    disposition = disposition_service.get_disposition_or_404(db, disposition_id)
    return success(request, _disposition_payload(db, disposition))


@router.post(
    "/{disposition_id}/number",
    summary="登记编号",
    description="编号全局唯一；登记后生成批示单并进入 PENDING_SIGN。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[DispositionData],
    responses={**_COMMON_ERRORS, 422: {"model": ErrorResponse}},
)
def set_number(
    payload: DispositionNumberRequest,
    request: Request,
    disposition_id: UUID = Path(..., description="批示 ID。"),
    ctx: RequestContext = Depends(require_permission(PermissionAction.DISPOSITION_SET_NUMBER)),
    db: Session = Depends(get_db),
):
    disposition = disposition_service.set_disposition_number(
        db,
        request,
        disposition_id=disposition_id,
        user_id=ctx.user_id,
        number=payload.number,
    )
    db.commit()
    return success(request, _disposition_payload(db, disposition))


@router.post(
    "/{disposition_id}/read",
    summary="标记已读",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[RecipientData],
    responses=_COMMON_ERRORS,
)
def mark_read(
    request: Request,
    disposition_id: UUID = Path(..., description="批示 ID。"),
    ctx: RequestContext = Depends(require_permission(PermissionAction.DISPOSITION_UPDATE)),
    db: Session = Depends(get_db),
):
    recipient = disposition_service.mark_as_read(db, request, disposition_id=disposition_id, user_id=ctx.user_id)
    db.commit()
    return success(request, _recipient_payload(db, recipient))


@router.post(
    "/{disposition_id}/complete",
    summary="办结批示",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[RecipientData],
    responses={**_COMMON_ERRORS, 422: {"model": ErrorResponse}},
)
def mark_completed(
    request: Request,
    payload: DispositionCompleteRequest | None = None,
    disposition_id: UUID = Path(..., description="批示 ID。"),
    ctx: RequestContext = Depends(require_permission(PermissionAction.DISPOSITION_UPDATE)),
    db: Session = Depends(get_db),
):
    recipient = disposition_service.mark_as_completed(
        db,
        request,
        disposition_id=disposition_id,
        user_id=ctx.user_id,
        response=payload.response if payload is not None else None,
    )
    db.commit()
    return success(request, _recipient_payload(db, recipient))


@router.post(
    "/{disposition_id}/upload-signed",
    summary="上传签署版批示单",
    description="仅发起人可上传，批示进入 SUBMITTED。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[DispositionData],
    responses={**_COMMON_ERRORS, 413: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def upload_signed(
    request: Request,
    disposition_id: UUID = Path(..., description="批示 ID。"),
    file: UploadFile | None = File(default=None, description="签署版 PDF。"),
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    content = await file.read() if file is not None else b""
    disposition = disposition_service.upload_signed_disposition(
        db,
        request,
        disposition_id=disposition_id,
        user_id=ctx.user_id,
        content=content,
        filename=file.filename if file is not None else None,
        content_type=file.content_type if file is not None else None,
    )
    db.commit()
    return success(request, _disposition_payload(db, disposition))


@router.get(
    "/{disposition_id}/pdf",
    summary="批示单 PDF",
    description="重定向到已生成的批示单，文件缺失时按需生成。",
    status_code=status.HTTP_307_TEMPORARY_REDIRECT,
    response_class=RedirectResponse,
    responses={401: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def disposition_pdf(
    disposition_id: UUID = Path(..., description="批示 ID。"),
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    disposition = disposition_service.get_disposition_or_404(db, disposition_id)
    public_url = disposition_service.ensure_disposition_sheet(db, disposition)
    db.commit()
    base_url = get_settings().public_base_url.rstrip("/")
    return RedirectResponse(url=f"{base_url}{public_url}", status_code=status.HTTP_307_TEMPORARY_REDIRECT)
