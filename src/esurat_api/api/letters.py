"""公文接口。

创建与签署版上传走 multipart 表单，其余为 JSON。状态流转规则见 services.letters。
"""

from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Path, Query, Request, UploadFile, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import Response
from pydantic import ValidationError
from sqlalchemy import select
from sqlalchemy.orm import Session

from esurat_api.db.session import get_db
from esurat_api.dependencies import RequestContext, get_request_context, require_permission
from esurat_api.models.identity import User
from esurat_api.models.letter import Letter, LetterCategory
from esurat_api.models.system import ActivityLog
from esurat_api.schemas.common import DeletedData, ErrorResponse, SuccessResponse
from esurat_api.schemas.letter import (
    LetterApproveRequest,
    LetterCreateRequest,
    LetterData,
    LetterRejectRequest,
    LetterVerifyData,
)
from esurat_api.services import PermissionAction
from esurat_api.services import letters as letter_service
from esurat_api.utils.response import attachment_disposition, pagination_meta, success

router = APIRouter(prefix="/letters", tags=["letters"])

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


def _letter_payload(db: Session, letter: Letter, *, detail: bool = False) -> dict:
    """组装公文返回体；detail 时附带审批链与操作日志。"""
    category = db.get(LetterCategory, letter.category_id) if letter.category_id else None
    payload = {
        column.key: getattr(letter, column.key)
        for column in Letter.__table__.columns
    }
    payload.update(
        {
            "category": category,
            "creator": _brief(db, letter.creator_id),
            "approver": _brief(db, letter.approver_id),
            "signer": _brief(db, letter.signer_id),
            "approvers": [],
            "logs": [],
        }
    )
    if not detail:
        return payload

    payload["approvers"] = [
        {
            "id": item.id,
            "user": _brief(db, item.user_id),
            "order": item.order,
            "status": item.status,
            "paraf_page": item.paraf_page,
            "paraf_x_percent": item.paraf_x_percent,
            "paraf_y_percent": item.paraf_y_percent,
            "paraf_size": item.paraf_size,
            "notes": item.notes,
            "approved_at": item.approved_at,
        }
        for item in letter_service.list_letter_approvers(db, letter.id)
    ]
    logs = db.execute(
        select(ActivityLog).where(ActivityLog.letter_id == letter.id).order_by(ActivityLog.created_at.desc())
    ).scalars().all()
    payload["logs"] = [
        {
            "id": log.id,
            "action": log.action,
            "description": log.description,
            "user": _brief(db, log.user_id),
            "created_at": log.created_at,
        }
        for log in logs
    ]
    return payload


@router.get(
    "",
    summary="公文列表",
    description="按访问范围分页返回公文，支持状态过滤与标题/文号/摘要关键字搜索。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[LetterData]],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def list_letters(
    request: Request,
    status_filter: str | None = Query(default=None, alias="status", description="状态过滤，ALL 表示不过滤。"),
    search: str | None = Query(default=None, description="关键字。"),
    page: int = Query(default=1, ge=1, description="页码。"),
    limit: int = Query(default=10, ge=1, le=100, description="每页条数。"),
    only_mine: bool = Query(default=False, description="仅返回本人创建的公文。"),
    ctx: RequestContext = Depends(require_permission(PermissionAction.LETTER_VIEW)),
    db: Session = Depends(get_db),
):
    rows, total = letter_service.list_letters(
        db,
        user_id=ctx.user_id,
        can_view_all=ctx.can(PermissionAction.LETTER_VIEW_ALL),
        status_filter=status_filter,
        search=search,
        page=page,
        limit=limit,
        only_mine=only_mine,
    )
    return success(
        request,
        [_letter_payload(db, letter) for letter in rows],
        meta=pagination_meta(page=page, limit=limit, total=total),
    )


@router.get(
    "/verify/{qr_hash}",
    summary="二维码验证",
    description="公开接口，无需登录；仅已审批待签或已签署的公文视为有效。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[LetterVerifyData],
    responses={404: {"model": ErrorResponse}},
)
def verify_letter(
    request: Request,
    qr_hash: str = Path(..., description="二维码中的公文标识。"),
    db: Session = Depends(get_db),
):
    letter = letter_service.find_letter_by_qr_hash(db, qr_hash)
    return success(
        request,
        {
            "valid": letter_service.is_verifiable(letter),
            "letter_number": letter.letter_number,
            "title": letter.title,
            "status": letter.status,
            "signer": _brief(db, letter.signer_id),
            "signed_at": letter.signed_at,
            "approved_at": letter.approved_at,
        },
    )


@router.post(
    "",
    summary="创建公文",
    description="multipart 上传草稿 PDF 与公文字段；approvers 为 JSON 数组字符串，1-8 个审批人。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[LetterData],
    responses={**_COMMON_ERRORS, 413: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def create_letter(
    request: Request,
    title: str = Form(default=""),
    letter_number: str = Form(default=""),
    description: str | None = Form(default=None),
    category_id: str | None = Form(default=None),
    priority: str | None = Form(default=None),
    security_level: str | None = Form(default=None),
    qr_page: str | None = Form(default=None),
    qr_x_percent: str | None = Form(default=None),
    qr_y_percent: str | None = Form(default=None),
    qr_size: str | None = Form(default=None),
    paraf_page: str | None = Form(default=None),
    paraf_x_percent: str | None = Form(default=None),
    paraf_y_percent: str | None = Form(default=None),
    paraf_size: str | None = Form(default=None),
    approvers: str | None = Form(default=None, description="审批人 JSON 数组。"),
    assigned_approver_id: str | None = Form(default=None),
    assigned_signer_id: str | None = Form(default=None),
    file: UploadFile | None = File(default=None, description="草稿 PDF。"),
    ctx: RequestContext = Depends(require_permission(PermissionAction.LETTER_CREATE)),
    db: Session = Depends(get_db),
):
    raw = {
        "title": title,
        "letter_number": letter_number,
        "description": description,
        "category_id": category_id,
        "priority": priority,
        "security_level": security_level,
        "qr_page": qr_page,
        "qr_x_percent": qr_x_percent,
        "qr_y_percent": qr_y_percent,
        "qr_size": qr_size,
        "paraf_page": paraf_page,
        "paraf_x_percent": paraf_x_percent,
        "paraf_y_percent": paraf_y_percent,
        "paraf_size": paraf_size,
        "approvers": approvers,
        "assigned_approver_id": assigned_approver_id,
        "assigned_signer_id": assigned_signer_id,
    }
    # 表单中的空串视为未填写，交由默认值处理；标题与文号始终参与校验。
    fields = {key: value for key, value in raw.items() if value not in (None, "")}
    fields.setdefault("title", title)
    fields.setdefault("letter_number", letter_number)
    try:
        payload = LetterCreateRequest.model_validate(fields)
    except ValidationError as exc:
        raise RequestValidationError(exc.errors()) from exc

    content = await file.read() if file is not None else b""
    letter = letter_service.create_letter(
        db,
        request,
        user_id=ctx.user_id,
        payload=payload,
        content=content,
        filename=file.filename if file is not None else None,
        content_type=file.content_type if file is not None else None,
    )
    db.commit()
    return success(request, _letter_payload(db, letter, detail=True))


@router.get(
    "/{letter_id}",
    summary="公文详情",
    description="附带审批链与操作日志；非查看全部权限时仅相关人员可见。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[LetterData],
    responses=_COMMON_ERRORS,
)
def get_letter(
    request: Request,
    letter_id: UUID = Path(..., description="公文 ID。"),
    ctx: RequestContext = Depends(require_permission(PermissionAction.LETTER_VIEW)),
    db: Session = Depends(get_db),
):
    letter = letter_service.get_letter_or_404(db, letter_id)
    letter_service.ensure_letter_access(db, letter, ctx.principal, ctx.user_id)
    return success(request, _letter_payload(db, letter, detail=True))


@router.post(
    "/{letter_id}/submit",
    summary="提交审批",
    description="仅创建人可提交，且公文须为 DRAFT。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[LetterData],
    responses=_COMMON_ERRORS,
)
def submit_letter(
    request: Request,
    letter_id: UUID = Path(..., description="公文 ID。"),
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    letter = letter_service.submit_letter(db, request, letter_id=letter_id, user_id=ctx.user_id)
    db.commit()
    return success(request, _letter_payload(db, letter))


@router.post(
    "/{letter_id}/approve",
    summary="审批公文",
    description="多级审批须按顺序进行；首次审批盖验证二维码，可附带草签图片。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[LetterData],
    responses={**_COMMON_ERRORS, 422: {"model": ErrorResponse}},
)
def approve_letter(
    request: Request,
    payload: LetterApproveRequest | None = None,
    letter_id: UUID = Path(..., description="公文 ID。"),
    ctx: RequestContext = Depends(require_permission(PermissionAction.LETTER_APPROVE)),
    db: Session = Depends(get_db),
):
    letter = letter_service.approve_letter(
        db,
        request,
        letter_id=letter_id,
        user_id=ctx.user_id,
        signature_image=payload.signature_image if payload is not None else None,
    )
    db.commit()
    return success(request, _letter_payload(db, letter))


@router.post(
    "/{letter_id}/reject",
    summary="驳回公文",
    description="当前轮到的审批人，或待签阶段的签署人可驳回，须填写理由。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[LetterData],
    responses={**_COMMON_ERRORS, 422: {"model": ErrorResponse}},
)
def reject_letter(
    payload: LetterRejectRequest,
    request: Request,
    letter_id: UUID = Path(..., description="公文 ID。"),
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    letter = letter_service.reject_letter(
        db,
        request,
        letter_id=letter_id,
        principal=ctx.principal,
        user_id=ctx.user_id,
        reason=payload.reason,
    )
    db.commit()
    return success(request, _letter_payload(db, letter))


@router.post(
    "/{letter_id}/upload-signed",
    summary="上传签署版",
    description="签署人上传已签署 PDF，公文进入 SIGNED。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[LetterData],
    responses={**_COMMON_ERRORS, 413: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
async def upload_signed_letter(
    request: Request,
    letter_id: UUID = Path(..., description="公文 ID。"),
    file: UploadFile | None = File(default=None, description="签署版 PDF。"),
    ctx: RequestContext = Depends(require_permission(PermissionAction.LETTER_SIGN)),
    db: Session = Depends(get_db),
):
    content = await file.read() if file is not None else b""
    letter = letter_service.upload_signed_letter(
        db,
        request,
        letter_id=letter_id,
        user_id=ctx.user_id,
        content=content,
        filename=file.filename if file is not None else None,
        content_type=file.content_type if file is not None else None,
    )
    db.commit()
    return success(request, _letter_payload(db, letter))


@router.delete(
    "/{letter_id}",
    summary="删除公文",
    description="仅 DRAFT/REJECTED/CANCELLED 状态可删除，同时删除已存储文件。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[DeletedData],
    responses=_COMMON_ERRORS,
)
def delete_letter(
    request: Request,
    letter_id: UUID = Path(..., description="公文 ID。"),
    ctx: RequestContext = Depends(require_permission(PermissionAction.LETTER_DELETE)),
    db: Session = Depends(get_db),
):
    letter_service.delete_letter(db, request, letter_id=letter_id, user_id=ctx.user_id)
    db.commit()
    return success(request, {"id": letter_id, "deleted": True})


@router.get(
    "/{letter_id}/bundle",
    summary="下载公文合订本",
    description="将最新批示单与签署版公文合并为一个 PDF 下载。",
    status_code=status.HTTP_200_OK,
    response_class=Response,
    responses={
        200: {"content": {"application/pdf": {}}},
        400: {"model": ErrorResponse},
        **_COMMON_ERRORS,
        500: {"model": ErrorResponse},
    },
)
def download_bundle(
    letter_id: UUID = Path(..., description="公文 ID。"),
    ctx: RequestContext = Depends(require_permission(PermissionAction.LETTER_DOWNLOAD)),
    db: Session = Depends(get_db),
):
    letter = letter_service.get_letter_or_404(db, letter_id)
    letter_service.ensure_letter_access(db, letter, ctx.principal, ctx.user_id)
    content, filename = letter_service.build_letter_bundle(db, letter.id)
    return Response(
        content=content,
        media_type="application/pdf",
        headers={"Content-Disposition": attachment_disposition(filename)},
    )
