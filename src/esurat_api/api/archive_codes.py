"""档案编码接口。"""

from uuid import UUID

from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from esurat_api.db.session import get_db
from esurat_api.dependencies import require_permission
from esurat_api.exceptions import conflict, not_found
from esurat_api.models.letter import ArchiveCode
from esurat_api.schemas.common import DeletedData, ErrorResponse, SuccessResponse
from esurat_api.schemas.reference import ArchiveCodeData, ArchiveCodeListData, ArchiveCodeRequest
from esurat_api.services import PermissionAction, activity_log, has_permission
from esurat_api.utils.response import success

router = APIRouter(prefix="/archive-codes", tags=["archive-codes"])


def _get_code_or_404(db: Session, code_id: UUID) -> ArchiveCode:
    item = db.get(ArchiveCode, code_id)
    if not item:
        raise not_found("ARCHIVE_CODE_NOT_FOUND", "Kode arsip tidak ditemukan")
    return item


def _code_taken(db: Session, code: str, *, exclude_id: UUID | None = None) -> bool:
    stmt = select(ArchiveCode.id).where(ArchiveCode.code == code)
    if exclude_id is not None:
        stmt = stmt.where(ArchiveCode.id != exclude_id)
    return db.execute(stmt).first() is not None


@router.get(
    "",
    summary="档案编码列表",
    description="按编码升序返回。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[ArchiveCodeListData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def list_archive_codes(
    request: Request,
    ctx=Depends(require_permission(PermissionAction.ARCHIVE_CODE_VIEW)),
    db: Session = Depends(get_db),
):
    items = db.execute(select(ArchiveCode).order_by(ArchiveCode.code.asc())).scalars().all()
    return success(
        request,
        {
            "items": items,
            "can_manage": has_permission(db, ctx.user_id, PermissionAction.ARCHIVE_CODE_MANAGE),
        },
    )


@router.post(
    "",
    summary="创建档案编码",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[ArchiveCodeData],
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
def create_archive_code(
    payload: ArchiveCodeRequest,
    request: Request,
    ctx=Depends(require_permission(PermissionAction.ARCHIVE_CODE_MANAGE)),
    db: Session = Depends(get_db),
):
    if _code_taken(db, payload.code):
        raise conflict("ARCHIVE_CODE_CONFLICT", "Kode arsip sudah ada", code=payload.code)

    item = ArchiveCode(code=payload.code, name=payload.name, description=payload.description)
    db.add(item)
    db.flush()
    activity_log(
        db,
        request,
        action="ARCHIVE_CODE_CREATE",
        description=f"Membuat kode arsip: {item.code}",
        user_id=ctx.user_id,
    )
    db.commit()
    return success(request, item)


@router.put(
    "/{code_id}",
    summary="更新档案编码",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[ArchiveCodeData],
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
def update_archive_code(
    payload: ArchiveCodeRequest,
    request: Request,
    code_id: UUID = Path(..., description="档案编码 ID。"),
    ctx=Depends(require_permission(PermissionAction.ARCHIVE_CODE_MANAGE)),
    db: Session = Depends(get_db),
):
    item = _get_code_or_404(db, code_id)
    if _code_taken(db, payload.code, exclude_id=item.id):
        raise conflict("ARCHIVE_CODE_CONFLICT", "Kode arsip sudah digunakan", code=payload.code)

    item.code = payload.code
    item.name = payload.name
    item.description = payload.description
    activity_log(
        db,
        request,
        action="ARCHIVE_CODE_UPDATE",
        description=f"Mengubah kode arsip: {item.code}",
        user_id=ctx.user_id,
    )
    db.commit()
    return success(request, item)


@router.delete(
    "/{code_id}",
    summary="删除档案编码",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[DeletedData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def delete_archive_code(
    request: Request,
    code_id: UUID = Path(..., description="档案编码 ID。"),
    ctx=Depends(require_permission(PermissionAction.ARCHIVE_CODE_MANAGE)),
    db: Session = Depends(get_db),
):
    item = _get_code_or_404(db, code_id)
    db.delete(item)
    activity_log(
        db,
        request,
        action="ARCHIVE_CODE_DELETE",
        description=f"Menghapus kode arsip: {item.code}",
        user_id=ctx.user_id,
    )
    db.commit()
    return success(request, {"id": code_id, "deleted": True})
