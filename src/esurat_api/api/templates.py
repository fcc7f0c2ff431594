"""公文模板接口。"""

from pathlib import Path as FilePath
from uuid import UUID

from fastapi import APIRouter, Depends, File, Form, Path, Request, UploadFile, status
from sqlalchemy import select
from sqlalchemy.orm import Session

from esurat_api.db.session import get_db
from esurat_api.dependencies import require_permission
from esurat_api.exceptions import invalid, not_found, payload_too_large
from esurat_api.models.enums import TemplateFileType
from esurat_api.models.identity import User
from esurat_api.models.system import Template
from esurat_api.schemas.common import DeletedData, ErrorResponse, SuccessResponse, optional_text
from esurat_api.schemas.reference import TemplateData, TemplateListData
from esurat_api.services import (
    PermissionAction,
    UploadArea,
    UploadRejected,
    activity_log,
    has_permission,
    load_system_settings,
)
from esurat_api.services.storage import PDF_CONTENT_TYPE, delete_file, save_upload, validate_upload
from esurat_api.utils.response import success

router = APIRouter(prefix="/templates", tags=["templates"])

TEMPLATE_FORMAT_MESSAGE = "Format file harus PDF atau Word (.doc, .docx)"


def _template_payload(template: Template, uploader_name: str | None) -> dict:
    return {
        "id": template.id,
        "title": template.title,
        "description": template.description,
        "file_url": template.file_url,
        "file_type": template.file_type,
        "uploader_id": template.uploader_id,
        "uploader_name": uploader_name,
    }


def _file_type(filename: str | None, content_type: str | None) -> TemplateFileType:
    if content_type == PDF_CONTENT_TYPE or FilePath(filename or "").suffix.lower() == ".pdf":
        return TemplateFileType.PDF
    return TemplateFileType.DOCX


@router.get(
    "",
    summary="模板列表",
    description="按上传时间倒序返回模板，附带上传人姓名。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[TemplateListData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def list_templates(
    request: Request,
    ctx=Depends(require_permission(PermissionAction.TEMPLATE_VIEW)),
    db: Session = Depends(get_db),
):
    rows = db.execute(
        select(Template, User.name)
        .outerjoin(User, User.id == Template.uploader_id)
        .order_by(Template.created_at.desc())
    ).all()
    return success(
        request,
        {
            "items": [_template_payload(template, name) for template, name in rows],
            "can_manage": has_permission(db, ctx.user_id, PermissionAction.TEMPLATE_MANAGE),
        },
    )


@router.post(
    "",
    summary="上传模板",
    description="multipart 上传 PDF 或 Word 模板文件。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[TemplateData],
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        413: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
async def create_template(
    request: Request,
    title: str = Form(default="", description="模板标题。"),
    description: str | None = Form(default=None, description="说明。"),
    file: UploadFile | None = File(default=None, description="模板文件。"),
    ctx=Depends(require_permission(PermissionAction.TEMPLATE_MANAGE)),
    db: Session = Depends(get_db),
):
    content = await file.read() if file is not None else b""
    if not content:
        raise invalid("File template harus diunggah")

    try:
        validate_upload(
            filename=file.filename,
            content_type=file.content_type,
            size=len(content),
            max_size=load_system_settings(db).upload_max_size,
            allow_documents=True,
        )
    except UploadRejected as exc:
        if exc.too_large:
            raise payload_too_large(exc.message) from exc
        raise invalid(TEMPLATE_FORMAT_MESSAGE) from exc

    clean_title = (title or "").strip()
    if not clean_title:
        raise invalid("Judul harus diisi")
    if len(clean_title) > 255:
        raise invalid("Maksimal 255 karakter")

    stored = save_upload(content, UploadArea.TEMPLATES, file.filename)
    template = Template(
        title=clean_title,
        description=optional_text(description),
        file_url=stored.public_url,
        file_type=_file_type(file.filename, file.content_type),
        uploader_id=ctx.user_id,
    )
    db.add(template)
    db.flush()
    activity_log(
        db,
        request,
        action="TEMPLATE_CREATE",
        description=f"Mengunggah template: {template.title}",
        user_id=ctx.user_id,
    )
    db.commit()

    uploader = db.get(User, ctx.user_id)
    return success(request, _template_payload(template, uploader.name if uploader else None))


@router.delete(
    "/{template_id}",
    summary="删除模板",
    description="同时删除已存储的模板文件。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[DeletedData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def delete_template(
    request: Request,
    template_id: UUID = Path(..., description="模板 ID。"),
    ctx=Depends(require_permission(PermissionAction.TEMPLATE_MANAGE)),
    db: Session = Depends(get_db),
):
    template = db.get(Template, template_id)
    if not template:
        raise not_found("TEMPLATE_NOT_FOUND", "Template tidak ditemukan")

    delete_file(template.file_url)
    db.delete(template)
    activity_log(
        db,
        request,
        action="TEMPLATE_DELETE",
        description=f"Menghapus template: {template.title}",
        user_id=ctx.user_id,
    )
    db.commit()
    return success(request, {"id": template_id, "deleted": True})
