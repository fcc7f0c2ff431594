"""上传文件访问接口。"""

import logging

from fastapi import APIRouter, Path, status
from fastapi.responses import FileResponse

from esurat_api.exceptions import bad_request, not_found
from esurat_api.schemas.common import ErrorResponse
from esurat_api.services import UnsafePathError, resolve_upload_path
from esurat_api.services.storage import content_type_for

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/uploads", tags=["uploads"])


@router.get(
    "/{file_path:path}",
    summary="读取上传文件",
    description="按相对路径返回上传根目录下的文件，越界路径一律拒绝。",
    status_code=status.HTTP_200_OK,
    response_class=FileResponse,
    responses={400: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def serve_upload(file_path: str = Path(..., description="相对上传根目录的路径。")):
    try:
        target = resolve_upload_path(file_path)
    except UnsafePathError as exc:
        logger.warning("rejected upload path outside root: %s", file_path)
        raise bad_request("INVALID_PATH", "Path tidak valid") from exc

    if not target.is_file():
        raise not_found("FILE_NOT_FOUND", "File tidak ditemukan")

    return FileResponse(
        target,
        media_type=content_type_for(target),
        headers={"Cache-Control": "public, max-age=3600"},
    )
