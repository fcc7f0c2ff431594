"""存活与就绪探针。"""

import logging

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy import text
from sqlalchemy.orm import Session

from esurat_api.db.session import get_db
from esurat_api.exceptions import api_error
from esurat_api.schemas.common import ErrorResponse, HealthStatusData, SuccessResponse
from esurat_api.services.storage import upload_root
from esurat_api.utils.response import success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/health", tags=["health"])


@router.get(
    "/live",
    summary="存活探针",
    description="进程存活即返回 ok。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[HealthStatusData],
)
def live(request: Request):
    return success(request, {"status": "ok"})


@router.get(
    "/ready",
    summary="就绪探针",
    description="数据库可查询且上传根目录可创建时返回 ready。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[HealthStatusData],
    responses={503: {"model": ErrorResponse}},
)
def ready(request: Request, db: Session = Depends(get_db)):
    db.execute(text("select 1"))
    try:
        upload_root().mkdir(parents=True, exist_ok=True)
    except OSError as exc:
        logger.exception("upload root is not writable")
        raise api_error(
            status.HTTP_503_SERVICE_UNAVAILABLE, "STORAGE_UNAVAILABLE", "Penyimpanan tidak tersedia"
        ) from exc
    return success(request, {"status": "ready"})
