"""操作日志查询接口。"""

from fastapi import APIRouter, Depends, Query, Request, status
from sqlalchemy.orm import Session

from esurat_api.db.session import get_db
from esurat_api.dependencies import require_permission
from esurat_api.schemas.activity import ActivityLogData
from esurat_api.schemas.common import ErrorResponse, SuccessResponse
from esurat_api.services import PermissionAction, list_activity_logs
from esurat_api.utils.response import pagination_meta, success

router = APIRouter(prefix="/activity-logs", tags=["activity-logs"])


@router.get(
    "",
    summary="操作日志",
    description="按时间倒序分页返回操作日志，q 匹配说明、动作或操作人姓名。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[ActivityLogData]],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def get_activity_logs(
    request: Request,
    q: str | None = Query(default=None, description="搜索关键词。"),
    page: int = Query(default=1, ge=1, description="页码。"),
    limit: int = Query(default=20, ge=1, le=100, description="每页条数。"),
    ctx=Depends(require_permission(PermissionAction.LOG_VIEW)),
    db: Session = Depends(get_db),
):
    items, total = list_activity_logs(db, search=q, page=page, limit=limit)
    return success(request, items, meta=pagination_meta(page=page, limit=limit, total=total))
