"""操作日志服务：追加记录与分页查询。"""

from typing import Any
from uuid import UUID

from fastapi import Request
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from esurat_api.models.identity import User
from esurat_api.models.system import ActivityLog


def _client_ip(request: Request | None) -> str | None:
    """从代理头或连接信息中提取客户端 IP。"""
    if request is None:
        return None
    forwarded = request.headers.get("x-forwarded-for")
    if forwarded:
        return forwarded.split(",")[0].strip()
    if request.client:
        return request.client.host
    return None


def activity_log(
    db: Session,
    request: Request | None,
    *,
    action: str,
    description: str,
    user_id: UUID | None,
    letter_id: UUID | None = None,
    metadata: dict[str, Any] | None = None,
) -> None:
    """追加一条操作日志，随调用方事务一起提交。"""
    db.add(
        ActivityLog(
            action=action,
            description=description,
            user_id=user_id,
            letter_id=letter_id,
            metadata_json=metadata,
            ip=_client_ip(request),
            user_agent=request.headers.get("user-agent") if request is not None else None,
        )
    )


def list_activity_logs(
    db: Session,
    *,
    search: str | None = None,
    page: int = 1,
    limit: int = 20,
) -> tuple[list[dict[str, Any]], int]:
    """按时间倒序分页；search 不区分大小写地匹配说明、动作与操作人姓名。"""
    base = select(ActivityLog, User).outerjoin(User, User.id == ActivityLog.user_id)
    keyword = (search or "").strip()
    if keyword:
        pattern = f"%{keyword}%"
        base = base.where(
            or_(
                ActivityLog.description.ilike(pattern),
                ActivityLog.action.ilike(pattern),
                User.name.ilike(pattern),
            )
        )

    total = db.execute(select(func.count()).select_from(base.subquery())).scalar_one()
    rows = db.execute(
        base.order_by(ActivityLog.created_at.desc()).offset((page - 1) * limit).limit(limit)
    ).all()
    items = [
        {
            "id": log.id,
            "action": log.action,
            "description": log.description,
            "user": {"name": user.name, "email": user.email} if user is not None else None,
            "letter_id": log.letter_id,
            "metadata": log.metadata_json,
            "ip": log.ip,
            "created_at": log.created_at,
        }
        for log, user in rows
    ]
    return items, int(total)
