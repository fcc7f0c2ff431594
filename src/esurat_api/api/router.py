"""顶层路由注册。"""

from fastapi import APIRouter

from . import (
    activity_logs,
    archive_codes,
    auth,
    categories,
    dispositions,
    health,
    letters,
    roles,
    settings,
    teams,
    templates,
    uploads,
    users,
)

api_router = APIRouter()

# 固定注册顺序，便于在线接口文档展示和问题定位。
api_router.include_router(health.router)
api_router.include_router(auth.router)
api_router.include_router(users.router)
api_router.include_router(roles.router)
api_router.include_router(teams.router)
api_router.include_router(categories.router)
api_router.include_router(archive_codes.router)
api_router.include_router(templates.router)
api_router.include_router(settings.router)
api_router.include_router(activity_logs.router)
api_router.include_router(letters.router)
api_router.include_router(dispositions.router)
api_router.include_router(uploads.router)
