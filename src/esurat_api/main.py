"""FastAPI 应用入口点。"""

from fastapi import FastAPI

from esurat_api.api.router import api_router
from esurat_api.core.config import get_settings
from esurat_api.core.logging import setup_logging
from esurat_api.exceptions import register_exception_handlers
from esurat_api.middlewares import register_middlewares

settings = get_settings()


def create_app() -> FastAPI:
    """创建并配置 FastAPI 应用实例。"""
    setup_logging()
    app = FastAPI(
        title=settings.app_name,
        version="1.0.0",
        debug=settings.app_debug,
        description=(
            "电子公文流转接口。\n\n"
            "所有业务接口统一返回：`{success, request_id, data, meta}`。\n"
            "通过登录签发的访问令牌进行认证，权限取自令牌中的权限快照。"
        ),
        openapi_tags=[
            {"name": "health", "description": "服务存活与就绪探针。"},
            {"name": "auth", "description": "登录、登出与当前身份。"},
            {"name": "users", "description": "用户管理。"},
            {"name": "roles", "description": "角色与权限点管理。"},
            {"name": "categories", "description": "公文分类维护。"},
            {"name": "archive-codes", "description": "档案编码维护。"},
            {"name": "templates", "description": "公文模板上传与下载。"},
            {"name": "settings", "description": "系统设置与消息网关配置。"},
            {"name": "letters", "description": "公文创建、审批、签署、验证与合订下载。"},
            {"name": "dispositions", "description": "批示发起、编号、签署与接收人处理。"},
            {"name": "uploads", "description": "上传文件访问。"},
        ],
    )

    register_middlewares(app)
    register_exception_handlers(app)
    app.include_router(api_router, prefix=settings.api_prefix)
    return app


app = create_app()
