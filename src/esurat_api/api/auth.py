"""认证接口。"""

import logging

from fastapi import APIRouter, Depends, Header, Request, status
from sqlalchemy.orm import Session

from esurat_api.core.security import parse_authorization_header, revoke_token_jti
from esurat_api.db.session import get_db
from esurat_api.dependencies import RequestContext, get_request_context
from esurat_api.exceptions import api_error
from esurat_api.models.identity import User
from esurat_api.schemas.auth import AuthLoginData, AuthLoginRequest, AuthLogoutData, AuthUserData
from esurat_api.schemas.common import ErrorResponse, SuccessResponse
from esurat_api.services import activity_log, authenticate, get_user_permissions, get_user_roles, issue_token_for_user
from esurat_api.utils.response import success

logger = logging.getLogger(__name__)

router = APIRouter(prefix="/auth", tags=["auth"])


@router.post(
    "/login",
    summary="登录",
    description="邮箱+口令登录，签发写入权限与角色快照的访问令牌。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuthLoginData],
    responses={401: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def login(
    payload: AuthLoginRequest,
    request: Request,
    db: Session = Depends(get_db),
):
    """校验凭据并签发令牌。"""
    user = authenticate(db, payload.email, payload.password)
    if user is None:
        logger.info("login rejected for %s", payload.email)
        raise api_error(status.HTTP_401_UNAUTHORIZED, "INVALID_CREDENTIALS", "Email atau password salah")

    permissions = get_user_permissions(db, user.id)
    roles = get_user_roles(db, user.id)
    token, _, expires_at = issue_token_for_user(db, user)

    activity_log(db, request, action="LOGIN", description=f"Login: {user.email}", user_id=user.id)
    db.commit()

    return success(
        request,
        {
            "access_token": token,
            "token_type": "bearer",
            "expires_at": expires_at,
            "user": {
                "id": user.id,
                "name": user.name,
                "email": user.email,
                "roles": roles,
                "permissions": permissions,
            },
        },
    )


@router.post(
    "/logout",
    summary="登出",
    description="将当前访问令牌加入进程内黑名单，已登出的令牌立即失效。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuthLogoutData],
    responses={401: {"model": ErrorResponse}},
)
def logout(
    request: Request,
    authorization: str | None = Header(default=None, alias="Authorization"),
):
    """登出并拉黑当前访问令牌。"""
    principal = parse_authorization_header(authorization)
    jti = principal.claims.get("jti")
    exp = principal.claims.get("exp")
    revoked = False
    if isinstance(jti, str) and jti and isinstance(exp, int):
        revoke_token_jti(jti, exp)
        revoked = True
    return success(request, {"revoked": revoked})


@router.get(
    "/me",
    summary="获取当前身份",
    description="返回当前用户资料与令牌中的权限快照。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[AuthUserData],
    responses={401: {"model": ErrorResponse}},
)
def me(
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    """权限取自令牌快照，与路由鉴权口径一致。"""
    user = db.get(User, ctx.user_id)
    if user is None or not user.is_active:
        raise api_error(status.HTTP_401_UNAUTHORIZED, "UNAUTHORIZED", "Anda harus login terlebih dahulu")
    return success(
        request,
        {
            "id": user.id,
            "name": user.name,
            "email": user.email,
            "roles": ctx.principal.roles,
            "permissions": ctx.principal.permissions,
        },
    )
