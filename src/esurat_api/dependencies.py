"""请求上下文依赖。

职责:
1. 解析并校验访问令牌。
2. 生成后续路由统一使用的 RequestContext。
3. 基于令牌中的权限快照做路由级权限限制。
"""

from dataclasses import dataclass
from uuid import UUID

from fastapi import Depends
from fastapi.security import HTTPAuthorizationCredentials, HTTPBearer

from esurat_api.core.security import UNAUTHORIZED, AuthenticatedPrincipal, parse_authorization_header
from esurat_api.services.permissions import principal_has_permission
from esurat_api.exceptions import forbidden

bearer_scheme = HTTPBearer(auto_error=False)


@dataclass
class RequestContext:
    """请求上下文。

    该对象在路由层作为统一输入，避免每个接口重复解析令牌。
    """

    # 当前请求用户 ID。
    user_id: UUID
    # 认证主体原始信息（来自 JWT）。
    principal: AuthenticatedPrincipal

    def can(self, action: str) -> bool:
        """按令牌权限快照判断。"""
        return principal_has_permission(self.principal, action)


def get_current_principal(
    credentials: HTTPAuthorizationCredentials | None = Depends(bearer_scheme),
) -> AuthenticatedPrincipal:
    """提取并解析当前请求认证主体。"""
    authorization = None
    if credentials is not None and credentials.credentials:
        authorization = f"{credentials.scheme} {credentials.credentials}"
    return parse_authorization_header(authorization)


def get_request_context(
    principal: AuthenticatedPrincipal = Depends(get_current_principal),
) -> RequestContext:
    """把令牌主体转换为请求上下文。"""
    try:
        user_id = UUID(principal.subject)
    except ValueError as exc:
        raise UNAUTHORIZED from exc
    return RequestContext(user_id=user_id, principal=principal)


def require_permission(action: str):
    """按权限点做路由级限制，只读取令牌快照，不访问数据库。"""

    def _dep(ctx: RequestContext = Depends(get_request_context)) -> RequestContext:
        if not ctx.can(action):
            raise forbidden()
        return ctx

    return _dep
