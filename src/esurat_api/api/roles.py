"""角色与权限点管理接口。"""

from uuid import UUID

from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy import delete, func, select
from sqlalchemy.orm import Session

from esurat_api.db.session import get_db
from esurat_api.dependencies import require_permission
from esurat_api.exceptions import conflict, invalid, not_found
from esurat_api.models.identity import Permission, Role, RolePermission, UserRole
from esurat_api.schemas.common import DeletedData, ErrorResponse, SuccessResponse
from esurat_api.schemas.identity import PermissionData, RoleCreateRequest, RoleData, RoleUpdateRequest
from esurat_api.services import PermissionAction, activity_log
from esurat_api.utils.response import success

router = APIRouter(prefix="/roles", tags=["roles"])


def _get_role_or_404(db: Session, role_id: UUID) -> Role:
    role = db.get(Role, role_id)
    if not role:
        raise not_found("ROLE_NOT_FOUND", "Role tidak ditemukan")
    return role


def _ensure_name_available(db: Session, name: str, *, exclude_id: UUID | None = None) -> None:
    stmt = select(Role.id).where(Role.name == name)
    if exclude_id is not None:
        stmt = stmt.where(Role.id != exclude_id)
    if db.execute(stmt).first() is not None:
        raise conflict("ROLE_NAME_CONFLICT", "Nama role sudah digunakan", name=name)


def _replace_permissions(db: Session, role_id: UUID, permission_ids: list[UUID]) -> None:
    unique_ids = list(dict.fromkeys(permission_ids))
    if unique_ids:
        found = db.execute(select(Permission.id).where(Permission.id.in_(unique_ids))).scalars().all()
        if len(found) != len(unique_ids):
            raise invalid("Permission tidak valid")
    db.execute(delete(RolePermission).where(RolePermission.role_id == role_id))
    for permission_id in unique_ids:
        db.add(RolePermission(role_id=role_id, permission_id=permission_id))


def _role_payload(db: Session, role: Role) -> dict:
    permissions = db.execute(
        select(Permission)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .where(RolePermission.role_id == role.id)
        .order_by(Permission.module.asc(), Permission.name.asc())
    ).scalars().all()
    user_count = db.execute(
        select(func.count()).select_from(UserRole).where(UserRole.role_id == role.id)
    ).scalar_one()
    return {
        "id": role.id,
        "name": role.name,
        "description": role.description,
        "is_system": role.is_system,
        "user_count": user_count or 0,
        "permissions": permissions,
    }


@router.get(
    "/permissions",
    summary="权限点列表",
    description="按模块与名称排序返回全部权限点。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[PermissionData]],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def list_permissions(
    request: Request,
    ctx=Depends(require_permission(PermissionAction.ROLE_VIEW)),
    db: Session = Depends(get_db),
):
    rows = db.execute(select(Permission).order_by(Permission.module.asc(), Permission.name.asc())).scalars().all()
    return success(request, rows)


@router.get(
    "",
    summary="角色列表",
    description="返回全部角色，附带用户数与已授予权限点。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[RoleData]],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def list_roles(
    request: Request,
    ctx=Depends(require_permission(PermissionAction.ROLE_VIEW)),
    db: Session = Depends(get_db),
):
    roles = db.execute(select(Role).order_by(Role.name.asc())).scalars().all()
    return success(request, [_role_payload(db, role) for role in roles])


@router.get(
    "/{role_id}",
    summary="角色详情",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[RoleData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def get_role(
    request: Request,
    role_id: UUID = Path(..., description="角色 ID。"),
    ctx=Depends(require_permission(PermissionAction.ROLE_VIEW)),
    db: Session = Depends(get_db),
):
    return success(request, _role_payload(db, _get_role_or_404(db, role_id)))


@router.post(
    "",
    summary="创建角色",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[RoleData],
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
def create_role(
    payload: RoleCreateRequest,
    request: Request,
    ctx=Depends(require_permission(PermissionAction.ROLE_CREATE)),
    db: Session = Depends(get_db),
):
    _ensure_name_available(db, payload.name)
    role = Role(name=payload.name, description=payload.description, is_system=False)
    db.add(role)
    db.flush()
    _replace_permissions(db, role.id, payload.permission_ids)

    activity_log(db, request, action="ROLE_CREATE", description=f"Membuat role: {role.name}", user_id=ctx.user_id)
    db.commit()
    return success(request, _role_payload(db, role))


@router.put(
    "/{role_id}",
    summary="更新角色",
    description="系统内置角色不可修改；提供 permission_ids 时整体替换权限点。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[RoleData],
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
def update_role(
    payload: RoleUpdateRequest,
    request: Request,
    role_id: UUID = Path(..., description="角色 ID。"),
    ctx=Depends(require_permission(PermissionAction.ROLE_EDIT)),
    db: Session = Depends(get_db),
):
    role = _get_role_or_404(db, role_id)
    if role.is_system:
        raise conflict("ROLE_SYSTEM_LOCKED", "Role sistem tidak dapat diubah")

    if payload.name is not None and payload.name != role.name:
        _ensure_name_available(db, payload.name, exclude_id=role.id)
        role.name = payload.name
    if payload.description is not None:
        role.description = payload.description.strip() or None
    if payload.permission_ids is not None:
        _replace_permissions(db, role.id, payload.permission_ids)

    activity_log(db, request, action="ROLE_UPDATE", description=f"Mengubah role: {role.name}", user_id=ctx.user_id)
    db.commit()
    return success(request, _role_payload(db, role))


@router.delete(
    "/{role_id}",
    summary="删除角色",
    description="系统内置角色不可删除，删除时同时清理用户与权限关联。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[DeletedData],
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
def delete_role(
    request: Request,
    role_id: UUID = Path(..., description="角色 ID。"),
    ctx=Depends(require_permission(PermissionAction.ROLE_DELETE)),
    db: Session = Depends(get_db),
):
    role = _get_role_or_404(db, role_id)
    if role.is_system:
        raise conflict("ROLE_SYSTEM_LOCKED", "Role sistem tidak dapat dihapus")

    db.execute(delete(RolePermission).where(RolePermission.role_id == role.id))
    db.execute(delete(UserRole).where(UserRole.role_id == role.id))
    db.delete(role)
    activity_log(db, request, action="ROLE_DELETE", description=f"Menghapus role: {role.name}", user_id=ctx.user_id)
    db.commit()
    return success(request, {"id": role_id, "deleted": True})
