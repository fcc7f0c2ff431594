"""权限点定义与数据库驱动的授权查询。

授权有两条路径：
1. `has_permission` 等函数实时查询 角色-权限 关联表，用于需要最新结果的场景（如 can_manage 标记）。
2. 路由依赖 `require_permission` 只检查登录时写入令牌的权限快照，不访问数据库；
   角色或权限变更要在用户重新登录后才生效。
"""

from collections.abc import Iterable
from enum import StrEnum
from uuid import UUID

from sqlalchemy import func, select
from sqlalchemy.orm import Session

from esurat_api.core.security import AuthenticatedPrincipal
from esurat_api.exceptions import forbidden
from esurat_api.models.identity import Permission, Role, RolePermission, User, UserRole


class PermissionAction(StrEnum):
    """权限点标识。"""

    LETTER_CREATE = "letter.create"
    LETTER_VIEW = "letter.view"
    LETTER_VIEW_ALL = "letter.view_all"
    LETTER_EDIT = "letter.edit"
    LETTER_DELETE = "letter.delete"
    LETTER_APPROVE = "letter.approve"
    LETTER_REJECT = "letter.reject"
    LETTER_SIGN = "letter.sign"
    LETTER_DOWNLOAD = "letter.download"

    USER_CREATE = "user.create"
    USER_VIEW = "user.view"
    USER_EDIT = "user.edit"
    USER_DELETE = "user.delete"

    ROLE_CREATE = "role.create"
    ROLE_VIEW = "role.view"
    ROLE_EDIT = "role.edit"
    ROLE_DELETE = "role.delete"
    ROLE_ASSIGN = "role.assign"

    SETTINGS_VIEW = "settings.view"
    SETTINGS_EDIT = "settings.edit"

    CATEGORY_VIEW = "category.view"
    CATEGORY_MANAGE = "category.manage"

    ARCHIVE_CODE_VIEW = "archive_code.view"
    ARCHIVE_CODE_MANAGE = "archive_code.manage"

    TEMPLATE_VIEW = "template.view"
    TEMPLATE_MANAGE = "template.manage"

    LOG_VIEW = "log.view"

    DISPOSITION_CREATE = "disposition.create"
    DISPOSITION_VIEW = "disposition.view"
    DISPOSITION_VIEW_ALL = "disposition.view_all"
    DISPOSITION_UPDATE = "disposition.update"
    DISPOSITION_SET_NUMBER = "disposition.set_number"


# 权限点说明，用于初始化 permissions 表。
PERMISSION_DESCRIPTIONS: dict[PermissionAction, str] = {
    PermissionAction.LETTER_CREATE: "Membuat surat baru",
    PermissionAction.LETTER_VIEW: "Melihat surat sendiri",
    PermissionAction.LETTER_VIEW_ALL: "Melihat semua surat",
    PermissionAction.LETTER_EDIT: "Mengedit surat",
    PermissionAction.LETTER_DELETE: "Menghapus surat",
    PermissionAction.LETTER_APPROVE: "Menyetujui surat",
    PermissionAction.LETTER_REJECT: "Menolak surat",
    PermissionAction.LETTER_SIGN: "Menandatangani surat",
    PermissionAction.LETTER_DOWNLOAD: "Mengunduh surat",
    PermissionAction.USER_CREATE: "Membuat pengguna baru",
    PermissionAction.USER_VIEW: "Melihat daftar pengguna",
    PermissionAction.USER_EDIT: "Mengedit pengguna",
    PermissionAction.USER_DELETE: "Menghapus pengguna",
    PermissionAction.ROLE_CREATE: "Membuat role baru",
    PermissionAction.ROLE_VIEW: "Melihat daftar role",
    PermissionAction.ROLE_EDIT: "Mengedit role",
    PermissionAction.ROLE_DELETE: "Menghapus role",
    PermissionAction.ROLE_ASSIGN: "Menetapkan role ke pengguna",
    PermissionAction.SETTINGS_VIEW: "Melihat pengaturan",
    PermissionAction.SETTINGS_EDIT: "Mengubah pengaturan",
    PermissionAction.CATEGORY_VIEW: "Melihat kategori surat",
    PermissionAction.CATEGORY_MANAGE: "Mengelola kategori surat",
    PermissionAction.ARCHIVE_CODE_VIEW: "Melihat kode arsip",
    PermissionAction.ARCHIVE_CODE_MANAGE: "Mengelola kode arsip",
    PermissionAction.TEMPLATE_VIEW: "Melihat template surat",
    PermissionAction.TEMPLATE_MANAGE: "Mengelola template surat",
    PermissionAction.LOG_VIEW: "Melihat log aktivitas",
    PermissionAction.DISPOSITION_CREATE: "Membuat disposisi",
    PermissionAction.DISPOSITION_VIEW: "Melihat disposisi sendiri",
    PermissionAction.DISPOSITION_VIEW_ALL: "Melihat semua disposisi",
    PermissionAction.DISPOSITION_UPDATE: "Mengupdate status disposisi",
    PermissionAction.DISPOSITION_SET_NUMBER: "Mengisi nomor disposisi",
}

_READ_REFERENCE_ACTIONS = {
    PermissionAction.CATEGORY_VIEW.value,
    PermissionAction.ARCHIVE_CODE_VIEW.value,
    PermissionAction.TEMPLATE_VIEW.value,
}

# 内置角色及其默认权限点。
DEFAULT_ROLE_PERMISSIONS: dict[str, set[str]] = {
    "Admin": {action.value for action in PermissionAction},
    "Ketua Tim": {
        PermissionAction.LETTER_VIEW.value,
        PermissionAction.LETTER_VIEW_ALL.value,
        PermissionAction.LETTER_APPROVE.value,
        PermissionAction.LETTER_REJECT.value,
        PermissionAction.LETTER_DOWNLOAD.value,
        PermissionAction.DISPOSITION_CREATE.value,
        PermissionAction.DISPOSITION_VIEW.value,
        PermissionAction.DISPOSITION_UPDATE.value,
        *_READ_REFERENCE_ACTIONS,
    },
    "Kepsta": {
        PermissionAction.LETTER_VIEW.value,
        PermissionAction.LETTER_VIEW_ALL.value,
        PermissionAction.LETTER_SIGN.value,
        PermissionAction.LETTER_DOWNLOAD.value,
        PermissionAction.DISPOSITION_CREATE.value,
        PermissionAction.DISPOSITION_VIEW.value,
        PermissionAction.DISPOSITION_VIEW_ALL.value,
        PermissionAction.DISPOSITION_UPDATE.value,
        *_READ_REFERENCE_ACTIONS,
    },
    "Staff": {
        PermissionAction.LETTER_CREATE.value,
        PermissionAction.LETTER_VIEW.value,
        PermissionAction.LETTER_EDIT.value,
        PermissionAction.LETTER_DOWNLOAD.value,
        PermissionAction.DISPOSITION_VIEW.value,
        PermissionAction.DISPOSITION_UPDATE.value,
        *_READ_REFERENCE_ACTIONS,
    },
}

DEFAULT_ROLE_DESCRIPTIONS = {
    "Admin": "Administrator dengan akses penuh ke seluruh sistem",
    "Ketua Tim": "Menyetujui atau menolak surat dari anggota tim",
    "Kepsta": "Menandatangani surat yang telah disetujui",
    "Staff": "Membuat dan mengelola surat sendiri",
}


def permission_module(name: str) -> str:
    """权限点所属模块，即第一个点号前的部分。"""
    return name.split(".", 1)[0]


def has_permission(db: Session, user_id: UUID, permission_name: str) -> bool:
    """实时判断用户是否通过任一角色拥有指定权限点。"""
    stmt = (
        select(func.count())
        .select_from(RolePermission)
        .join(Permission, Permission.id == RolePermission.permission_id)
        .join(UserRole, UserRole.role_id == RolePermission.role_id)
        .where(UserRole.user_id == user_id)
        .where(Permission.name == permission_name)
    )
    return (db.execute(stmt).scalar_one() or 0) > 0


def get_user_permissions(db: Session, user_id: UUID) -> list[str]:
    """返回用户全部角色合并后的权限点（去重、排序）。"""
    stmt = (
        select(Permission.name)
        .join(RolePermission, RolePermission.permission_id == Permission.id)
        .join(UserRole, UserRole.role_id == RolePermission.role_id)
        .where(UserRole.user_id == user_id)
        .distinct()
    )
    return sorted(db.execute(stmt).scalars().all())


def get_user_roles(db: Session, user_id: UUID) -> list[str]:
    """返回用户的角色名列表。"""
    stmt = (
        select(Role.name)
        .join(UserRole, UserRole.role_id == Role.id)
        .where(UserRole.user_id == user_id)
        .order_by(Role.name.asc())
    )
    return list(db.execute(stmt).scalars().all())


def has_any_permission(db: Session, user_id: UUID, permission_names: Iterable[str]) -> bool:
    granted = set(get_user_permissions(db, user_id))
    return any(name in granted for name in permission_names)


def has_all_permissions(db: Session, user_id: UUID, permission_names: Iterable[str]) -> bool:
    granted = set(get_user_permissions(db, user_id))
    return all(name in granted for name in permission_names)


def principal_has_permission(principal: AuthenticatedPrincipal, action: str) -> bool:
    """基于令牌权限快照判断，不访问数据库。"""
    return action in principal.permissions


def ensure_permission(principal: AuthenticatedPrincipal, action: str, message: str | None = None) -> None:
    """令牌快照中缺少权限点时抛出 403。"""
    if not principal_has_permission(principal, action):
        raise forbidden(message)


def active_users_with_permission(db: Session, permission_name: str) -> list[dict[str, object]]:
    """通过任一角色拥有该权限点的启用用户，按姓名排序；role 取首个角色名。"""
    holders = (
        select(UserRole.user_id)
        .join(RolePermission, RolePermission.role_id == UserRole.role_id)
        .join(Permission, Permission.id == RolePermission.permission_id)
        .where(Permission.name == permission_name)
    )
    users = db.execute(
        select(User).where(User.id.in_(holders)).where(User.is_active.is_(True)).order_by(User.name.asc())
    ).scalars().all()
    if not users:
        return []

    first_role: dict[UUID, str] = {}
    role_rows = db.execute(
        select(UserRole.user_id, Role.name)
        .join(Role, Role.id == UserRole.role_id)
        .where(UserRole.user_id.in_([user.id for user in users]))
        .order_by(Role.name.asc())
    ).all()
    for user_id, role_name in role_rows:
        first_role.setdefault(user_id, role_name)
    return [
        {"id": user.id, "name": user.name, "email": user.email, "role": first_role.get(user.id, "User")}
        for user in users
    ]
