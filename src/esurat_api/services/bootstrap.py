"""系统初始化数据（幂等）。"""

from __future__ import annotations

from dataclasses import dataclass

from sqlalchemy import select
from sqlalchemy.orm import Session

from esurat_api.models.disposition import DispositionInstruction
from esurat_api.models.identity import Permission, Role, RolePermission, User, UserRole
from esurat_api.models.letter import LetterCategory
from esurat_api.services.local_auth import hash_password, normalize_email
from esurat_api.services.permissions import (
    DEFAULT_ROLE_DESCRIPTIONS,
    DEFAULT_ROLE_PERMISSIONS,
    PERMISSION_DESCRIPTIONS,
    permission_module,
)
from esurat_api.services.system_settings import seed_default_settings

DEFAULT_CATEGORIES = (
    ("Surat Keputusan", "SK", "Surat keputusan resmi", "#3B82F6"),
    ("Surat Perintah", "SP", "Surat perintah kerja", "#EF4444"),
    ("Memo Internal", "MEMO", "Memo internal antar unit", "#10B981"),
    ("Surat Keterangan", "SKET", "Surat keterangan", "#F59E0B"),
    ("Surat Tugas", "ST", "Surat penugasan", "#8B5CF6"),
    ("Surat Undangan", "UND", "Surat undangan", "#EC4899"),
)

DEFAULT_INSTRUCTIONS = (
    "Diteliti / diselesaikan",
    "Dipertimbangkan",
    "Untuk diketahui / diperhatikan",
    "Mewakili / menghadiri / mengikuti",
    "Dikoordinasikan",
    "Ditampung permasalahannya",
    "Peringatkan / pendekatan",
    "Pendapat / analisa / saran",
    "Konsep jawaban / sambutan",
    "Konsep laporan",
    "Data diolah",
    "Ditindaklanjuti",
    "Diagendakan / dijadwalkan",
    "Harap dibantu",
    "File",
)


@dataclass
class SeedSummary:
    permissions: int = 0
    roles: int = 0
    categories: int = 0
    instructions: int = 0
    settings: int = 0
    admin_created: bool = False


def seed_permissions(db: Session) -> dict[str, Permission]:
    """补齐权限点，返回 name -> Permission。"""
    existing = {item.name: item for item in db.execute(select(Permission)).scalars().all()}
    for action, description in PERMISSION_DESCRIPTIONS.items():
        if action.value in existing:
            continue
        permission = Permission(name=action.value, description=description, module=permission_module(action.value))
        db.add(permission)
        existing[action.value] = permission
    db.flush()
    return existing


def seed_roles(db: Session, permissions: dict[str, Permission]) -> dict[str, Role]:
    """创建内置角色并补齐默认授权，已有授权不会被移除。"""
    roles: dict[str, Role] = {}
    for role_name, actions in DEFAULT_ROLE_PERMISSIONS.items():
        role = db.execute(select(Role).where(Role.name == role_name)).scalar_one_or_none()
        if role is None:
            role = Role(name=role_name, description=DEFAULT_ROLE_DESCRIPTIONS.get(role_name), is_system=True)
            db.add(role)
            db.flush()
        roles[role_name] = role

        granted = set(
            db.execute(select(RolePermission.permission_id).where(RolePermission.role_id == role.id)).scalars().all()
        )
        for action in sorted(actions):
            permission = permissions[action]
            if permission.id not in granted:
                db.add(RolePermission(role_id=role.id, permission_id=permission.id))
    db.flush()
    return roles


def seed_categories(db: Session) -> int:
    created = 0
    for name, code, description, color in DEFAULT_CATEGORIES:
        if db.execute(select(LetterCategory.id).where(LetterCategory.code == code)).scalar_one_or_none():
            continue
        db.add(LetterCategory(name=name, code=code, description=description, color=color))
        created += 1
    db.flush()
    return created


def seed_instructions(db: Session) -> int:
    created = 0
    for index, name in enumerate(DEFAULT_INSTRUCTIONS, start=1):
        stmt = select(DispositionInstruction.id).where(DispositionInstruction.name == name)
        if db.execute(stmt).scalar_one_or_none():
            continue
        db.add(DispositionInstruction(name=name, sort_order=index, is_active=True))
        created += 1
    db.flush()
    return created


def ensure_admin_user(db: Session, *, email: str, password: str, name: str, admin_role: Role) -> bool:
    """确保管理员账号存在并拥有 Admin 角色，返回是否新建。"""
    normalized = normalize_email(email)
    user = db.execute(select(User).where(User.email == normalized)).scalar_one_or_none()
    created = False
    if user is None:
        user = User(name=name, email=normalized, password_hash=hash_password(password), is_active=True)
        db.add(user)
        db.flush()
        created = True
    link = db.execute(
        select(UserRole.id).where(UserRole.user_id == user.id).where(UserRole.role_id == admin_role.id)
    ).scalar_one_or_none()
    if link is None:
        db.add(UserRole(user_id=user.id, role_id=admin_role.id))
    db.flush()
    return created


def seed_defaults(
    db: Session,
    *,
    admin_email: str | None = None,
    admin_password: str | None = None,
    admin_name: str = "Administrator",
) -> SeedSummary:
    """写入全部默认数据（不提交事务）。"""
    before = len(db.execute(select(Permission.id)).scalars().all())
    permissions = seed_permissions(db)
    roles = seed_roles(db, permissions)
    summary = SeedSummary(
        permissions=len(permissions) - before,
        roles=len(roles),
        categories=seed_categories(db),
        instructions=seed_instructions(db),
        settings=seed_default_settings(db),
    )
    if admin_email and admin_password:
        summary.admin_created = ensure_admin_user(
            db,
            email=admin_email,
            password=admin_password,
            name=admin_name,
            admin_role=roles["Admin"],
        )
    return summary
