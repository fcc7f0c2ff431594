"""用户管理接口。"""

from uuid import UUID

from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy import delete, func, or_, select
from sqlalchemy.orm import Session

from esurat_api.db.session import get_db
from esurat_api.dependencies import RequestContext, get_request_context, require_permission
from esurat_api.exceptions import conflict, invalid, not_found
from esurat_api.models.disposition import Disposition, DispositionRecipient
from esurat_api.models.identity import Role, TeamMember, User, UserRole
from esurat_api.models.letter import Letter, LetterApprover
from esurat_api.models.system import Template
from esurat_api.schemas.common import DeletedData, ErrorResponse, SuccessResponse
from esurat_api.schemas.identity import UserCreateRequest, UserData, UserOptionData, UserUpdateRequest
from esurat_api.services import PermissionAction, active_users_with_permission, activity_log, hash_password
from esurat_api.utils.response import success

router = APIRouter(prefix="/users", tags=["users"])


def _get_user_or_404(db: Session, user_id: UUID) -> User:
    user = db.get(User, user_id)
    if not user:
        raise not_found("USER_NOT_FOUND", "Pengguna tidak ditemukan")
    return user


def _ensure_email_available(db: Session, email: str, *, exclude_id: UUID | None = None) -> None:
    stmt = select(User.id).where(User.email == email)
    if exclude_id is not None:
        stmt = stmt.where(User.id != exclude_id)
    if db.execute(stmt).first() is not None:
        raise conflict("USER_EMAIL_CONFLICT", "Email sudah digunakan", email=email)


def _replace_roles(db: Session, user_id: UUID, role_ids: list[UUID]) -> None:
    """整体替换用户角色。"""
    unique_ids = list(dict.fromkeys(role_ids))
    if unique_ids:
        found = db.execute(select(Role.id).where(Role.id.in_(unique_ids))).scalars().all()
        if len(found) != len(unique_ids):
            raise invalid("Role tidak valid")
    db.execute(delete(UserRole).where(UserRole.user_id == user_id))
    for role_id in unique_ids:
        db.add(UserRole(user_id=user_id, role_id=role_id))


def _reference_count(db: Session, user_id: UUID) -> int:
    """公文、审批链、批示与模板中对该用户的引用数；活动日志不计入。"""
    statements = [
        select(func.count())
        .select_from(Letter)
        .where(
            or_(
                Letter.creator_id == user_id,
                Letter.assigned_approver_id == user_id,
                Letter.assigned_signer_id == user_id,
                Letter.approver_id == user_id,
                Letter.signer_id == user_id,
            )
        ),
        select(func.count()).select_from(LetterApprover).where(LetterApprover.user_id == user_id),
        select(func.count()).select_from(Disposition).where(Disposition.from_user_id == user_id),
        select(func.count()).select_from(DispositionRecipient).where(DispositionRecipient.user_id == user_id),
        select(func.count()).select_from(Template).where(Template.uploader_id == user_id),
    ]
    return sum(db.execute(stmt).scalar_one() for stmt in statements)


def _user_payload(db: Session, user: User) -> dict:
    roles = db.execute(
        select(Role.id, Role.name)
        .join(UserRole, UserRole.role_id == Role.id)
        .where(UserRole.user_id == user.id)
        .order_by(Role.name.asc())
    ).all()
    return {
        "id": user.id,
        "name": user.name,
        "email": user.email,
        "phone_number": user.phone_number,
        "is_active": user.is_active,
        "roles": [{"id": role_id, "name": name} for role_id, name in roles],
    }


@router.get(
    "",
    summary="用户列表",
    description="按姓名排序返回全部用户及其角色。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[UserData]],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def list_users(
    request: Request,
    ctx=Depends(require_permission(PermissionAction.USER_VIEW)),
    db: Session = Depends(get_db),
):
    users = db.execute(select(User).order_by(User.name.asc())).scalars().all()
    return success(request, [_user_payload(db, user) for user in users])


@router.get(
    "/approvers",
    summary="可选审批人",
    description="拥有 letter.approve 的启用用户，按姓名排序；创建公文时选择审批人使用。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[UserOptionData]],
    responses={401: {"model": ErrorResponse}},
)
def list_approvers(
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    return success(request, active_users_with_permission(db, PermissionAction.LETTER_APPROVE))


@router.get(
    "/signers",
    summary="可选签署人",
    description="拥有 letter.sign 的启用用户，按姓名排序。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[UserOptionData]],
    responses={401: {"model": ErrorResponse}},
)
def list_signers(
    request: Request,
    ctx: RequestContext = Depends(get_request_context),
    db: Session = Depends(get_db),
):
    return success(request, active_users_with_permission(db, PermissionAction.LETTER_SIGN))


@router.get(
    "/{user_id}",
    summary="用户详情",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[UserData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 404: {"model": ErrorResponse}},
)
def get_user(
    request: Request,
    user_id: UUID = Path(..., description="用户 ID。"),
    ctx=Depends(require_permission(PermissionAction.USER_VIEW)),
    db: Session = Depends(get_db),
):
    return success(request, _user_payload(db, _get_user_or_404(db, user_id)))


@router.post(
    "",
    summary="创建用户",
    description="邮箱全局唯一，可同时分配角色。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[UserData],
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
def create_user(
    payload: UserCreateRequest,
    request: Request,
    ctx=Depends(require_permission(PermissionAction.USER_CREATE)),
    db: Session = Depends(get_db),
):
    _ensure_email_available(db, payload.email)
    user = User(
        name=payload.name,
        email=payload.email,
        password_hash=hash_password(payload.password),
        phone_number=payload.phone_number,
        is_active=payload.is_active,
    )
    db.add(user)
    db.flush()
    _replace_roles(db, user.id, payload.role_ids)

    activity_log(
        db,
        request,
        action="USER_CREATE",
        description=f"Membuat pengguna: {user.email}",
        user_id=ctx.user_id,
    )
    db.commit()
    return success(request, _user_payload(db, user))


@router.put(
    "/{user_id}",
    summary="更新用户",
    description="未提供的字段保持不变；提供 role_ids 时整体替换角色。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[UserData],
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
def update_user(
    payload: UserUpdateRequest,
    request: Request,
    user_id: UUID = Path(..., description="用户 ID。"),
    ctx=Depends(require_permission(PermissionAction.USER_EDIT)),
    db: Session = Depends(get_db),
):
    user = _get_user_or_404(db, user_id)
    if payload.email is not None and payload.email != user.email:
        _ensure_email_available(db, payload.email, exclude_id=user.id)
        user.email = payload.email
    if payload.name is not None:
        user.name = payload.name
    if payload.phone_number is not None:
        user.phone_number = payload.phone_number.strip() or None
    if payload.is_active is not None:
        user.is_active = payload.is_active
    if payload.password:
        user.password_hash = hash_password(payload.password)
    if payload.role_ids is not None:
        _replace_roles(db, user.id, payload.role_ids)

    activity_log(
        db,
        request,
        action="USER_UPDATE",
        description=f"Mengubah pengguna: {user.email}",
        user_id=ctx.user_id,
    )
    db.commit()
    return success(request, _user_payload(db, user))


@router.delete(
    "/{user_id}",
    summary="删除用户",
    description="仍被公文、审批链、批示或模板引用的用户不可删除。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[DeletedData],
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
def delete_user(
    request: Request,
    user_id: UUID = Path(..., description="用户 ID。"),
    ctx=Depends(require_permission(PermissionAction.USER_DELETE)),
    db: Session = Depends(get_db),
):
    user = _get_user_or_404(db, user_id)
    if user.id == ctx.user_id:
        raise conflict("USER_SELF_DELETE", "Tidak dapat menghapus akun sendiri")
    references = _reference_count(db, user.id)
    if references > 0:
        raise conflict(
            "USER_IN_USE",
            "Pengguna masih terkait dengan surat, disposisi, atau template. Nonaktifkan pengguna sebagai gantinya.",
            reference_count=references,
        )

    db.execute(delete(UserRole).where(UserRole.user_id == user.id))
    db.execute(delete(TeamMember).where(TeamMember.user_id == user.id))
    db.delete(user)
    activity_log(
        db,
        request,
        action="USER_DELETE",
        description=f"Menghapus pengguna: {user.email}",
        user_id=ctx.user_id,
    )
    db.commit()
    return success(request, {"id": user_id, "deleted": True})
