"""团队与成员管理接口。

团队只做组织归属展示，成员的系统权限仍由角色决定。
"""

from uuid import UUID

from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy import delete, select
from sqlalchemy.orm import Session

from esurat_api.db.session import get_db
from esurat_api.dependencies import require_permission
from esurat_api.exceptions import conflict, invalid, not_found
from esurat_api.models.identity import Team, TeamMember, User
from esurat_api.schemas.common import DeletedData, ErrorResponse, SuccessResponse
from esurat_api.schemas.team import (
    TeamCandidateData,
    TeamCreateRequest,
    TeamData,
    TeamMemberAddRequest,
    TeamMemberRoleRequest,
    TeamUpdateRequest,
)
from esurat_api.services import PermissionAction, activity_log
from esurat_api.utils.response import success

router = APIRouter(prefix="/teams", tags=["teams"])

_ERRORS = {
    401: {"model": ErrorResponse},
    403: {"model": ErrorResponse},
    404: {"model": ErrorResponse},
}


def _get_team_or_404(db: Session, team_id: UUID) -> Team:
    team = db.get(Team, team_id)
    if not team:
        raise not_found("TEAM_NOT_FOUND", "Tim tidak ditemukan")
    return team


def _get_member_or_404(db: Session, team_id: UUID, user_id: UUID) -> TeamMember:
    member = db.execute(
        select(TeamMember).where(TeamMember.team_id == team_id).where(TeamMember.user_id == user_id)
    ).scalar_one_or_none()
    if member is None:
        raise not_found("TEAM_MEMBER_NOT_FOUND", "Anggota tim tidak ditemukan")
    return member


def _ensure_name_available(db: Session, name: str, *, exclude_id: UUID | None = None) -> None:
    stmt = select(Team.id).where(Team.name == name)
    if exclude_id is not None:
        stmt = stmt.where(Team.id != exclude_id)
    if db.execute(stmt).first() is not None:
        raise conflict("TEAM_NAME_CONFLICT", "Nama tim sudah digunakan", name=name)


def _team_payload(db: Session, team: Team) -> dict:
    rows = db.execute(
        select(TeamMember, User)
        .join(User, User.id == TeamMember.user_id)
        .where(TeamMember.team_id == team.id)
        .order_by(TeamMember.joined_at.asc())
    ).all()
    members = [
        {
            "user_id": user.id,
            "name": user.name,
            "email": user.email,
            "is_active": user.is_active,
            "role": member.role,
            "joined_at": member.joined_at,
        }
        for member, user in rows
    ]
    return {
        "id": team.id,
        "name": team.name,
        "description": team.description,
        "is_active": team.is_active,
        "member_count": len(members),
        "members": members,
    }


@router.get(
    "",
    summary="团队列表",
    description="按名称排序返回团队及成员。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[TeamData]],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def list_teams(
    request: Request,
    ctx=Depends(require_permission(PermissionAction.USER_VIEW)),
    db: Session = Depends(get_db),
):
    teams = db.execute(select(Team).order_by(Team.name.asc())).scalars().all()
    return success(request, [_team_payload(db, team) for team in teams])


@router.get(
    "/{team_id}",
    summary="团队详情",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[TeamData],
    responses=_ERRORS,
)
def get_team(
    request: Request,
    team_id: UUID = Path(..., description="团队 ID。"),
    ctx=Depends(require_permission(PermissionAction.USER_VIEW)),
    db: Session = Depends(get_db),
):
    return success(request, _team_payload(db, _get_team_or_404(db, team_id)))


@router.post(
    "",
    summary="创建团队",
    description="团队名全局唯一。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[TeamData],
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
def create_team(
    payload: TeamCreateRequest,
    request: Request,
    ctx=Depends(require_permission(PermissionAction.USER_CREATE)),
    db: Session = Depends(get_db),
):
    _ensure_name_available(db, payload.name)
    team = Team(name=payload.name, description=payload.description, is_active=True)
    db.add(team)
    db.flush()
    activity_log(db, request, action="TEAM_CREATE", description=f"Membuat tim: {team.name}", user_id=ctx.user_id)
    db.commit()
    return success(request, _team_payload(db, team))


@router.put(
    "/{team_id}",
    summary="更新团队",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[TeamData],
    responses={**_ERRORS, 409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def update_team(
    payload: TeamUpdateRequest,
    request: Request,
    team_id: UUID = Path(..., description="团队 ID。"),
    ctx=Depends(require_permission(PermissionAction.USER_EDIT)),
    db: Session = Depends(get_db),
):
    team = _get_team_or_404(db, team_id)
    if payload.name is not None and payload.name != team.name:
        _ensure_name_available(db, payload.name, exclude_id=team.id)
        team.name = payload.name
    if "description" in payload.model_fields_set:
        team.description = payload.description
    if payload.is_active is not None:
        team.is_active = payload.is_active
    activity_log(db, request, action="TEAM_UPDATE", description=f"Mengubah tim: {team.name}", user_id=ctx.user_id)
    db.commit()
    return success(request, _team_payload(db, team))


@router.delete(
    "/{team_id}",
    summary="删除团队",
    description="同时移除全部成员关系。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[DeletedData],
    responses=_ERRORS,
)
def delete_team(
    request: Request,
    team_id: UUID = Path(..., description="团队 ID。"),
    ctx=Depends(require_permission(PermissionAction.USER_DELETE)),
    db: Session = Depends(get_db),
):
    team = _get_team_or_404(db, team_id)
    db.execute(delete(TeamMember).where(TeamMember.team_id == team.id))
    db.delete(team)
    activity_log(db, request, action="TEAM_DELETE", description=f"Menghapus tim: {team.name}", user_id=ctx.user_id)
    db.commit()
    return success(request, {"id": team_id, "deleted": True})


@router.get(
    "/{team_id}/available-users",
    summary="可加入的用户",
    description="尚未加入该团队的启用用户，按姓名排序。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[list[TeamCandidateData]],
    responses=_ERRORS,
)
def list_available_users(
    request: Request,
    team_id: UUID = Path(..., description="团队 ID。"),
    ctx=Depends(require_permission(PermissionAction.USER_VIEW)),
    db: Session = Depends(get_db),
):
    team = _get_team_or_404(db, team_id)
    joined = select(TeamMember.user_id).where(TeamMember.team_id == team.id)
    users = db.execute(
        select(User).where(User.is_active.is_(True)).where(User.id.not_in(joined)).order_by(User.name.asc())
    ).scalars().all()
    return success(request, [{"id": user.id, "name": user.name, "email": user.email} for user in users])


@router.post(
    "/{team_id}/members",
    summary="添加成员",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[TeamData],
    responses={**_ERRORS, 409: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def add_member(
    payload: TeamMemberAddRequest,
    request: Request,
    team_id: UUID = Path(..., description="团队 ID。"),
    ctx=Depends(require_permission(PermissionAction.USER_EDIT)),
    db: Session = Depends(get_db),
):
    team = _get_team_or_404(db, team_id)
    user = db.get(User, payload.user_id)
    if user is None:
        raise not_found("USER_NOT_FOUND", "Pengguna tidak ditemukan")
    if not user.is_active:
        raise invalid("Pengguna tidak aktif")
    exists = db.execute(
        select(TeamMember.id).where(TeamMember.team_id == team.id).where(TeamMember.user_id == user.id)
    ).first()
    if exists is not None:
        raise conflict("TEAM_MEMBER_EXISTS", "Pengguna sudah menjadi anggota tim ini")

    db.add(TeamMember(team_id=team.id, user_id=user.id, role=payload.role))
    activity_log(
        db,
        request,
        action="TEAM_MEMBER_ADD",
        description=f"Menambahkan {user.name} ke tim {team.name}",
        user_id=ctx.user_id,
    )
    db.commit()
    return success(request, _team_payload(db, team))


@router.put(
    "/{team_id}/members/{user_id}",
    summary="修改成员角色",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[TeamData],
    responses={**_ERRORS, 422: {"model": ErrorResponse}},
)
def update_member_role(
    payload: TeamMemberRoleRequest,
    request: Request,
    team_id: UUID = Path(..., description="团队 ID。"),
    user_id: UUID = Path(..., description="成员用户 ID。"),
    ctx=Depends(require_permission(PermissionAction.USER_EDIT)),
    db: Session = Depends(get_db),
):
    team = _get_team_or_404(db, team_id)
    member = _get_member_or_404(db, team.id, user_id)
    member.role = payload.role
    activity_log(
        db,
        request,
        action="TEAM_MEMBER_ROLE",
        description=f"Mengubah peran anggota tim {team.name} menjadi {payload.role}",
        user_id=ctx.user_id,
    )
    db.commit()
    return success(request, _team_payload(db, team))


@router.delete(
    "/{team_id}/members/{user_id}",
    summary="移除成员",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[TeamData],
    responses=_ERRORS,
)
def remove_member(
    request: Request,
    team_id: UUID = Path(..., description="团队 ID。"),
    user_id: UUID = Path(..., description="成员用户 ID。"),
    ctx=Depends(require_permission(PermissionAction.USER_EDIT)),
    db: Session = Depends(get_db),
):
    team = _get_team_or_404(db, team_id)
    db.delete(_get_member_or_404(db, team.id, user_id))
    activity_log(
        db,
        request,
        action="TEAM_MEMBER_REMOVE",
        description=f"Mengeluarkan anggota dari tim {team.name}",
        user_id=ctx.user_id,
    )
    db.commit()
    return success(request, _team_payload(db, team))
