"""公文分类接口。"""

from uuid import UUID

from fastapi import APIRouter, Depends, Path, Request, status
from sqlalchemy import func, or_, select
from sqlalchemy.orm import Session

from esurat_api.db.session import get_db
from esurat_api.dependencies import require_permission
from esurat_api.exceptions import conflict, not_found
from esurat_api.models.letter import Letter, LetterCategory
from esurat_api.schemas.common import DeletedData, ErrorResponse, SuccessResponse
from esurat_api.schemas.reference import CategoryData, CategoryListData, CategoryRequest
from esurat_api.services import PermissionAction, activity_log, has_permission
from esurat_api.utils.response import success

router = APIRouter(prefix="/categories", tags=["categories"])


def _get_category_or_404(db: Session, category_id: UUID) -> LetterCategory:
    category = db.get(LetterCategory, category_id)
    if not category:
        raise not_found("CATEGORY_NOT_FOUND", "Kategori tidak ditemukan")
    return category


def _letter_count(db: Session, category_id: UUID) -> int:
    stmt = select(func.count()).select_from(Letter).where(Letter.category_id == category_id)
    return int(db.execute(stmt).scalar_one() or 0)


def _find_duplicate(db: Session, payload: CategoryRequest, *, exclude_id: UUID | None = None) -> bool:
    stmt = select(LetterCategory.id).where(
        or_(LetterCategory.name == payload.name, LetterCategory.code == payload.code)
    )
    if exclude_id is not None:
        stmt = stmt.where(LetterCategory.id != exclude_id)
    return db.execute(stmt).first() is not None


def _category_payload(db: Session, category: LetterCategory) -> dict:
    return {
        "id": category.id,
        "name": category.name,
        "code": category.code,
        "description": category.description,
        "color": category.color,
        "letter_count": _letter_count(db, category.id),
    }


@router.get(
    "",
    summary="分类列表",
    description="按名称排序返回分类，附带引用公文数与当前用户是否可维护。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[CategoryListData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def list_categories(
    request: Request,
    ctx=Depends(require_permission(PermissionAction.CATEGORY_VIEW)),
    db: Session = Depends(get_db),
):
    categories = db.execute(select(LetterCategory).order_by(LetterCategory.name.asc())).scalars().all()
    return success(
        request,
        {
            "items": [_category_payload(db, item) for item in categories],
            "can_manage": has_permission(db, ctx.user_id, PermissionAction.CATEGORY_MANAGE),
        },
    )


@router.post(
    "",
    summary="创建分类",
    description="名称与代码均需全局唯一。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[CategoryData],
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
def create_category(
    payload: CategoryRequest,
    request: Request,
    ctx=Depends(require_permission(PermissionAction.CATEGORY_MANAGE)),
    db: Session = Depends(get_db),
):
    if _find_duplicate(db, payload):
        raise conflict("CATEGORY_CONFLICT", "Nama atau Kode kategori sudah ada", name=payload.name, code=payload.code)

    category = LetterCategory(
        name=payload.name,
        code=payload.code,
        description=payload.description,
        color=payload.color,
    )
    db.add(category)
    db.flush()
    activity_log(
        db,
        request,
        action="CATEGORY_CREATE",
        description=f"Membuat kategori: {category.name}",
        user_id=ctx.user_id,
    )
    db.commit()
    return success(request, _category_payload(db, category))


@router.put(
    "/{category_id}",
    summary="更新分类",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[CategoryData],
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
        422: {"model": ErrorResponse},
    },
)
def update_category(
    payload: CategoryRequest,
    request: Request,
    category_id: UUID = Path(..., description="分类 ID。"),
    ctx=Depends(require_permission(PermissionAction.CATEGORY_MANAGE)),
    db: Session = Depends(get_db),
):
    category = _get_category_or_404(db, category_id)
    if _find_duplicate(db, payload, exclude_id=category.id):
        raise conflict(
            "CATEGORY_CONFLICT", "Nama atau Kode kategori sudah digunakan", name=payload.name, code=payload.code
        )

    category.name = payload.name
    category.code = payload.code
    category.description = payload.description
    category.color = payload.color
    activity_log(
        db,
        request,
        action="CATEGORY_UPDATE",
        description=f"Mengubah kategori: {category.name}",
        user_id=ctx.user_id,
    )
    db.commit()
    return success(request, _category_payload(db, category))


@router.delete(
    "/{category_id}",
    summary="删除分类",
    description="仍被公文引用的分类不可删除。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[DeletedData],
    responses={
        401: {"model": ErrorResponse},
        403: {"model": ErrorResponse},
        404: {"model": ErrorResponse},
        409: {"model": ErrorResponse},
    },
)
def delete_category(
    request: Request,
    category_id: UUID = Path(..., description="分类 ID。"),
    ctx=Depends(require_permission(PermissionAction.CATEGORY_MANAGE)),
    db: Session = Depends(get_db),
):
    category = _get_category_or_404(db, category_id)
    count = _letter_count(db, category.id)
    if count > 0:
        raise conflict(
            "CATEGORY_IN_USE",
            f"Kategori sedang digunakan oleh {count} surat. Tidak dapat dihapus.",
            reference_count=count,
        )

    db.delete(category)
    activity_log(
        db,
        request,
        action="CATEGORY_DELETE",
        description=f"Menghapus kategori: {category.name}",
        user_id=ctx.user_id,
    )
    db.commit()
    return success(request, {"id": category_id, "deleted": True})
