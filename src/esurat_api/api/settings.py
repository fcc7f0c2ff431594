"""系统设置接口。"""

from fastapi import APIRouter, Depends, Request, status
from sqlalchemy.orm import Session

from esurat_api.db.session import get_db
from esurat_api.dependencies import require_permission
from esurat_api.exceptions import invalid
from esurat_api.schemas.common import ErrorResponse, SuccessResponse
from esurat_api.schemas.settings import SettingsData, SettingsUpdateRequest, WhatsAppSettingsRequest
from esurat_api.services import (
    PermissionAction,
    SettingValidationError,
    activity_log,
    load_system_settings,
    update_system_settings,
)
from esurat_api.utils.response import success

router = APIRouter(prefix="/settings", tags=["settings"])


def _apply(db: Session, request: Request, *, user_id, values: dict, description: str) -> dict:
    try:
        settings, changed = update_system_settings(db, values)
    except SettingValidationError as exc:
        raise invalid(str(exc)) from exc
    activity_log(
        db,
        request,
        action="SETTINGS_UPDATE",
        description=description,
        user_id=user_id,
        metadata={"changed_keys": changed},
    )
    db.commit()
    return {"settings": settings, "changed_keys": changed}


@router.get(
    "",
    summary="读取系统设置",
    description="缺失的设置项返回默认值。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[SettingsData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def get_system_settings(
    request: Request,
    ctx=Depends(require_permission(PermissionAction.SETTINGS_VIEW)),
    db: Session = Depends(get_db),
):
    return success(request, {"settings": load_system_settings(db), "changed_keys": []})


@router.put(
    "",
    summary="更新系统设置",
    description="按登记键批量更新，未登记的键或类型不符时整体拒绝。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[SettingsData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def put_system_settings(
    payload: SettingsUpdateRequest,
    request: Request,
    ctx=Depends(require_permission(PermissionAction.SETTINGS_EDIT)),
    db: Session = Depends(get_db),
):
    data = _apply(
        db,
        request,
        user_id=ctx.user_id,
        values=payload.values,
        description="Mengubah pengaturan sistem",
    )
    return success(request, data)


@router.get(
    "/whatsapp",
    summary="读取消息网关配置",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[WhatsAppSettingsRequest],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}},
)
def get_whatsapp_settings(
    request: Request,
    ctx=Depends(require_permission(PermissionAction.SETTINGS_VIEW)),
    db: Session = Depends(get_db),
):
    settings = load_system_settings(db)
    return success(
        request,
        {"api_url": settings.wa_api_url, "session": settings.wa_session, "api_key": settings.wa_api_key},
    )


@router.put(
    "/whatsapp",
    summary="更新消息网关配置",
    description="仅保存配置，不做连通性校验。",
    status_code=status.HTTP_200_OK,
    response_model=SuccessResponse[SettingsData],
    responses={401: {"model": ErrorResponse}, 403: {"model": ErrorResponse}, 422: {"model": ErrorResponse}},
)
def put_whatsapp_settings(
    payload: WhatsAppSettingsRequest,
    request: Request,
    ctx=Depends(require_permission(PermissionAction.SETTINGS_EDIT)),
    db: Session = Depends(get_db),
):
    data = _apply(
        db,
        request,
        user_id=ctx.user_id,
        values={
            "wa.api_url": payload.api_url.strip(),
            "wa.session": payload.session.strip() or "default",
            "wa.api_key": payload.api_key.strip(),
        },
        description="Mengubah pengaturan WhatsApp",
    )
    return success(request, data)
