"""服务层能力导出集合。"""

from esurat_api.services.activity import activity_log, list_activity_logs
from esurat_api.services.bootstrap import seed_defaults
from esurat_api.services.local_auth import authenticate, hash_password, issue_token_for_user, normalize_email
from esurat_api.services.permissions import (
    PermissionAction,
    active_users_with_permission,
    ensure_permission,
    get_user_permissions,
    get_user_roles,
    has_all_permissions,
    has_any_permission,
    has_permission,
    permission_module,
)
from esurat_api.services.storage import UploadArea, UploadRejected, UnsafePathError, resolve_upload_path
from esurat_api.services.system_settings import SettingValidationError, load_system_settings, update_system_settings

__all__ = [
    "activity_log",
    "list_activity_logs",
    "seed_defaults",
    "authenticate",
    "hash_password",
    "issue_token_for_user",
    "normalize_email",
    "PermissionAction",
    "active_users_with_permission",
    "ensure_permission",
    "get_user_permissions",
    "get_user_roles",
    "has_all_permissions",
    "has_any_permission",
    "has_permission",
    "permission_module",
    "UploadArea",
    "UploadRejected",
    "UnsafePathError",
    "resolve_upload_path",
    "SettingValidationError",
    "load_system_settings",
    "update_system_settings",
]
