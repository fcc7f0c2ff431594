"""路由模块导出集合。"""

from . import (
    activity_logs,
    archive_codes,
    auth,
    categories,
    dispositions,
    health,
    letters,
    roles,
    settings,
    teams,
    templates,
    uploads,
    users,
)

__all__ = [
    "activity_logs",
    "archive_codes",
    "auth",
    "categories",
    "dispositions",
    "health",
    "letters",
    "roles",
    "settings",
    "teams",
    "templates",
    "uploads",
    "users",
]
