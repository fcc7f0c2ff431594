"""成功与错误响应信封。"""

from datetime import datetime, timezone
from time import perf_counter
from typing import Any
from urllib.parse import quote

from fastapi import Request

DEFAULT_ERROR_MESSAGE = "Terjadi kesalahan pada server. Silakan coba lagi."

_SUCCESS_MESSAGE_BY_METHOD = {
    "GET": "Data berhasil dimuat",
    "PUT": "Berhasil diperbarui",
    "PATCH": "Berhasil diperbarui",
    "DELETE": "Berhasil dihapus",
}


def _request_trace(request: Request) -> dict[str, Any]:
    """method、path 与 UTC 时间戳，成功 meta 与错误 details 共用。"""
    return {
        "method": request.method.upper(),
        "path": request.url.path,
        "timestamp": datetime.now(timezone.utc).isoformat().replace("+00:00", "Z"),
    }


def _elapsed_ms(request: Request) -> int | None:
    started_at = getattr(request.state, "request_started_at", None)
    if not isinstance(started_at, float):
        return None
    return int((perf_counter() - started_at) * 1000)


def success(request: Request, data: Any, meta: dict[str, Any] | None = None) -> dict[str, Any]:
    trace = _request_trace(request)
    final_meta = {
        "message": _SUCCESS_MESSAGE_BY_METHOD.get(trace["method"], "Berhasil"),
        **trace,
        "process_ms": _elapsed_ms(request),
        **(meta or {}),
    }
    return {
        "success": True,
        "request_id": getattr(request.state, "request_id", None),
        "data": data,
        "meta": final_meta,
    }


def error_payload(
    request: Request,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
) -> dict[str, Any]:
    return {
        "success": False,
        "request_id": getattr(request.state, "request_id", None),
        "error": {
            "code": code,
            "message": message,
            "details": {**_request_trace(request), **(details or {})},
        },
    }


def pagination_meta(*, page: int, limit: int, total: int) -> dict[str, Any]:
    """列表分页信息；limit 为 0 时总页数记 0。"""
    total_pages = -(-total // limit) if limit > 0 else 0
    return {"pagination": {"page": page, "limit": limit, "total": total, "total_pages": total_pages}}


def attachment_disposition(filename: str) -> str:
    """下载头。文件名含非 ASCII 或引号时，附加 RFC 5987 的 filename*，filename 退化为下划线替换版。"""
    fallback = "".join(ch if " " <= ch <= "~" and ch not in '"\\' else "_" for ch in filename)
    if fallback == filename:
        return f'attachment; filename="{filename}"'
    return f"attachment; filename=\"{fallback}\"; filename*=UTF-8''{quote(filename, safe='')}"
