"""应用异常处理注册与业务异常构造。"""

import logging
from typing import Any

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from esurat_api.utils.response import DEFAULT_ERROR_MESSAGE, error_payload

logger = logging.getLogger(__name__)

_DEFAULT_CODES = {
    status.HTTP_400_BAD_REQUEST: "BAD_REQUEST",
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_409_CONFLICT: "CONFLICT",
    status.HTTP_413_REQUEST_ENTITY_TOO_LARGE: "PAYLOAD_TOO_LARGE",
    status.HTTP_422_UNPROCESSABLE_ENTITY: "VALIDATION_ERROR",
}

_DEFAULT_MESSAGES = {
    status.HTTP_400_BAD_REQUEST: "Permintaan tidak valid",
    status.HTTP_401_UNAUTHORIZED: "Anda harus login terlebih dahulu",
    status.HTTP_403_FORBIDDEN: "Anda tidak memiliki akses untuk melakukan tindakan ini",
    status.HTTP_404_NOT_FOUND: "Data tidak ditemukan",
    status.HTTP_409_CONFLICT: "Data bertentangan dengan kondisi saat ini",
    status.HTTP_422_UNPROCESSABLE_ENTITY: "Data tidak valid",
}


_GENERIC_DETAILS = {"forbidden", "unauthorized", "not authenticated"}


def _default_message(status_code: int) -> str:
    return _DEFAULT_MESSAGES.get(status_code, "Permintaan gagal diproses")


def _error_parts(detail: object, status_code: int) -> tuple[str, str, dict[str, object]]:
    """把 HTTPException.detail 拆成 (code, message, details)。

    业务异常的 detail 是 {code, message, details}；框架抛出的字符串 detail
    若只是通用英文短语，则换成本地化默认文案。
    """
    code = _DEFAULT_CODES.get(status_code, "HTTP_ERROR")
    message = _default_message(status_code)
    details: dict[str, object] = {"status_code": status_code}

    if isinstance(detail, dict):
        code = str(detail.get("code") or code)
        message = str(detail.get("message") or message)
        extra = detail.get("details")
        if isinstance(extra, dict):
            details.update(extra)
        elif extra is not None:
            details["details"] = extra
    elif isinstance(detail, str):
        if detail.strip().lower() not in _GENERIC_DETAILS:
            message = detail
    elif detail is not None:
        details["detail"] = detail
    return code, message, details


def api_error(
    status_code: int,
    code: str,
    message: str,
    /,
    **details: Any,
) -> HTTPException:
    """构造带业务错误码的协议异常。"""
    payload: dict[str, Any] = {"code": code, "message": message}
    if details:
        payload["details"] = details
    return HTTPException(status_code=status_code, detail=payload)


def not_found(code: str, message: str) -> HTTPException:
    return api_error(status.HTTP_404_NOT_FOUND, code, message)


def conflict(code: str, message: str, /, **details: Any) -> HTTPException:
    return api_error(status.HTTP_409_CONFLICT, code, message, **details)


def bad_request(code: str, message: str, /, **details: Any) -> HTTPException:
    return api_error(status.HTTP_400_BAD_REQUEST, code, message, **details)


def invalid(message: str, /, **details: Any) -> HTTPException:
    """业务层面的输入校验失败。"""
    return api_error(status.HTTP_422_UNPROCESSABLE_ENTITY, "VALIDATION_ERROR", message, **details)


def payload_too_large(message: str) -> HTTPException:
    return api_error(status.HTTP_413_REQUEST_ENTITY_TOO_LARGE, "PAYLOAD_TOO_LARGE", message)


def upload_rejected(exc: Exception) -> HTTPException:
    """把上传校验失败映射为 413 或 422。"""
    message = getattr(exc, "message", None) or str(exc)
    if getattr(exc, "too_large", False):
        return payload_too_large(message)
    return invalid(message)


def forbidden(message: str | None = None) -> HTTPException:
    return api_error(
        status.HTTP_403_FORBIDDEN,
        "FORBIDDEN",
        message or _default_message(status.HTTP_403_FORBIDDEN),
    )


def _validation_message(raw: object) -> str:
    text = str(raw or "")
    # pydantic 对自定义 ValueError 会加前缀。
    return text.removeprefix("Value error, ")


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    code, message, details = _error_parts(exc.detail, exc.status_code)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(request, code=code, message=message, details=details),
        headers=getattr(exc, "headers", None),
    )


def _field_path(loc: object) -> str:
    parts = loc if isinstance(loc, (list, tuple)) else []
    return ".".join(str(item) for item in parts if item != "body")


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """请求体或参数校验失败：message 取第一条错误，完整列表放进 details.errors。"""
    errors = [
        {"field": _field_path(err.get("loc")), "message": _validation_message(err.get("msg")), "type": err.get("type")}
        for err in exc.errors()
    ]
    unprocessable = status.HTTP_422_UNPROCESSABLE_ENTITY
    return JSONResponse(
        status_code=unprocessable,
        content=error_payload(
            request,
            code="VALIDATION_ERROR",
            message=errors[0]["message"] if errors else _default_message(unprocessable),
            details={"status_code": unprocessable, "errors": errors},
        ),
    )


async def unexpected_exception_handler(request: Request, exc: Exception):
    logger.exception("unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    internal = status.HTTP_500_INTERNAL_SERVER_ERROR
    return JSONResponse(
        status_code=internal,
        content=error_payload(
            request,
            code="INTERNAL_ERROR",
            message=DEFAULT_ERROR_MESSAGE,
            details={"status_code": internal},
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
    app.add_exception_handler(RequestValidationError, validation_exception_handler)
    app.add_exception_handler(Exception, unexpected_exception_handler)
