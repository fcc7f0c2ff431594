"""请求追踪中间件。"""

import logging
from time import perf_counter
import uuid

from fastapi import FastAPI, Request

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-Id"


async def request_id_middleware(request: Request, call_next):
    """沿用调用方传入的请求 ID，没有则生成；响应头回写 ID 与耗时。"""
    started_at = perf_counter()
    request_id = request.headers.get(REQUEST_ID_HEADER) or uuid.uuid4().hex
    request.state.request_id = request_id
    request.state.request_started_at = started_at

    response = await call_next(request)

    elapsed_ms = round((perf_counter() - started_at) * 1000, 2)
    response.headers[REQUEST_ID_HEADER] = request_id
    response.headers["X-Process-Time-Ms"] = str(elapsed_ms)
    logger.info(
        "%s %s %s %.2fms rid=%s", request.method, request.url.path, response.status_code, elapsed_ms, request_id
    )
    return response


def register_middlewares(app: FastAPI) -> None:
    app.middleware("http")(request_id_middleware)
