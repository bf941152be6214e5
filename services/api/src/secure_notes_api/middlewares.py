"""应用中间件注册。"""

import logging
import re
import uuid
from time import perf_counter

from fastapi import FastAPI, Request

logger = logging.getLogger(__name__)

REQUEST_ID_HEADER = "X-Request-Id"
# 只沿用形态安全的上游追踪 ID，其余情况重新生成。
_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._\-]{8,64}$")


def _resolve_request_id(request: Request) -> str:
    incoming = request.headers.get(REQUEST_ID_HEADER)
    if incoming and _REQUEST_ID_PATTERN.match(incoming):
        return incoming
    return str(uuid.uuid4())


async def request_id_middleware(request: Request, call_next):
    """注入请求追踪 ID，并通过响应头返回 ID 与处理耗时。"""
    request.state.request_id = _resolve_request_id(request)
    request.state.request_started_at = perf_counter()
    response = await call_next(request)
    elapsed_ms = round((perf_counter() - request.state.request_started_at) * 1000, 2)
    response.headers[REQUEST_ID_HEADER] = request.state.request_id
    response.headers["X-Process-Time-Ms"] = str(elapsed_ms)
    # 只记录方法、路径与状态码，请求体可能包含口令或验证码。
    logger.debug(
        "%s %s -> %s in %sms request_id=%s",
        request.method,
        request.url.path,
        response.status_code,
        elapsed_ms,
        request.state.request_id,
    )
    return response


def register_middlewares(app: FastAPI) -> None:
    """集中注册中间件。"""
    app.middleware("http")(request_id_middleware)
