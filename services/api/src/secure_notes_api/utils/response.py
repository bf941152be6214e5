"""统一响应结构工具。

- 成功：`{request_id, data, meta}`，笔记与健康检查接口使用；
- 失败：`{<流程标记>, message, request_id, error: {code, message, details}}`，全部接口共用。
"""

from datetime import datetime, timezone
from time import perf_counter
from typing import Any

from fastapi import Request

DEFAULT_ERROR_MESSAGE = "internal server error"

_SUCCESS_MESSAGE_BY_METHOD = {
    "GET": "ok",
    "POST": "created",
    "PUT": "updated",
    "DELETE": "deleted",
}


def _utc_now_iso() -> str:
    return datetime.now(timezone.utc).isoformat().replace("+00:00", "Z")


def request_id_of(request: Request) -> str | None:
    """读取中间件注入的请求追踪 ID；中间件之外的异常路径可能没有。"""
    return getattr(request.state, "request_id", None)


def _elapsed_ms(request: Request) -> int | None:
    started_at = getattr(request.state, "request_started_at", None)
    if not isinstance(started_at, float):
        return None
    return int((perf_counter() - started_at) * 1000)


def success(request: Request, data: Any, meta: dict[str, Any] | None = None) -> dict[str, Any]:
    """构造统一成功响应结构。"""
    method = request.method.upper()
    final_meta = {
        "message": _SUCCESS_MESSAGE_BY_METHOD.get(method, "ok"),
        "method": method,
        "path": request.url.path,
        "timestamp": _utc_now_iso(),
        "process_ms": _elapsed_ms(request),
    }
    if meta:
        final_meta.update(meta)
    return {"request_id": request_id_of(request), "data": data, "meta": final_meta}


def error_body(
    request: Request,
    *,
    code: str,
    message: str,
    details: dict[str, Any] | None = None,
    extra: dict[str, Any] | None = None,
) -> dict[str, Any]:
    """构造统一错误响应结构。

    `extra` 为认证流程标记（如 `{"verified": false}`），平铺在顶层，
    便于前端沿用 `success`/`verified`/`valid` 字段判断结果。
    """
    final_details = {
        "method": request.method.upper(),
        "path": request.url.path,
        "timestamp": _utc_now_iso(),
    }
    if details:
        final_details.update(details)
    return {
        **(extra or {}),
        "message": message,
        "request_id": request_id_of(request),
        "error": {"code": code, "message": message, "details": final_details},
    }
