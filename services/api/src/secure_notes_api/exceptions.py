"""认证流程异常定义与应用异常处理注册。"""

import logging
from typing import Any

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException

from secure_notes_api.utils.response import DEFAULT_ERROR_MESSAGE, error_body, request_id_of

logger = logging.getLogger(__name__)

# 请求参数校验失败统一使用 422。
VALIDATION_STATUS_CODE = 422


class AuthFlowError(Exception):
    """认证流程异常基类。

    每个子类固定一个机器可识别错误码与 HTTP 状态码；`message` 面向客户端，
    只描述失败类别，不暴露具体是哪一项校验失败。
    """

    code = "AUTH_ERROR"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "request rejected"

    def __init__(self, message: str | None = None, *, extra: dict[str, Any] | None = None) -> None:
        self.message = message or self.default_message
        # 附加到响应体顶层的流程标记，例如 {"verified": false}。
        self.extra = dict(extra or {})
        super().__init__(self.message)


class DuplicateUser(AuthFlowError):
    code = "DUPLICATE_USER"
    status_code = status.HTTP_400_BAD_REQUEST
    default_message = "User already exists"


class InvalidCredentials(AuthFlowError):
    code = "INVALID_CREDENTIALS"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "invalid credentials"


class InvalidMfaCode(AuthFlowError):
    code = "INVALID_MFA_CODE"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "invalid verification code"


class InvalidOrExpiredToken(AuthFlowError):
    code = "INVALID_OR_EXPIRED_TOKEN"
    status_code = status.HTTP_401_UNAUTHORIZED
    default_message = "Invalid or expired token"


class NotFound(AuthFlowError):
    code = "NOT_FOUND"
    status_code = status.HTTP_404_NOT_FOUND
    default_message = "User not found"


class MfaEnrollmentRequired(AuthFlowError):
    code = "MFA_ENROLLMENT_REQUIRED"
    status_code = status.HTTP_403_FORBIDDEN
    default_message = "MFA enrollment must be completed before login"


class MfaAlreadyEnrolled(AuthFlowError):
    code = "MFA_ALREADY_ENROLLED"
    status_code = status.HTTP_409_CONFLICT
    default_message = "MFA is already enrolled for this account"


class InternalError(AuthFlowError):
    code = "INTERNAL_ERROR"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    default_message = DEFAULT_ERROR_MESSAGE


class QrGenerationFailed(InternalError):
    code = "QR_GENERATION_FAILED"
    default_message = "QR code generation failed"


def _default_http_error_code(status_code: int) -> str:
    if status_code == status.HTTP_400_BAD_REQUEST:
        return "BAD_REQUEST"
    if status_code == status.HTTP_401_UNAUTHORIZED:
        return "UNAUTHORIZED"
    if status_code == status.HTTP_403_FORBIDDEN:
        return "FORBIDDEN"
    if status_code == status.HTTP_404_NOT_FOUND:
        return "NOT_FOUND"
    if status_code == status.HTTP_409_CONFLICT:
        return "CONFLICT"
    if status_code == VALIDATION_STATUS_CODE:
        return "VALIDATION_ERROR"
    return "HTTP_ERROR"


def _default_http_message(status_code: int) -> str:
    if status_code == status.HTTP_400_BAD_REQUEST:
        return "bad request"
    if status_code == status.HTTP_401_UNAUTHORIZED:
        return "unauthorized"
    if status_code == status.HTTP_403_FORBIDDEN:
        return "forbidden"
    if status_code == status.HTTP_404_NOT_FOUND:
        return "not found"
    if status_code == status.HTTP_409_CONFLICT:
        return "conflict"
    if status_code == VALIDATION_STATUS_CODE:
        return "validation failed"
    return "request failed"


def _parse_http_detail(detail: object, status_code: int) -> tuple[str, str, dict[str, object]]:
    code = _default_http_error_code(status_code)
    message = _default_http_message(status_code)
    details: dict[str, object] = {"status_code": status_code, "reason": code.lower()}

    if isinstance(detail, dict):
        code = str(detail.get("code") or code)
        message = str(detail.get("message") or message)
        raw_details = detail.get("details")
        if isinstance(raw_details, dict):
            details.update(raw_details)
        return code, message, details

    if isinstance(detail, str) and detail.strip():
        return code, detail, details
    return code, message, details


async def auth_flow_exception_handler(request: Request, exc: AuthFlowError):
    """将认证流程异常翻译为状态码 + 统一错误结构。"""
    if isinstance(exc, InternalError):
        # 仅内部错误记录完整堆栈，客户端只拿到通用信息。
        logger.error(
            "internal error request_id=%s code=%s",
            request_id_of(request),
            exc.code,
            exc_info=exc,
        )
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(
            request,
            code=exc.code,
            message=exc.message,
            details={"status_code": exc.status_code, "reason": exc.code.lower()},
            extra=exc.extra,
        ),
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    """将协议异常（含路由未命中）统一包装为标准错误结构。"""
    code, message, details = _parse_http_detail(exc.detail, exc.status_code)
    return JSONResponse(
        status_code=exc.status_code,
        content=error_body(request, code=code, message=message, details=details),
        headers=getattr(exc, "headers", None),
    )


async def validation_exception_handler(request: Request, exc: RequestValidationError):
    """统一处理请求参数校验错误。"""
    normalized_errors = [
        {
            "field": ".".join(str(item) for item in err.get("loc", []) if item != "body"),
            "message": err.get("msg"),
            "type": err.get("type"),
        }
        for err in exc.errors()
    ]
    return JSONResponse(
        status_code=VALIDATION_STATUS_CODE,
        content=error_body(
            request,
            code="VALIDATION_ERROR",
            message="validation failed",
            details={
                "status_code": VALIDATION_STATUS_CODE,
                "reason": "validation_error",
                "errors": normalized_errors,
            },
        ),
    )


async def unexpected_exception_handler(request: Request, exc: Exception):
    """处理未捕获异常，避免内部细节泄露。"""
    logger.error("unexpected error request_id=%s", request_id_of(request), exc_info=exc)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_body(
            request,
            code="INTERNAL_ERROR",
            message=DEFAULT_ERROR_MESSAGE,
            details={
                "status_code": status.HTTP_500_INTERNAL_SERVER_ERROR,
                "reason": "unexpected_exception",
            },
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """集中注册异常处理器。"""
    app.exception_handler(AuthFlowError)(auth_flow_exception_handler)
    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(RequestValidationError)(validation_exception_handler)
    app.exception_handler(Exception)(unexpected_exception_handler)
