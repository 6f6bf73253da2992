"""应用异常处理注册。

凭据错误按 kind 映射状态码，传输层不依赖错误文案。
"""

import logging

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from idcore.core.errors import CredentialError, ErrorKind
from idcore.utils.response import DEFAULT_ERROR_MESSAGE, error_payload

logger = logging.getLogger("idcore")

# kind -> (状态码, 对外文案)
_CREDENTIAL_ERROR_STATUS: dict[ErrorKind, tuple[int, str]] = {
    ErrorKind.USERNAME_TAKEN: (status.HTTP_409_CONFLICT, "用户名已被占用。"),
    ErrorKind.EMAIL_TAKEN: (status.HTTP_409_CONFLICT, "邮箱已被注册。"),
    ErrorKind.DUPLICATE_IDENTITY: (status.HTTP_409_CONFLICT, "身份信息与已有账号冲突。"),
    ErrorKind.STORE_UNAVAILABLE: (status.HTTP_503_SERVICE_UNAVAILABLE, "服务暂时不可用，请稍后重试。"),
    ErrorKind.INVALID_CREDENTIAL: (status.HTTP_401_UNAUTHORIZED, "账号或密码错误。"),
    ErrorKind.COMPARISON_FAILURE: (status.HTTP_401_UNAUTHORIZED, "账号或密码错误。"),
    ErrorKind.IDENTITY_NOT_FOUND: (status.HTTP_404_NOT_FOUND, "账号不存在。"),
    ErrorKind.RESET_TOKEN_INVALID: (status.HTTP_400_BAD_REQUEST, "重置链接无效或已过期。"),
    ErrorKind.TWO_FACTOR_STATE: (status.HTTP_400_BAD_REQUEST, "双因素状态不允许该操作。"),
}

_HTTP_ERROR_CODES = {
    status.HTTP_400_BAD_REQUEST: "BAD_REQUEST",
    status.HTTP_401_UNAUTHORIZED: "UNAUTHORIZED",
    status.HTTP_403_FORBIDDEN: "FORBIDDEN",
    status.HTTP_404_NOT_FOUND: "NOT_FOUND",
    status.HTTP_409_CONFLICT: "CONFLICT",
}


def credential_error_response(error: CredentialError) -> tuple[int, str, str, dict[str, object]]:
    """返回 (状态码, 错误码, 文案, 细节)。比较故障对外统一呈现为凭据无效。"""
    status_code, message = _CREDENTIAL_ERROR_STATUS.get(
        error.kind, (status.HTTP_400_BAD_REQUEST, "请求处理失败。")
    )
    kind = ErrorKind.INVALID_CREDENTIAL if error.kind == ErrorKind.COMPARISON_FAILURE else error.kind
    details: dict[str, object] = {"status_code": status_code, "reason": str(kind), "field": error.field}
    if kind == ErrorKind.STORE_UNAVAILABLE:
        details["retryable"] = True
    return status_code, str(kind).upper(), message, details


async def credential_exception_handler(request: Request, exc: CredentialError):
    status_code, code, message, details = credential_error_response(exc)
    return JSONResponse(
        status_code=status_code,
        content=error_payload(request, code=code, message=message, details=details),
    )


async def http_exception_handler(request: Request, exc: HTTPException):
    """将协议异常统一包装为标准错误结构。"""
    code = _HTTP_ERROR_CODES.get(exc.status_code, "HTTP_ERROR")
    message = exc.detail if isinstance(exc.detail, str) else "请求处理失败。"
    return JSONResponse(
        status_code=exc.status_code,
        content=error_payload(request, code=code, message=message, details={"status_code": exc.status_code}),
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
        status_code=status.HTTP_422_UNPROCESSABLE_CONTENT,
        content=error_payload(
            request,
            code="VALIDATION_ERROR",
            message="请求参数校验失败。",
            details={
                "status_code": status.HTTP_422_UNPROCESSABLE_CONTENT,
                "reason": "validation_error",
                "errors": normalized_errors,
            },
        ),
    )


async def unexpected_exception_handler(request: Request, exc: Exception):
    """处理未捕获异常，避免内部细节泄露。"""
    logger.exception("unhandled error path=%s", request.url.path)
    return JSONResponse(
        status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
        content=error_payload(
            request,
            code="INTERNAL_ERROR",
            message=DEFAULT_ERROR_MESSAGE,
            details={"status_code": status.HTTP_500_INTERNAL_SERVER_ERROR, "reason": "unexpected_exception"},
        ),
    )


def register_exception_handlers(app: FastAPI) -> None:
    """集中注册异常处理器。"""
    app.exception_handler(CredentialError)(credential_exception_handler)
    app.exception_handler(HTTPException)(http_exception_handler)
    app.exception_handler(RequestValidationError)(validation_exception_handler)
    app.exception_handler(Exception)(unexpected_exception_handler)
