"""错误响应 -- 统一 JSON 信封 {"error": {"code", "message"}}

BizSignalError 子类通过异常处理器映射为 HTTP 状态码。
"""

import structlog
from fastapi import FastAPI, Request
from starlette.responses import JSONResponse

from bizsignal.core.exceptions import (
    AssignmentError,
    BizSignalError,
    ChecklistItemNotFoundError,
    DetectionError,
    EventNotFoundError,
    EventStatusConflictError,
    InvalidTaskTransitionError,
    PersistenceError,
    TaskNotFoundError,
    UnknownModuleError,
)

log = structlog.get_logger()

# (异常类型, HTTP 状态码, 错误码)，按顺序匹配
_ERROR_MAP: list[tuple[type[BizSignalError], int, str]] = [
    (EventNotFoundError, 404, "EVENT_NOT_FOUND"),
    (TaskNotFoundError, 404, "TASK_NOT_FOUND"),
    (ChecklistItemNotFoundError, 404, "CHECKLIST_ITEM_NOT_FOUND"),
    (UnknownModuleError, 404, "MODULE_NOT_FOUND"),
    (EventStatusConflictError, 409, "EVENT_STATUS_CONFLICT"),
    (InvalidTaskTransitionError, 409, "INVALID_TASK_TRANSITION"),
    (DetectionError, 422, "INVALID_SNAPSHOT"),
    (AssignmentError, 422, "ASSIGNMENT_FAILED"),
    (PersistenceError, 503, "STORE_UNAVAILABLE"),
]


def error_response(status_code: int, code: str, message: str) -> JSONResponse:
    return JSONResponse(
        status_code=status_code,
        content={"error": {"code": code, "message": message}},
    )


async def bizsignal_error_handler(request: Request, exc: Exception) -> JSONResponse:
    for error_type, status_code, code in _ERROR_MAP:
        if isinstance(exc, error_type):
            if status_code >= 500:
                log.error("request_failed", code=code, error=str(exc))
            return error_response(status_code, code, str(exc))
    log.error("request_failed", code="INTERNAL_ERROR", error=str(exc))
    return error_response(500, "INTERNAL_ERROR", str(exc))


def install_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(BizSignalError, bizsignal_error_handler)
