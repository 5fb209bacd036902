"""TraceMiddleware -- 为事件/任务操作绑定 trace_id

从 /api/events/{event_id}... 或 /api/tasks/{task_id}... 路径中提取 ULID。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

_ULID_LENGTH = 26
_TRACED_SEGMENTS = {"events": "event", "tasks": "task"}


def extract_trace_id(path: str) -> str | None:
    parts = path.split("/")
    for i, part in enumerate(parts[:-1]):
        prefix = _TRACED_SEGMENTS.get(part)
        if prefix is None:
            continue
        candidate = parts[i + 1]
        # 排除 /api/events/trigger 等子路由
        if len(candidate) == _ULID_LENGTH and candidate.isalnum():
            return f"trace-{prefix}-{candidate}"
    return None


class TraceMiddleware(BaseHTTPMiddleware):
    """实体级追踪中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        trace_id = extract_trace_id(request.url.path)
        if trace_id:
            structlog.contextvars.bind_contextvars(trace_id=trace_id)
        return await call_next(request)
