"""TraceMiddleware

为任务相关请求绑定 task_id，贯穿该请求的全部日志。
task_id 从 /api/tasks/{task_id}... 或 /api/webhooks/{task_id} 路径中提取。
"""

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response

_TASK_SEGMENTS = ("tasks", "webhooks")


def extract_task_id(path: str) -> int | None:
    """从路径中提取整数 task_id，非任务路径（如 /api/tasks/report）返回 None"""
    parts = path.strip("/").split("/")
    for i, part in enumerate(parts):
        if part in _TASK_SEGMENTS and i + 1 < len(parts):
            candidate = parts[i + 1]
            if candidate.isdigit():
                return int(candidate)
    return None


class TraceMiddleware(BaseHTTPMiddleware):
    """任务级追踪中间件 -- 为任务操作绑定 task_id"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        task_id = extract_task_id(request.url.path)
        if task_id is not None:
            structlog.contextvars.bind_contextvars(task_id=task_id)

        return await call_next(request)
