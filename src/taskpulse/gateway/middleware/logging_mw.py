"""LoggingMiddleware

每个 HTTP 请求一个 request_id：沿用调用方的 X-Request-ID（过长或含非法字符时
重新生成 ULID），绑定到 structlog contextvars 并回写到响应头。
task_id 由内层 TraceMiddleware 绑定，绑定不会回传到本层，
结束日志单独带上路径中的 task_id、状态码与耗时；/health、/ready 只记 debug。
"""

import re
import time

import structlog
from starlette.middleware.base import BaseHTTPMiddleware, RequestResponseEndpoint
from starlette.requests import Request
from starlette.responses import Response
from ulid import ULID

from .trace_mw import extract_task_id

REQUEST_ID_HEADER = "X-Request-ID"

_REQUEST_ID_PATTERN = re.compile(r"^[A-Za-z0-9._:-]{1,64}$")

# 健康检查路径由编排器高频轮询
_QUIET_PATHS = frozenset({"/health", "/ready"})

log = structlog.get_logger()


def resolve_request_id(incoming: str | None) -> str:
    """合法的上游 request_id 原样沿用，否则生成新的 ULID"""
    if incoming and _REQUEST_ID_PATTERN.match(incoming):
        return incoming
    return str(ULID())


class LoggingMiddleware(BaseHTTPMiddleware):
    """请求级日志中间件"""

    async def dispatch(
        self, request: Request, call_next: RequestResponseEndpoint
    ) -> Response:
        request_id = resolve_request_id(request.headers.get(REQUEST_ID_HEADER))
        path = request.url.path

        structlog.contextvars.clear_contextvars()
        structlog.contextvars.bind_contextvars(
            request_id=request_id,
            method=request.method,
            path=path,
        )
        emit = log.adebug if path in _QUIET_PATHS else log.ainfo
        await emit("request_started")

        started = time.perf_counter()
        try:
            response = await call_next(request)
        except Exception:
            await log.aexception(
                "request_failed",
                task_id=extract_task_id(path),
                duration_ms=_elapsed_ms(started),
            )
            raise

        await emit(
            "request_completed",
            status_code=response.status_code,
            task_id=extract_task_id(path),
            duration_ms=_elapsed_ms(started),
        )

        response.headers[REQUEST_ID_HEADER] = request_id
        return response


def _elapsed_ms(started: float) -> float:
    return round((time.perf_counter() - started) * 1000, 2)
