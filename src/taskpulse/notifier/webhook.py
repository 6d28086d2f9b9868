"""WebhookGateway -- 到期通知出站投递

每次 deliver() 只做一次 HTTP POST：
- 整个请求（连接、发送、接收）受 timeout_s 约束，超时后取消请求并中止连接
- 仅 2xx 视为成功，其余（非 2xx、网络错误、超时、异常响应）一律失败
- 不重试、不修改任务状态，是否标记 webhook_sent 由扫描器决定
"""

import asyncio
import time
from datetime import UTC, datetime

import httpx
import structlog
from taskpulse.core.models import NotificationPayload, Task

from .exceptions import WebhookDeliveryError
from .models import DeliveryResult

log = structlog.get_logger()

DEFAULT_TIMEOUT_S = 10.0
DEFAULT_USER_AGENT = "TaskPulse-Webhook/1.0"


def describe_window(lookahead_s: int) -> str:
    """把窗口长度转成提示语中的短语，如 3600 -> "1 hour"、1800 -> "30 minutes" """
    if lookahead_s % 3600 == 0:
        value, unit = lookahead_s // 3600, "hour"
    elif lookahead_s % 60 == 0:
        value, unit = lookahead_s // 60, "minute"
    else:
        value, unit = lookahead_s, "second"
    return f"{value} {unit}" if value == 1 else f"{value} {unit}s"


def build_notification_message(lookahead_s: int) -> str:
    return f"Task due date is approaching (within {describe_window(lookahead_s)})"


class WebhookGateway:
    """Webhook 投递网关

    可注入共享的 httpx.AsyncClient（测试时配合 MockTransport）；
    未注入时自建 client，并在 aclose() 中释放。
    """

    def __init__(
        self,
        timeout_s: float = DEFAULT_TIMEOUT_S,
        lookahead_s: int = 3600,
        user_agent: str = DEFAULT_USER_AGENT,
        client: httpx.AsyncClient | None = None,
    ) -> None:
        """初始化投递网关

        Args:
            timeout_s: 单次投递总时限（秒）
            lookahead_s: 到期窗口长度，用于生成提示语
            user_agent: 出站请求 User-Agent
            client: 可选的共享 httpx.AsyncClient
        """
        self._timeout_s = timeout_s
        self._message = build_notification_message(lookahead_s)
        self._headers = {
            "Content-Type": "application/json",
            "User-Agent": user_agent,
        }
        self._owns_client = client is None
        self._client = client or httpx.AsyncClient(timeout=timeout_s)

    @property
    def timeout_s(self) -> float:
        return self._timeout_s

    def build_payload(self, task: Task, timestamp: datetime | None = None) -> NotificationPayload:
        """构造通知 payload，timestamp 默认为当前时刻"""
        return NotificationPayload.from_task(
            task,
            message=self._message,
            timestamp=timestamp or datetime.now(UTC),
        )

    async def deliver(self, task: Task) -> DeliveryResult:
        """对单个任务做一次投递尝试

        Args:
            task: 带 webhook_url 的任务

        Returns:
            DeliveryResult，此方法不抛出异常（取消除外）
        """
        if not task.has_webhook:
            return DeliveryResult(
                task_id=task.task_id,
                success=False,
                error="webhook_url is empty",
            )

        url = task.webhook_url.strip()
        start_time = time.monotonic()
        status_code: int | None = None

        try:
            payload = self.build_payload(task).to_wire()
            async with asyncio.timeout(self._timeout_s):
                response = await self._client.post(
                    url,
                    json=payload,
                    headers=self._headers,
                    timeout=self._timeout_s,
                )
            status_code = response.status_code
            if not response.is_success:
                raise WebhookDeliveryError(url, response.status_code, response.reason_phrase)
        except (TimeoutError, httpx.TimeoutException) as e:
            error = f"timeout after {self._timeout_s}s"
            return self._failure(task, url, start_time, status_code, error, e)
        except Exception as e:
            error = str(e) or type(e).__name__
            return self._failure(task, url, start_time, status_code, error, e)

        duration_ms = int((time.monotonic() - start_time) * 1000)
        log.info(
            "webhook_delivered",
            task_id=task.task_id,
            url=url,
            status_code=status_code,
            duration_ms=duration_ms,
        )
        return DeliveryResult(
            task_id=task.task_id,
            success=True,
            status_code=status_code,
            duration_ms=duration_ms,
        )

    def _failure(
        self,
        task: Task,
        url: str,
        start_time: float,
        status_code: int | None,
        error: str,
        exc: Exception,
    ) -> DeliveryResult:
        duration_ms = int((time.monotonic() - start_time) * 1000)
        log.warning(
            "webhook_delivery_failed",
            task_id=task.task_id,
            url=url,
            status_code=status_code,
            error=error,
            error_type=type(exc).__name__,
            duration_ms=duration_ms,
        )
        return DeliveryResult(
            task_id=task.task_id,
            success=False,
            status_code=status_code,
            error=error,
            duration_ms=duration_ms,
        )

    async def aclose(self) -> None:
        """释放自建的 HTTP client（注入的 client 由调用方负责）"""
        if self._owns_client:
            await self._client.aclose()
