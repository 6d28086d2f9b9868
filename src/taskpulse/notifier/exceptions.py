"""Notifier 异常体系

这些异常只在 notifier 包内部流转：WebhookGateway 把投递异常转换为 DeliveryResult，
DueDateScanner 把查询异常转换为 ABORTED 的 ScanReport，均不向周期之外传播。
"""


class NotifierError(Exception):
    """Notifier 包基础异常"""


class WebhookDeliveryError(NotifierError):
    """webhook 端点返回非 2xx 状态"""

    def __init__(self, url: str, status_code: int, reason: str = "") -> None:
        """
        Args:
            url: 投递目标地址
            status_code: 响应状态码
            reason: 响应 reason phrase
        """
        super().__init__(f"HTTP {status_code} {reason}".rstrip() + f" from {url}")
        self.url = url
        self.status_code = status_code


class CandidateQueryError(NotifierError):
    """候选任务查询失败（存储不可用等瞬时故障）"""

    def __init__(self, original_error: Exception) -> None:
        super().__init__(f"候选任务查询失败: {original_error}")
        self.original_error = original_error
