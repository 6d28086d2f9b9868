"""TaskPulse Notifier -- 到期 webhook 通知

notifier 包的公开接口导出：投递网关、扫描器、调度器与配置。
"""

# 配置
from .config import NotifierConfig, load_notifier_config

# 异常
from .exceptions import CandidateQueryError, NotifierError, WebhookDeliveryError

# 数据模型
from .models import DeliveryResult, ScanReport

# 核心组件
from .scanner import DueDateScanner
from .scheduler import ScanScheduler
from .webhook import WebhookGateway, build_notification_message

__all__ = [
    "DeliveryResult",
    "ScanReport",
    "WebhookGateway",
    "build_notification_message",
    "DueDateScanner",
    "ScanScheduler",
    "NotifierConfig",
    "load_notifier_config",
    "NotifierError",
    "WebhookDeliveryError",
    "CandidateQueryError",
]
