"""TaskPulse Core Domain Models -- 公共类型导出

所有公共模型类型从此入口导入。
"""

from .enums import STATUS_CYCLE, CycleOutcome, TaskStatus, next_status
from .payloads import DEFAULT_NOTIFICATION_MESSAGE, NotificationPayload
from .task import Task, ensure_utc

__all__ = [
    # 枚举
    "TaskStatus",
    "CycleOutcome",
    "STATUS_CYCLE",
    "next_status",
    # Task
    "Task",
    "ensure_utc",
    # Payloads
    "NotificationPayload",
    "DEFAULT_NOTIFICATION_MESSAGE",
]
