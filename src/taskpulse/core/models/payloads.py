"""Webhook 通知 payload

出站 JSON 使用 camelCase 键名（taskId / dueDate ...），Python 侧保持 snake_case。
timestamp 取构造时刻（即投递尝试时刻），仅供接收方观测，不保证重试间的顺序。
"""

from datetime import UTC, datetime
from typing import Any

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .task import Task

# 默认提示语（lookahead = 1 小时）
DEFAULT_NOTIFICATION_MESSAGE = "Task due date is approaching (within 1 hour)"


class NotificationPayload(BaseModel):
    """到期通知 payload"""

    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    task_id: int
    title: str
    description: str | None = None
    due_date: datetime
    status: str
    message: str = DEFAULT_NOTIFICATION_MESSAGE
    timestamp: datetime = Field(default_factory=lambda: datetime.now(UTC))

    @classmethod
    def from_task(
        cls,
        task: Task,
        message: str = DEFAULT_NOTIFICATION_MESSAGE,
        timestamp: datetime | None = None,
    ) -> "NotificationPayload":
        """根据 Task 构造 payload

        Raises:
            ValueError: 任务没有 due_date（不可能成为候选）
        """
        if task.due_date is None:
            raise ValueError(f"Task {task.task_id} has no due date")
        return cls(
            task_id=task.task_id,
            title=task.title,
            description=task.description,
            due_date=task.due_date,
            status=task.status.value,
            message=message,
            timestamp=timestamp or datetime.now(UTC),
        )

    def to_wire(self) -> dict[str, Any]:
        """序列化为出站 JSON 对象（camelCase，时间为 ISO-8601 字符串）"""
        return self.model_dump(mode="json", by_alias=True)
