"""Task Domain Model

tasks 表的行模型。通知相关字段 webhook_url / webhook_sent 只由两方修改：
注册 API（设置 URL 并重置 webhook_sent）与扫描器（投递成功后置 webhook_sent）。
"""

from datetime import UTC, datetime

from pydantic import BaseModel, Field, field_validator

from .enums import TaskStatus


def ensure_utc(value: datetime) -> datetime:
    """统一为带时区的 UTC 时间；naive 时间按 UTC 解释"""
    if value.tzinfo is None:
        return value.replace(tzinfo=UTC)
    return value.astimezone(UTC)


class Task(BaseModel):
    """Task 数据模型"""

    task_id: int = Field(description="唯一标识，自增整数")
    title: str = Field(description="任务标题")
    description: str | None = Field(default=None, description="任务描述")
    due_date: datetime | None = Field(default=None, description="截止时间（UTC）")
    status: TaskStatus = Field(default=TaskStatus.OPEN, description="当前状态")
    created_at: datetime = Field(description="创建时间")
    updated_at: datetime = Field(description="更新时间")
    deleted_at: datetime | None = Field(default=None, description="软删除时间，None 表示未删除")
    webhook_url: str | None = Field(default=None, description="到期通知的 webhook 地址")
    webhook_sent: bool = Field(default=False, description="本次截止时间的通知是否已成功投递")

    @field_validator("due_date", "created_at", "updated_at", "deleted_at")
    @classmethod
    def _normalize_ts(cls, value: datetime | None) -> datetime | None:
        if value is None:
            return None
        return ensure_utc(value)

    @property
    def is_deleted(self) -> bool:
        return self.deleted_at is not None

    @property
    def has_webhook(self) -> bool:
        return bool(self.webhook_url and self.webhook_url.strip())
