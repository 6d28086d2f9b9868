"""Store Protocol 接口定义

使用 Python Protocol 实现结构化子类型（duck typing）。
CandidateSource 是扫描器唯一依赖的窄接口；TaskStore 是 API 层使用的完整接口。
"""

from datetime import datetime
from typing import Any, Protocol

from ..models.enums import TaskStatus
from ..models.task import Task


class CandidateSource(Protocol):
    """扫描器消费的任务存储接口"""

    async def find_candidates(
        self,
        due_after: datetime,
        due_before: datetime,
        webhook_sent: bool = False,
    ) -> list[Task]:
        """查询到期窗口内、未通知、未软删除的任务"""
        ...

    async def mark_webhook_sent(
        self,
        task_id: int,
        webhook_url: str,
        updated_at: datetime,
    ) -> bool:
        """投递成功后持久化 webhook_sent = true"""
        ...


class TaskStore(CandidateSource, Protocol):
    """Task 存储接口"""

    async def create_task(
        self,
        *,
        title: str,
        description: str | None = None,
        due_date: datetime | None = None,
        status: TaskStatus = TaskStatus.OPEN,
        webhook_url: str | None = None,
        now: datetime | None = None,
    ) -> Task:
        """创建任务记录"""
        ...

    async def get_task(self, task_id: int, include_deleted: bool = False) -> Task | None:
        """根据 task_id 查询任务"""
        ...

    async def list_tasks(
        self,
        limit: int,
        offset: int = 0,
        deleted: bool | None = False,
    ) -> list[Task]:
        """分页查询任务"""
        ...

    async def count_tasks(self, deleted: bool | None = False) -> int:
        """统计任务数"""
        ...

    async def count_by_status(self) -> dict[TaskStatus, int]:
        """按状态统计"""
        ...

    async def update_fields(
        self,
        task_id: int,
        changes: dict[str, Any],
        updated_at: datetime | None = None,
    ) -> bool:
        """只更新给出的列；截止时间改变时重置 webhook_sent"""
        ...

    async def soft_delete_task(self, task_id: int, now: datetime | None = None) -> bool:
        """软删除"""
        ...

    async def restore_task(self, task_id: int, now: datetime | None = None) -> bool:
        """恢复软删除"""
        ...

    async def delete_task(self, task_id: int) -> bool:
        """物理删除"""
        ...
