"""TaskService -- 任务 CRUD 业务逻辑

约定：
- 任务不存在（或已软删除）返回 None，由路由层转换为 404
- 状态冲突（如恢复一个未删除的任务）抛出 ValueError，由路由层转换为 409
- due_date 实际改变才重置 webhook_sent：新的截止时间对应一次新的通知；
  其他字段的修改不触碰 webhook_sent
"""

from datetime import UTC, datetime
from typing import Any

import structlog
from taskpulse.core.models import Task, TaskStatus, next_status
from taskpulse.core.store import StoreGroup

log = structlog.get_logger()

# 允许通过 update_task 修改的字段
_UPDATABLE_FIELDS = {"title", "description", "due_date", "status"}


class TaskService:
    """任务业务服务"""

    def __init__(self, store_group: StoreGroup) -> None:
        self._stores = store_group

    async def create_task(
        self,
        title: str,
        description: str | None = None,
        due_date: datetime | None = None,
        status: TaskStatus = TaskStatus.OPEN,
    ) -> Task:
        """创建任务"""
        task = await self._stores.task_store.create_task(
            title=title,
            description=description,
            due_date=due_date,
            status=status,
        )
        log.info("task_created", task_id=task.task_id, due_date=task.due_date)
        return task

    async def get_task(self, task_id: int) -> Task | None:
        """查询未删除的任务"""
        return await self._stores.task_store.get_task(task_id)

    async def list_tasks(
        self,
        limit: int,
        offset: int = 0,
        deleted: bool | None = False,
    ) -> tuple[list[Task], int]:
        """分页查询任务

        Returns:
            (当前页任务, 总数)
        """
        store = self._stores.task_store
        tasks = await store.list_tasks(limit=limit, offset=offset, deleted=deleted)
        total = await store.count_tasks(deleted=deleted)
        return tasks, total

    async def update_task(self, task_id: int, changes: dict[str, Any]) -> Task | None:
        """部分更新任务

        Args:
            task_id: 任务 ID
            changes: 仅包含调用方显式提供的字段

        Returns:
            更新后的 Task，任务不存在返回 None
        """
        store = self._stores.task_store
        update = {k: v for k, v in changes.items() if k in _UPDATABLE_FIELDS}
        # 只写给出的列，webhook_sent 由存储层按截止时间是否改变决定
        if not await store.update_fields(task_id, update, datetime.now(UTC)):
            return None

        log.info("task_updated", task_id=task_id, fields=sorted(update))
        return await store.get_task(task_id)

    async def set_status(self, task_id: int, status: TaskStatus) -> Task | None:
        """设置任务状态"""
        return await self.update_task(task_id, {"status": status})

    async def toggle_status(self, task_id: int) -> Task | None:
        """按 OPEN -> IN_PROGRESS -> DONE -> OPEN 循环切换状态"""
        task = await self._stores.task_store.get_task(task_id)
        if task is None:
            return None
        return await self.update_task(task_id, {"status": next_status(task.status)})

    async def delete_task(self, task_id: int) -> bool:
        """软删除任务，返回是否命中"""
        deleted = await self._stores.task_store.soft_delete_task(task_id)
        if deleted:
            log.info("task_soft_deleted", task_id=task_id)
        return deleted

    async def restore_task(self, task_id: int) -> Task | None:
        """恢复软删除的任务

        Returns:
            恢复后的 Task，任务不存在返回 None

        Raises:
            ValueError: 任务未被删除
        """
        task = await self._stores.task_store.get_task(task_id, include_deleted=True)
        if task is None:
            return None
        if not task.is_deleted:
            raise ValueError(f"Task {task_id} is not deleted")

        await self._stores.task_store.restore_task(task_id)
        log.info("task_restored", task_id=task_id)
        return await self._stores.task_store.get_task(task_id)

    async def force_delete_task(self, task_id: int) -> bool:
        """物理删除（包括已软删除的任务），返回是否命中"""
        deleted = await self._stores.task_store.delete_task(task_id)
        if deleted:
            log.info("task_force_deleted", task_id=task_id)
        return deleted

    async def get_report(self) -> dict[str, int]:
        """按状态统计：{"OPEN": n, "IN_PROGRESS": n, "DONE": n}"""
        counts = await self._stores.task_store.count_by_status()
        return {status.name: counts[status] for status in TaskStatus}
