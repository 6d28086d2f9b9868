"""WebhookService -- webhook 地址注册/移除

注册或移除都会把 webhook_sent 重置为 false；
扫描器在下一个周期自然读取到新状态，两者之间没有显式的通知通道。
"""

from datetime import UTC, datetime

import structlog
from taskpulse.core.models import Task
from taskpulse.core.store import StoreGroup

log = structlog.get_logger()


class WebhookService:
    """webhook 注册服务"""

    def __init__(self, store_group: StoreGroup) -> None:
        self._stores = store_group

    async def register_webhook(self, task_id: int, url: str) -> Task | None:
        """为任务设置 webhook 地址

        Returns:
            更新后的 Task，任务不存在返回 None
        """
        task = await self._set_webhook(task_id, url)
        if task is not None:
            log.info("webhook_registered", task_id=task_id, url=url)
        return task

    async def remove_webhook(self, task_id: int) -> Task | None:
        """移除任务的 webhook 地址

        Returns:
            更新后的 Task，任务不存在返回 None
        """
        task = await self._set_webhook(task_id, None)
        if task is not None:
            log.info("webhook_removed", task_id=task_id)
        return task

    async def _set_webhook(self, task_id: int, url: str | None) -> Task | None:
        store = self._stores.task_store
        updated = await store.update_fields(
            task_id,
            {"webhook_url": url, "webhook_sent": False},
            datetime.now(UTC),
        )
        if not updated:
            return None
        return await store.get_task(task_id)
