"""TaskStore SQLite 实现

所有写操作单语句 + 立即提交，失败时回滚。
同一连接上的写操作经 _write_lock 串行化：一个写操作的回滚不会撤销另一个
已执行但尚未提交的写操作。
默认查询排除软删除的行（deleted_at IS NOT NULL），
需要包含已删除行时显式传 include_deleted=True。

更新只写调用方给出的列：webhook_sent 只由 webhook 注册（显式重置）、
截止时间变更（SQL 内比较后重置）与扫描器（mark_webhook_sent）修改。
"""

import asyncio
from datetime import UTC, datetime
from typing import Any

import aiosqlite

from ..models.enums import TaskStatus
from ..models.task import Task, ensure_utc

_COLUMNS = (
    "task_id, title, description, due_date, status, created_at, updated_at, "
    "deleted_at, webhook_url, webhook_sent"
)

# update_fields 允许写入的列
_UPDATABLE_COLUMNS = ("title", "description", "due_date", "status", "webhook_url", "webhook_sent")

# 截止时间不变时保留 webhook_sent，改变时重置
_RESET_SENT_ON_DUE_CHANGE = "webhook_sent = CASE WHEN due_date IS ? THEN webhook_sent ELSE 0 END"


def to_db_ts(value: datetime) -> str:
    """datetime -> 定长 UTC ISO-8601 字符串（微秒精度，便于字符串比较）"""
    return ensure_utc(value).isoformat(timespec="microseconds")


def _to_db_ts_or_none(value: datetime | None) -> str | None:
    return to_db_ts(value) if value is not None else None


def _from_db_ts(value: str | None) -> datetime | None:
    return datetime.fromisoformat(value) if value is not None else None


def _to_db_value(column: str, value: Any) -> Any:
    if column == "due_date":
        return _to_db_ts_or_none(value)
    if column == "status":
        return TaskStatus(value).value
    if column == "webhook_sent":
        return int(bool(value))
    return value


class SqliteTaskStore:
    """TaskStore 的 SQLite 实现"""

    def __init__(self, conn: aiosqlite.Connection) -> None:
        self._conn = conn
        self._write_lock = asyncio.Lock()

    async def _write(self, sql: str, params: tuple) -> aiosqlite.Cursor:
        """执行单条写语句并提交；失败回滚后重新抛出"""
        async with self._write_lock:
            try:
                cursor = await self._conn.execute(sql, params)
                await self._conn.commit()
            except Exception:
                await self._conn.rollback()
                raise
        return cursor

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
        """创建任务记录，返回带自增 task_id 的 Task"""
        now = now or datetime.now(UTC)
        cursor = await self._write(
            """
            INSERT INTO tasks (title, description, due_date, status,
                               created_at, updated_at, webhook_url, webhook_sent)
            VALUES (?, ?, ?, ?, ?, ?, ?, 0)
            """,
            (
                title,
                description,
                _to_db_ts_or_none(due_date),
                TaskStatus(status).value,
                to_db_ts(now),
                to_db_ts(now),
                webhook_url,
            ),
        )
        task = await self.get_task(cursor.lastrowid)
        assert task is not None
        return task

    async def get_task(self, task_id: int, include_deleted: bool = False) -> Task | None:
        """根据 task_id 查询任务"""
        sql = f"SELECT {_COLUMNS} FROM tasks WHERE task_id = ?"
        if not include_deleted:
            sql += " AND deleted_at IS NULL"
        cursor = await self._conn.execute(sql, (task_id,))
        row = await cursor.fetchone()
        if row is None:
            return None
        return self._row_to_task(row)

    async def list_tasks(
        self,
        limit: int,
        offset: int = 0,
        deleted: bool | None = False,
    ) -> list[Task]:
        """分页查询任务

        Args:
            limit: 返回条数
            offset: 跳过条数
            deleted: False 仅未删除（按 created_at 倒序）；
                     True 仅已删除（按 deleted_at 倒序）；None 全部
        """
        where, order = self._deleted_filter(deleted)
        cursor = await self._conn.execute(
            f"SELECT {_COLUMNS} FROM tasks {where} ORDER BY {order} LIMIT ? OFFSET ?",
            (limit, offset),
        )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def count_tasks(self, deleted: bool | None = False) -> int:
        """统计任务数，deleted 语义同 list_tasks"""
        where, _ = self._deleted_filter(deleted)
        cursor = await self._conn.execute(f"SELECT COUNT(*) FROM tasks {where}")
        row = await cursor.fetchone()
        return int(row[0]) if row else 0

    async def count_by_status(self) -> dict[TaskStatus, int]:
        """按状态统计未删除任务数（所有状态都有键，缺省为 0）"""
        counts = {status: 0 for status in TaskStatus}
        cursor = await self._conn.execute(
            "SELECT status, COUNT(*) FROM tasks WHERE deleted_at IS NULL GROUP BY status"
        )
        for status, count in await cursor.fetchall():
            counts[TaskStatus(status)] = int(count)
        return counts

    async def find_candidates(
        self,
        due_after: datetime,
        due_before: datetime,
        webhook_sent: bool = False,
    ) -> list[Task]:
        """查询到期窗口内的通知候选

        条件：due_after <= due_date <= due_before（两端闭区间）
              AND webhook_sent = ? AND 未软删除。
        webhook_url 是否为空不在此过滤，由扫描器逐条判断并告警。
        """
        cursor = await self._conn.execute(
            f"""
            SELECT {_COLUMNS} FROM tasks
            WHERE due_date IS NOT NULL
              AND due_date BETWEEN ? AND ?
              AND webhook_sent = ?
              AND deleted_at IS NULL
            """,
            (to_db_ts(due_after), to_db_ts(due_before), int(webhook_sent)),
        )
        rows = await cursor.fetchall()
        return [self._row_to_task(row) for row in rows]

    async def update_fields(
        self,
        task_id: int,
        changes: dict[str, Any],
        updated_at: datetime | None = None,
    ) -> bool:
        """只更新 changes 中给出的列（未删除的行）

        changes 含 due_date 而不含 webhook_sent 时，截止时间实际改变才把
        webhook_sent 置 0；比较在同一条 UPDATE 中完成，
        未改动的列（包括扫描器刚写入的 webhook_sent）保持数据库中的值。

        Returns:
            True 如果命中未删除的行

        Raises:
            ValueError: changes 含不可更新的列
        """
        unknown = set(changes) - set(_UPDATABLE_COLUMNS)
        if unknown:
            raise ValueError(f"不可更新的列: {sorted(unknown)}")

        assignments: list[str] = []
        params: list[Any] = []
        for column in _UPDATABLE_COLUMNS:
            if column in changes:
                assignments.append(f"{column} = ?")
                params.append(_to_db_value(column, changes[column]))
        if "due_date" in changes and "webhook_sent" not in changes:
            # SET 右侧读取的是更新前的行
            assignments.append(_RESET_SENT_ON_DUE_CHANGE)
            params.append(_to_db_value("due_date", changes["due_date"]))
        assignments.append("updated_at = ?")
        params.append(to_db_ts(updated_at or datetime.now(UTC)))

        cursor = await self._write(
            f"UPDATE tasks SET {', '.join(assignments)} "
            "WHERE task_id = ? AND deleted_at IS NULL",
            (*params, task_id),
        )
        return cursor.rowcount > 0

    async def mark_webhook_sent(
        self,
        task_id: int,
        webhook_url: str,
        updated_at: datetime,
    ) -> bool:
        """将 webhook_sent 置为 true

        仅当行仍指向本次投递的 URL 且尚未标记时才更新：
        周期内重新注册了 URL（flag 已被重置）的任务不会被旧 URL 的投递结果覆盖。

        Returns:
            True 如果有行被更新
        """
        cursor = await self._write(
            """
            UPDATE tasks
            SET webhook_sent = 1, updated_at = ?
            WHERE task_id = ? AND webhook_url = ? AND webhook_sent = 0
            """,
            (to_db_ts(updated_at), task_id, webhook_url),
        )
        return cursor.rowcount > 0

    async def soft_delete_task(self, task_id: int, now: datetime | None = None) -> bool:
        """软删除（设置 deleted_at），返回是否命中未删除的行"""
        now = now or datetime.now(UTC)
        cursor = await self._write(
            """
            UPDATE tasks SET deleted_at = ?, updated_at = ?
            WHERE task_id = ? AND deleted_at IS NULL
            """,
            (to_db_ts(now), to_db_ts(now), task_id),
        )
        return cursor.rowcount > 0

    async def restore_task(self, task_id: int, now: datetime | None = None) -> bool:
        """恢复软删除的任务，返回是否命中已删除的行"""
        now = now or datetime.now(UTC)
        cursor = await self._write(
            """
            UPDATE tasks SET deleted_at = NULL, updated_at = ?
            WHERE task_id = ? AND deleted_at IS NOT NULL
            """,
            (to_db_ts(now), task_id),
        )
        return cursor.rowcount > 0

    async def delete_task(self, task_id: int) -> bool:
        """物理删除（包括已软删除的行）"""
        cursor = await self._write("DELETE FROM tasks WHERE task_id = ?", (task_id,))
        return cursor.rowcount > 0

    @staticmethod
    def _deleted_filter(deleted: bool | None) -> tuple[str, str]:
        if deleted is None:
            return "", "created_at DESC, task_id DESC"
        if deleted:
            return "WHERE deleted_at IS NOT NULL", "deleted_at DESC, task_id DESC"
        return "WHERE deleted_at IS NULL", "created_at DESC, task_id DESC"

    @staticmethod
    def _row_to_task(row) -> Task:
        """将数据库行转换为 Task 模型"""
        return Task(
            task_id=row[0],
            title=row[1],
            description=row[2],
            due_date=_from_db_ts(row[3]),
            status=row[4],
            created_at=datetime.fromisoformat(row[5]),
            updated_at=datetime.fromisoformat(row[6]),
            deleted_at=_from_db_ts(row[7]),
            webhook_url=row[8],
            webhook_sent=bool(row[9]),
        )
