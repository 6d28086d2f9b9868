"""SQLite 数据库初始化

PRAGMA 配置 + tasks 表 DDL + 索引创建。
使用 aiosqlite 异步操作。

时间列统一存储为定长 UTC ISO-8601 字符串（微秒精度），
因此 due_date 的区间查询可以直接按字符串比较。
"""

import aiosqlite

# tasks 表 DDL
_TASKS_DDL = """
CREATE TABLE IF NOT EXISTS tasks (
    task_id       INTEGER PRIMARY KEY AUTOINCREMENT,
    title         TEXT NOT NULL,
    description   TEXT,
    due_date      TEXT,
    status        TEXT NOT NULL DEFAULT 'open',
    created_at    TEXT NOT NULL,
    updated_at    TEXT NOT NULL,
    deleted_at    TEXT,
    webhook_url   TEXT,
    webhook_sent  INTEGER NOT NULL DEFAULT 0
);
"""

_TASKS_INDEXES = [
    # 扫描候选查询：webhook_sent = 0 AND due_date BETWEEN ? AND ?
    "CREATE INDEX IF NOT EXISTS idx_tasks_due_scan ON tasks(webhook_sent, due_date);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_status ON tasks(status);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_created_at ON tasks(created_at DESC);",
    "CREATE INDEX IF NOT EXISTS idx_tasks_deleted_at ON tasks(deleted_at);",
]


async def init_db(conn: aiosqlite.Connection) -> None:
    """初始化数据库：设置 PRAGMA + 创建表 + 创建索引

    Args:
        conn: aiosqlite 数据库连接
    """
    await conn.execute("PRAGMA journal_mode = WAL;")
    await conn.execute("PRAGMA busy_timeout = 5000;")

    await conn.execute(_TASKS_DDL)

    for idx_sql in _TASKS_INDEXES:
        await conn.execute(idx_sql)

    await conn.commit()


async def verify_wal_mode(conn: aiosqlite.Connection) -> bool:
    """验证 WAL 模式是否生效

    Returns:
        True 如果 WAL 模式已启用
    """
    cursor = await conn.execute("PRAGMA journal_mode;")
    row = await cursor.fetchone()
    return row is not None and row[0].lower() == "wal"
