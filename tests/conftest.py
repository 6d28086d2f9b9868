"""全局 pytest 配置 -- 临时 SQLite 数据库、任务工厂、webhook 端点模拟"""

from collections.abc import AsyncGenerator, Awaitable, Callable
from datetime import UTC, datetime, timedelta
from pathlib import Path

import aiosqlite
import httpx
import pytest
import pytest_asyncio
from taskpulse.core.models import Task, TaskStatus
from taskpulse.core.store.sqlite_init import init_db
from taskpulse.core.store.task_store import SqliteTaskStore
from taskpulse.notifier.webhook import WebhookGateway

# 测试统一的扫描时刻
SCAN_NOW = datetime(2026, 10, 19, 12, 0, 0, tzinfo=UTC)

HOOK_URL = "https://hooks.example.com/task-due"


class WebhookRecorder:
    """httpx.MockTransport handler：记录请求并按 URL 返回预设状态码"""

    def __init__(self, status_code: int = 200) -> None:
        self.status_code = status_code
        self.status_by_url: dict[str, int] = {}
        self.requests: list[httpx.Request] = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        status = self.status_by_url.get(str(request.url), self.status_code)
        return httpx.Response(status)

    def calls_to(self, url: str) -> int:
        return sum(1 for r in self.requests if str(r.url) == url)


@pytest.fixture
def scan_now() -> datetime:
    """扫描窗口起点"""
    return SCAN_NOW


@pytest_asyncio.fixture
async def tmp_db_path(tmp_path: Path) -> Path:
    """提供临时 SQLite 数据库路径"""
    return tmp_path / "test.db"


@pytest_asyncio.fixture
async def db_conn(tmp_db_path: Path) -> AsyncGenerator[aiosqlite.Connection, None]:
    """提供已初始化的临时 SQLite 数据库连接"""
    conn = await aiosqlite.connect(str(tmp_db_path))
    await init_db(conn)
    yield conn
    await conn.close()


@pytest_asyncio.fixture
async def task_store(db_conn: aiosqlite.Connection) -> SqliteTaskStore:
    return SqliteTaskStore(db_conn)


@pytest.fixture
def add_task(
    task_store: SqliteTaskStore,
    scan_now: datetime,
) -> Callable[..., Awaitable[Task]]:
    """任务工厂：按相对 scan_now 的偏移创建任务，可选注册 webhook"""

    async def _add(
        due_in: timedelta | None = timedelta(minutes=30),
        webhook_url: str | None = HOOK_URL,
        title: str = "Submit report",
        status: TaskStatus = TaskStatus.OPEN,
    ) -> Task:
        return await task_store.create_task(
            title=title,
            description="quarterly numbers",
            due_date=scan_now + due_in if due_in is not None else None,
            status=status,
            webhook_url=webhook_url,
            now=scan_now - timedelta(days=1),
        )

    return _add


@pytest.fixture
def webhook_endpoint() -> WebhookRecorder:
    """默认返回 200 的 webhook 端点"""
    return WebhookRecorder()


@pytest_asyncio.fixture
async def gateway(webhook_endpoint: WebhookRecorder) -> AsyncGenerator[WebhookGateway, None]:
    """接到 MockTransport 的投递网关"""
    client = httpx.AsyncClient(transport=httpx.MockTransport(webhook_endpoint))
    yield WebhookGateway(timeout_s=2.0, client=client)
    await client.aclose()
