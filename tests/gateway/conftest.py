"""gateway 测试配置 -- FastAPI app + AsyncClient

ASGITransport 不触发 lifespan，app.state 在 fixture 中手动初始化；
扫描器的出站请求接到 MockTransport，调度器默认不启动。
"""

import os
from collections.abc import AsyncGenerator
from pathlib import Path

import httpx
import pytest_asyncio
from httpx import ASGITransport, AsyncClient
from taskpulse.core.store import create_store_group
from taskpulse.notifier import DueDateScanner, NotifierConfig, WebhookGateway


@pytest_asyncio.fixture
async def test_app(tmp_path: Path, webhook_endpoint):
    """创建测试用 FastAPI app 实例"""
    os.environ["TASKPULSE_DB_PATH"] = str(tmp_path / "sqlite" / "test.db")
    os.environ["LOGFIRE_SEND_TO_LOGFIRE"] = "false"

    from taskpulse.gateway.main import create_app

    app = create_app()

    # 手动初始化（绕过 lifespan）
    store_group = await create_store_group(str(tmp_path / "sqlite" / "test.db"))
    webhook_client = httpx.AsyncClient(transport=httpx.MockTransport(webhook_endpoint))
    gateway = WebhookGateway(timeout_s=2.0, client=webhook_client)

    app.state.store_group = store_group
    app.state.notifier_config = NotifierConfig(scheduler_enabled=False)
    app.state.webhook_gateway = gateway
    app.state.scanner = DueDateScanner(store_group.task_store, gateway)
    app.state.scheduler = None

    yield app

    await webhook_client.aclose()
    await store_group.conn.close()
    os.environ.pop("TASKPULSE_DB_PATH", None)
    os.environ.pop("LOGFIRE_SEND_TO_LOGFIRE", None)


@pytest_asyncio.fixture
async def client(test_app) -> AsyncGenerator[AsyncClient, None]:
    """提供 httpx AsyncClient 用于测试"""
    async with AsyncClient(
        transport=ASGITransport(app=test_app),
        base_url="http://test",
    ) as ac:
        yield ac


@pytest_asyncio.fixture
async def app_store(test_app):
    """app 使用的 TaskStore，用于断言持久化状态"""
    return test_app.state.store_group.task_store
