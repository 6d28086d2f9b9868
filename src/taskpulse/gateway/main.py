"""FastAPI 应用主文件

app 创建 + lifespan 管理：DB 初始化/关闭 + 到期通知组件初始化/启停 + 路由注册。
"""

from collections.abc import AsyncGenerator
from contextlib import asynccontextmanager

import structlog
from fastapi import FastAPI
from taskpulse.core.config import get_db_path
from taskpulse.core.store import create_store_group
from taskpulse.notifier import (
    DueDateScanner,
    NotifierConfig,
    ScanScheduler,
    WebhookGateway,
    load_notifier_config,
)

from .middleware.logging_config import setup_logfire, setup_logging
from .middleware.logging_mw import LoggingMiddleware
from .middleware.trace_mw import TraceMiddleware
from .routes import health, notifications, tasks, webhooks

log = structlog.get_logger()


def build_notifier(
    store_group,
    config: NotifierConfig,
) -> tuple[WebhookGateway, DueDateScanner, ScanScheduler | None]:
    """根据配置组装 投递网关 -> 扫描器 -> 调度器

    调度器禁用时返回 None（仍可通过 /api/notifications/scan 手动触发）。
    """
    gateway = WebhookGateway(
        timeout_s=config.webhook_timeout_s,
        lookahead_s=config.lookahead_s,
        user_agent=config.user_agent,
    )
    scanner = DueDateScanner(
        store_group.task_store,
        gateway,
        lookahead_s=config.lookahead_s,
        concurrency=config.scan_concurrency,
        max_cycle_s=config.scan_max_cycle_s,
    )
    scheduler = (
        ScanScheduler(scanner, interval_s=config.scan_interval_s)
        if config.scheduler_enabled
        else None
    )
    return gateway, scanner, scheduler


@asynccontextmanager
async def lifespan(app: FastAPI) -> AsyncGenerator[None, None]:
    """应用生命周期管理：启动时初始化 DB 与调度器，关闭时停止调度并清理连接"""
    # 启动：初始化 Store
    store_group = await create_store_group(get_db_path())
    app.state.store_group = store_group

    # 到期通知组件
    config = load_notifier_config()
    app.state.notifier_config = config
    gateway, scanner, scheduler = build_notifier(store_group, config)
    app.state.webhook_gateway = gateway
    app.state.scanner = scanner
    app.state.scheduler = scheduler

    if scheduler is not None:
        scheduler.start()
    log.info(
        "notifier_initialized",
        scheduler_enabled=config.scheduler_enabled,
        interval_s=config.scan_interval_s,
        lookahead_s=config.lookahead_s,
        timeout_s=config.webhook_timeout_s,
    )

    yield

    # 关闭：先停调度，再释放 HTTP client 与数据库连接
    if scheduler is not None:
        await scheduler.stop()
    await gateway.aclose()
    await store_group.conn.close()


def create_app() -> FastAPI:
    """创建 FastAPI 应用实例"""
    app = FastAPI(
        title="TaskPulse",
        version="0.1.0",
        description="任务管理 API + 到期 webhook 通知",
        lifespan=lifespan,
    )

    # 注册中间件（顺序：先 Trace 后 Logging）
    app.add_middleware(TraceMiddleware)
    app.add_middleware(LoggingMiddleware)

    # 初始化日志
    setup_logging()
    setup_logfire(app)

    # 注册路由
    app.include_router(tasks.router, tags=["tasks"])
    app.include_router(webhooks.router, tags=["webhooks"])
    app.include_router(notifications.router, tags=["notifications"])
    app.include_router(health.router, tags=["health"])

    return app


# 默认 app 实例（uvicorn 入口：uvicorn taskpulse.gateway.main:app）
app = create_app()
