"""CLI 入口模块 -- python -m taskpulse.notifier <command>

支持的命令：
  scan-once   对配置的数据库立即执行一个扫描周期
  due-report  列出当前处于通知窗口内、尚未通知的任务
"""

import asyncio
import sys
from datetime import UTC, datetime, timedelta

from taskpulse.core.config import get_db_path

from .config import load_notifier_config


def main() -> None:
    """CLI 主入口"""
    if len(sys.argv) < 2:
        print("用法: python -m taskpulse.notifier <command>")
        print("命令:")
        print("  scan-once   立即执行一个扫描周期")
        print("  due-report  列出通知窗口内的候选任务")
        sys.exit(1)

    command = sys.argv[1]

    if command == "scan-once":
        asyncio.run(scan_once())
    elif command == "due-report":
        asyncio.run(due_report())
    else:
        print(f"未知命令: {command}")
        print("可用命令: scan-once, due-report")
        sys.exit(1)


async def scan_once() -> None:
    """执行一个扫描周期并打印报告"""
    from taskpulse.core.store import create_store_group

    from .scanner import DueDateScanner
    from .webhook import WebhookGateway

    config = load_notifier_config()
    store_group = await create_store_group(get_db_path())
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

    try:
        report = await scanner.run_cycle()
        print(report.model_dump_json(indent=2))
    finally:
        await gateway.aclose()
        await store_group.conn.close()


async def due_report() -> None:
    """列出窗口内候选任务（只读，不投递）"""
    from taskpulse.core.store import create_store_group

    config = load_notifier_config()
    now = datetime.now(UTC)
    window_end = now + timedelta(seconds=config.lookahead_s)

    store_group = await create_store_group(get_db_path())
    try:
        tasks = await store_group.task_store.find_candidates(now, window_end)
    finally:
        await store_group.conn.close()

    print(f"窗口: {now.isoformat()} ~ {window_end.isoformat()}")
    if not tasks:
        print("窗口内没有待通知的任务")
        return
    for task in sorted(tasks, key=lambda t: t.due_date):
        url = task.webhook_url or "<未配置 webhook>"
        print(f"  #{task.task_id}  {task.due_date.isoformat()}  {task.title}  -> {url}")


if __name__ == "__main__":
    main()
