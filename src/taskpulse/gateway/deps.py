"""依赖注入模块 -- 通过 FastAPI Depends 注入 Store 与扫描器实例

实例通过 app.state 管理，在 lifespan 中初始化/清理。
"""

from fastapi import Request
from taskpulse.core.store import StoreGroup
from taskpulse.notifier import DueDateScanner


def get_store_group(request: Request) -> StoreGroup:
    """从 app.state 获取 StoreGroup 实例"""
    return request.app.state.store_group


def get_scanner(request: Request) -> DueDateScanner:
    """从 app.state 获取 DueDateScanner 实例"""
    return request.app.state.scanner
