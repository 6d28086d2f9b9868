"""配置常量模块 -- 可通过环境变量覆盖

包含数据库路径、分页限制、字段长度限制等可配置常量。
通知调度相关配置见 taskpulse.notifier.config。
"""

import os
from pathlib import Path


def _get_base_dir() -> Path:
    """获取项目 data 基础目录"""
    return Path(os.environ.get("TASKPULSE_DATA_DIR", "data"))


def get_db_path() -> str:
    """获取 SQLite 数据库路径"""
    return os.environ.get(
        "TASKPULSE_DB_PATH",
        str(_get_base_dir() / "sqlite" / "taskpulse.db"),
    )


# 分页默认值与上限
DEFAULT_PAGE_LIMIT: int = 10
MAX_PAGE_LIMIT: int = int(os.environ.get("TASKPULSE_MAX_PAGE_LIMIT", "100"))

# 字段长度限制
TITLE_MAX_LENGTH: int = 255
DESCRIPTION_MAX_LENGTH: int = 1000
WEBHOOK_URL_MAX_LENGTH: int = 2048
