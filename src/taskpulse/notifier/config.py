"""NotifierConfig -- 到期通知配置加载

从环境变量加载配置；格式错误的值记录告警并回退默认值，不阻塞启动。
"""

import os

import structlog
from pydantic import BaseModel, Field

log = structlog.get_logger()


class NotifierConfig(BaseModel):
    """到期通知配置 -- 从环境变量加载

    环境变量:
        TASKPULSE_SCAN_INTERVAL_S: 扫描间隔（秒，默认 60，按间隔边界对齐）
        TASKPULSE_LOOKAHEAD_S: 到期窗口长度（秒，默认 3600）
        TASKPULSE_WEBHOOK_TIMEOUT_S: 单次投递超时（秒，默认 10）
        TASKPULSE_SCAN_CONCURRENCY: 周期内并发投递数（默认 4，1 为顺序处理）
        TASKPULSE_SCAN_MAX_CYCLE_S: 单个周期总时限（秒，默认不限）
        TASKPULSE_SCHEDULER_ENABLED: 是否随应用启动调度器（默认 true）
        TASKPULSE_WEBHOOK_USER_AGENT: 出站请求 User-Agent
    """

    scan_interval_s: int = Field(default=60, ge=1, description="扫描间隔（秒）")
    lookahead_s: int = Field(default=3600, ge=1, description="到期窗口长度（秒）")
    webhook_timeout_s: float = Field(default=10.0, gt=0, description="单次投递超时（秒）")
    scan_concurrency: int = Field(default=4, ge=1, description="周期内并发投递数")
    scan_max_cycle_s: float | None = Field(
        default=None,
        gt=0,
        description="单个周期总时限（秒），None 表示不限",
    )
    scheduler_enabled: bool = Field(default=True, description="是否启动周期调度")
    user_agent: str = Field(
        default="TaskPulse-Webhook/1.0",
        description="出站 webhook 请求的 User-Agent",
    )


_INT_FIELDS = {
    "TASKPULSE_SCAN_INTERVAL_S": "scan_interval_s",
    "TASKPULSE_LOOKAHEAD_S": "lookahead_s",
    "TASKPULSE_SCAN_CONCURRENCY": "scan_concurrency",
}

_FLOAT_FIELDS = {
    "TASKPULSE_WEBHOOK_TIMEOUT_S": "webhook_timeout_s",
    "TASKPULSE_SCAN_MAX_CYCLE_S": "scan_max_cycle_s",
}


def load_notifier_config() -> NotifierConfig:
    """从环境变量加载通知配置

    Returns:
        NotifierConfig 实例
    """
    defaults = NotifierConfig()
    kwargs: dict = {}

    for env_var, field in _INT_FIELDS.items():
        if val := os.environ.get(env_var):
            try:
                kwargs[field] = int(val)
            except ValueError:
                log.warning(
                    "invalid_notifier_config",
                    env_var=env_var,
                    value=val,
                    fallback=getattr(defaults, field),
                )

    for env_var, field in _FLOAT_FIELDS.items():
        if val := os.environ.get(env_var):
            try:
                kwargs[field] = float(val)
            except ValueError:
                log.warning(
                    "invalid_notifier_config",
                    env_var=env_var,
                    value=val,
                    fallback=getattr(defaults, field),
                )

    if val := os.environ.get("TASKPULSE_SCHEDULER_ENABLED"):
        kwargs["scheduler_enabled"] = val.strip().lower() not in ("0", "false", "no", "off")

    if val := os.environ.get("TASKPULSE_WEBHOOK_USER_AGENT"):
        kwargs["user_agent"] = val

    return NotifierConfig(**kwargs)
