"""structlog 配置模块

dev 模式：控制台可读输出；json 模式：每行一个 JSON 事件（异常展开为结构化 traceback）。
每条事件带 service 字段，扫描周期内的事件另带 cycle_id（由 DueDateScanner 绑定）。
Logfire APM：LOGFIRE_SEND_TO_LOGFIRE 环境变量控制，false 时降级为纯本地日志。
"""

import logging
import os

import structlog
from fastapi import FastAPI

SERVICE_NAME = "taskpulse"

# 第三方库日志级别：webhook 投递与 SQL 执行已由本服务按任务记录
_LIBRARY_LOG_LEVELS = {
    "httpx": logging.WARNING,
    "httpcore": logging.WARNING,
    "aiosqlite": logging.WARNING,
    "uvicorn.access": logging.WARNING,
}


def _add_service(service: str) -> structlog.types.Processor:
    def processor(_logger, _method, event_dict):
        event_dict.setdefault("service", service)
        return event_dict

    return processor


def setup_logging(
    log_format: str | None = None,
    log_level: str | None = None,
    service: str = SERVICE_NAME,
) -> None:
    """初始化 structlog 配置

    Args:
        log_format: "json" 或 "dev"，缺省读 TASKPULSE_LOG_FORMAT（默认 dev）
        log_level: 日志级别名，缺省读 TASKPULSE_LOG_LEVEL（默认 INFO）
        service: 写入每条事件的 service 字段
    """
    log_format = log_format or os.environ.get("TASKPULSE_LOG_FORMAT", "dev")
    log_level = log_level or os.environ.get("TASKPULSE_LOG_LEVEL", "INFO")

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        _add_service(service),
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso", utc=True),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    render_chain: list[structlog.types.Processor]
    if log_format == "json":
        render_chain = [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.processors.dict_tracebacks,
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ]
    else:
        render_chain = [
            structlog.stdlib.ProcessorFormatter.remove_processors_meta,
            structlog.dev.ConsoleRenderer(),
        ]

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    # uvicorn / httpx 的标准库日志也走同一个 formatter
    formatter = structlog.stdlib.ProcessorFormatter(
        processors=render_chain,
        foreign_pre_chain=shared_processors,
    )

    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    for name, level in _LIBRARY_LOG_LEVELS.items():
        logging.getLogger(name).setLevel(level)


def setup_logfire(app: FastAPI, service: str = SERVICE_NAME) -> bool:
    """Logfire 可选初始化

    LOGFIRE_SEND_TO_LOGFIRE="true" 时启用（需要 LOGFIRE_TOKEN，安装 observability extra），
    同时接管 FastAPI 入站请求与 httpx 出站 webhook 的 span。

    Returns:
        True 如果 Logfire 已启用
    """
    send_to_logfire = os.environ.get("LOGFIRE_SEND_TO_LOGFIRE", "false").lower()
    if send_to_logfire != "true":
        return False
    try:
        import logfire

        logfire.configure(service_name=service)
        logfire.instrument_fastapi(app)
        logfire.instrument_httpx()
    except Exception:
        # Logfire 初始化失败不影响系统运行
        structlog.get_logger().warning(
            "logfire_init_failed",
            message="Logfire 初始化失败，降级为纯本地日志",
            exc_info=True,
        )
        return False
    return True
