"""structlog 配置模块

dev 模式：pretty print 可读输出
json 模式：结构化 JSON 输出

binfleet 自身模块的日志附带 component 字段（模块名末段，如 task_store），
刷新任务中的日志另有调度器绑定的 job 字段。
"""

import logging
import os

import structlog

PACKAGE_PREFIX = "binfleet."


def add_component(
    logger: logging.Logger | None,
    method_name: str,
    event_dict: structlog.types.EventDict,
) -> structlog.types.EventDict:
    """binfleet.core.store.task_store -> component="task_store" """
    name = event_dict.get("logger") or ""
    if name.startswith(PACKAGE_PREFIX) and "component" not in event_dict:
        event_dict["component"] = name.rsplit(".", 1)[-1]
    return event_dict


def setup_logging() -> None:
    """初始化 structlog 配置

    根据 BINFLEET_LOG_FORMAT 环境变量选择渲染模式：
    - "json": 结构化 JSON 输出（生产环境）
    - "dev" (默认): pretty print 可读输出
    BINFLEET_LOG_LEVEL 控制日志级别（默认 INFO）。
    """
    log_format = os.environ.get("BINFLEET_LOG_FORMAT", "dev")
    log_level = os.environ.get("BINFLEET_LOG_LEVEL", "INFO")

    shared_processors: list[structlog.types.Processor] = [
        structlog.contextvars.merge_contextvars,
        structlog.stdlib.add_logger_name,
        add_component,
        structlog.stdlib.add_log_level,
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.UnicodeDecoder(),
    ]

    if log_format == "json":
        renderer = structlog.processors.JSONRenderer(ensure_ascii=False)
    else:
        renderer = structlog.dev.ConsoleRenderer()

    structlog.configure(
        processors=[
            *shared_processors,
            structlog.stdlib.ProcessorFormatter.wrap_for_formatter,
        ],
        logger_factory=structlog.stdlib.LoggerFactory(),
        wrapper_class=structlog.stdlib.BoundLogger,
        cache_logger_on_first_use=True,
    )

    formatter = structlog.stdlib.ProcessorFormatter(
        processor=renderer,
        foreign_pre_chain=shared_processors,
    )

    # 日志写 stderr，stdout 留给 CLI 输出
    handler = logging.StreamHandler()
    handler.setFormatter(formatter)

    root_logger = logging.getLogger()
    root_logger.handlers.clear()
    root_logger.addHandler(handler)
    root_logger.setLevel(getattr(logging, log_level.upper(), logging.INFO))

    # httpx 每个请求都会打 INFO
    logging.getLogger("httpx").setLevel(logging.WARNING)
