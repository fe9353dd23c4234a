"""timescale-usage 的结构化日志配置与辅助函数."""

from __future__ import annotations

import logging
import sys
from logging.handlers import RotatingFileHandler
from pathlib import Path
from typing import TYPE_CHECKING, cast

import structlog
from flask import current_app

from timescale_usage.settings import APP_NAME, APP_VERSION

if TYPE_CHECKING:
    from structlog.typing import BindableLogger, EventDict, Processor

    from timescale_usage.settings import Settings


class StructlogConfig:
    """structlog 配置核心类.

    负责配置处理器链与渲染器. 可以多次调用 ``configure``, 只会生效一次,
    除非传入 ``force=True``(切换渲染格式时使用).

    Example:
        >>> config = StructlogConfig()
        >>> config.configure()
        >>> logger = get_logger("my_module")

    """

    def __init__(self) -> None:
        self.configured = False
        self.log_format = "console"

    def configure(self, log_format: str | None = None, *, force: bool = False) -> None:
        """初始化 structlog 处理器(幂等).

        Args:
            log_format: ``console`` 或 ``json``, 为空时沿用当前值.
            force: 已配置时是否重新配置.

        """
        if self.configured and not force:
            return
        if log_format:
            self.log_format = log_format

        processors = [
            structlog.stdlib.add_log_level,
            structlog.processors.TimeStamper(fmt="iso", utc=True),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            self._add_global_context,
            self._get_renderer(),
        ]
        structlog.configure(
            processors=cast("list[Processor]", processors),
            context_class=dict,
            logger_factory=structlog.stdlib.LoggerFactory(),
            wrapper_class=structlog.stdlib.BoundLogger,
            cache_logger_on_first_use=True,
        )
        self.configured = True

    @staticmethod
    def _add_global_context(
        _logger: BindableLogger,
        _method_name: str,
        event_dict: EventDict,
    ) -> EventDict:
        """附加应用名、版本等全局上下文."""
        try:
            event_dict["app_name"] = current_app.config["APP_NAME"]
            event_dict["app_version"] = current_app.config["APP_VERSION"]
        except (RuntimeError, KeyError):
            event_dict["app_name"] = APP_NAME
            event_dict["app_version"] = APP_VERSION

        event_dict["logger_name"] = getattr(_logger, "name", "unknown")
        return event_dict

    def _get_renderer(self) -> Processor:
        """根据日志格式与终端能力返回渲染器."""
        if self.log_format == "json":
            return structlog.processors.JSONRenderer()
        if sys.stdout.isatty():
            return structlog.dev.ConsoleRenderer(
                colors=True,
                exception_formatter=structlog.dev.RichTracebackFormatter(show_locals=False, max_frames=10),
            )
        return structlog.dev.ConsoleRenderer(colors=False)


structlog_config = StructlogConfig()


def configure_logging(settings: Settings) -> None:
    """按 Settings 配置标准库 logging 与 structlog.

    标准库 handler 只输出 structlog 已渲染好的消息; 设置 LOG_FILE 时额外写入滚动文件.
    """
    handlers: list[logging.Handler] = [logging.StreamHandler(sys.stdout)]
    if settings.log_file:
        log_path = Path(settings.log_file)
        log_path.parent.mkdir(parents=True, exist_ok=True)
        handlers.append(
            RotatingFileHandler(
                log_path,
                maxBytes=settings.log_max_size_bytes,
                backupCount=settings.log_backup_count,
                encoding="utf-8",
            ),
        )

    logging.basicConfig(
        format="%(message)s",
        level=getattr(logging, settings.log_level, logging.INFO),
        handlers=handlers,
        force=True,
    )
    # apscheduler 自带的 "Running job ..." 日志过于频繁
    logging.getLogger("apscheduler").setLevel(logging.WARNING)
    structlog_config.configure(settings.log_format, force=True)


def get_logger(name: str) -> structlog.stdlib.BoundLogger:
    """获取结构化日志记录器.

    Args:
        name: 日志记录器名称,通常使用模块名.

    Returns:
        绑定的 structlog 日志记录器实例.

    Example:
        >>> logger = get_logger("collector")
        >>> logger.info("usage_upserted", table="sensor_data")

    """
    structlog_config.configure()
    return structlog.get_logger(name)


def get_system_logger() -> structlog.stdlib.BoundLogger:
    """返回系统级 logger(调度器、进程入口)."""
    return get_logger("system")


def get_collector_logger() -> structlog.stdlib.BoundLogger:
    """返回采集流程 logger."""
    return get_logger("collector")

