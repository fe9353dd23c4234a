"""timescale-usage - 进程入口.

子命令:
- run(默认): 初始化 usage 表, 启动 /metrics 服务, 按 DURATION 周期采集(未设置时只采集一次)
- init-schema: 只初始化 usage schema 与 usage 表
"""

from __future__ import annotations

import argparse
import signal
import sys
import threading
from typing import TYPE_CHECKING, Final

from werkzeug.serving import make_server

from timescale_usage import create_app, get_metrics_publisher, get_settings
from timescale_usage.errors import ConfigurationError, UsageSchemaError
from timescale_usage.scheduler import UsageScheduler
from timescale_usage.services.usage.collection_cycle import CycleOutcome, UsageCollectionCycle
from timescale_usage.services.usage.schema_initializer import UsageSchemaInitializer
from timescale_usage.settings import Settings
from timescale_usage.utils.structlog_config import configure_logging, get_system_logger

if TYPE_CHECKING:
    from collections.abc import Sequence
    from types import FrameType

    from flask import Flask
    from werkzeug.serving import BaseWSGIServer

EXIT_OK: Final[int] = 0
EXIT_FAILURE: Final[int] = 1

logger = get_system_logger()


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="timescale-usage",
        description="采集 TimescaleDB hypertable / continuous aggregate 容量并暴露 Prometheus 指标",
    )
    subparsers = parser.add_subparsers(dest="command")

    run_parser = subparsers.add_parser("run", help="初始化 usage 表并开始采集(默认)")
    run_parser.add_argument("--once", action="store_true", help="忽略 DURATION, 只采集一次")
    run_parser.add_argument("--no-metrics-server", action="store_true", help="不启动 /metrics HTTP 服务")

    subparsers.add_parser("init-schema", help="只初始化 usage schema 与 usage 表")
    parser.set_defaults(command="run", once=False, no_metrics_server=False)
    return parser


def load_settings() -> Settings:
    """加载配置, 校验失败时转换为 ConfigurationError."""
    try:
        return Settings.load()
    except ValueError as exc:
        raise ConfigurationError(str(exc)) from exc


def run_cycle(app: Flask) -> CycleOutcome:
    """在应用上下文中执行一次采集周期(调度器线程调用)."""
    with app.app_context():
        settings = get_settings()
        cycle = UsageCollectionCycle.build(
            source_schema=settings.source_schema,
            metrics=get_metrics_publisher(),
            drop_reconciled_metrics=settings.metrics_drop_reconciled,
        )
        return cycle.run()


class MetricsServer:
    """在后台线程中运行 Flask 应用, 供 Prometheus 抓取 /metrics."""

    def __init__(self, app: Flask, host: str, port: int) -> None:
        self._server: BaseWSGIServer = make_server(host, port, app, threaded=True)
        self._thread = threading.Thread(target=self._server.serve_forever, name="metrics-server", daemon=True)

    @property
    def port(self) -> int:
        return self._server.server_port

    def start(self) -> None:
        self._thread.start()
        logger.info("metrics_server_started", host=self._server.host, port=self.port)

    def shutdown(self) -> None:
        self._server.shutdown()
        self._thread.join(timeout=5)
        logger.info("metrics_server_stopped")


def install_signal_handlers(scheduler: UsageScheduler) -> None:
    """SIGINT/SIGTERM 请求调度器在周期之间停止."""

    def _handle(signum: int, _frame: FrameType | None) -> None:
        logger.info("shutdown_signal_received", signal=signal.Signals(signum).name)
        scheduler.stop()

    signal.signal(signal.SIGINT, _handle)
    signal.signal(signal.SIGTERM, _handle)


def init_schema(app: Flask, settings: Settings) -> None:
    with app.app_context():
        UsageSchemaInitializer(settings.usage_schema).ensure()


def run_collector(app: Flask, settings: Settings, *, once: bool = False, serve_metrics: bool = True) -> int:
    """初始化存储并运行调度器, 返回进程退出码."""
    try:
        init_schema(app, settings)
    except UsageSchemaError:
        return EXIT_FAILURE

    interval = None if once else settings.collection_interval
    scheduler = UsageScheduler(lambda: run_cycle(app), interval)

    server: MetricsServer | None = None
    if serve_metrics:
        server = MetricsServer(app, settings.metrics_host, settings.metrics_port)
        server.start()

    if threading.current_thread() is threading.main_thread():
        install_signal_handlers(scheduler)

    try:
        scheduler.run()
    except Exception:
        logger.exception("usage_collector_failed")
        return EXIT_FAILURE
    finally:
        if server is not None:
            server.shutdown()

    logger.info("usage_collector_exited")
    return EXIT_OK


def main(argv: Sequence[str] | None = None) -> int:
    args = build_parser().parse_args(argv)

    try:
        settings = load_settings()
    except ConfigurationError as exc:
        logger.error("configuration_invalid", error=exc.message)
        return EXIT_FAILURE

    configure_logging(settings)
    app = create_app(settings=settings)

    if args.command == "init-schema":
        try:
            init_schema(app, settings)
        except UsageSchemaError:
            return EXIT_FAILURE
        return EXIT_OK

    return run_collector(app, settings, once=args.once, serve_metrics=not args.no_metrics_server)


if __name__ == "__main__":
    sys.exit(main())
