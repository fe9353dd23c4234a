"""进程入口(cli.main)单元测试."""

import urllib.request

import pytest

from timescale_usage import cli
from timescale_usage.errors import UsageSchemaError
from timescale_usage.services.usage.collection_cycle import CycleOutcome


@pytest.fixture(autouse=True)
def _quiet_logging(monkeypatch):
    # configure_logging 会重置 root handler, 信号处理会覆盖 pytest 的 SIGINT, 测试中都跳过
    monkeypatch.setattr(cli, "configure_logging", lambda _settings: None)
    monkeypatch.setattr(cli, "install_signal_handlers", lambda _scheduler: None)


@pytest.mark.unit
def test_parser_defaults_to_run() -> None:
    args = cli.build_parser().parse_args([])

    assert args.command == "run"
    assert args.once is False


@pytest.mark.unit
def test_main_exits_with_failure_on_malformed_duration(monkeypatch) -> None:
    monkeypatch.setenv("DURATION", "every five minutes")

    assert cli.main(["run", "--once", "--no-metrics-server"]) == cli.EXIT_FAILURE


@pytest.mark.unit
def test_main_init_schema_succeeds_on_fresh_database() -> None:
    assert cli.main(["init-schema"]) == cli.EXIT_OK


@pytest.mark.unit
def test_main_init_schema_reports_failure(monkeypatch) -> None:
    def _fail(_app, _settings) -> None:
        raise UsageSchemaError("database unreachable")

    monkeypatch.setattr(cli, "init_schema", _fail)

    assert cli.main(["init-schema"]) == cli.EXIT_FAILURE


@pytest.mark.unit
def test_main_run_once_executes_single_cycle(monkeypatch) -> None:
    calls: list[object] = []

    def _run_cycle(app) -> CycleOutcome:
        calls.append(app)
        return CycleOutcome()

    monkeypatch.setattr(cli, "run_cycle", _run_cycle)

    assert cli.main(["run", "--once", "--no-metrics-server"]) == cli.EXIT_OK
    assert len(calls) == 1


@pytest.mark.unit
def test_main_run_returns_failure_when_cycle_fails() -> None:
    # SQLite 中没有 timescaledb_information, 首个 catalog 查询即失败
    assert cli.main(["run", "--once", "--no-metrics-server"]) == cli.EXIT_FAILURE


@pytest.mark.unit
def test_metrics_server_serves_metrics_on_ephemeral_port(app) -> None:
    server = cli.MetricsServer(app, "127.0.0.1", 0)
    server.start()
    try:
        with urllib.request.urlopen(f"http://127.0.0.1:{server.port}/metrics", timeout=5) as response:
            body = response.read().decode("utf-8")
    finally:
        server.shutdown()

    assert "timescale_table_size_bytes" in body
