import threading
from datetime import UTC, datetime

import pytest
from prometheus_client.parser import text_string_to_metric_families

from timescale_usage.services.metrics.usage_metrics import (
    LAST_CYCLE_METRIC,
    TABLE_SIZE_METRIC,
    UsageMetricsPublisher,
)


def _samples(publisher: UsageMetricsPublisher) -> dict[str, float]:
    body, _ = publisher.render()
    families = {family.name: family for family in text_string_to_metric_families(body.decode("utf-8"))}
    return {sample.labels["table"]: sample.value for sample in families[TABLE_SIZE_METRIC].samples}


@pytest.mark.unit
def test_set_table_size_overwrites_previous_value() -> None:
    publisher = UsageMetricsPublisher()

    publisher.set_table_size("sensor_data", 1024)
    publisher.set_table_size("sensor_data", 2048)

    assert publisher.snapshot() == {"sensor_data": 2048}
    assert _samples(publisher) == {"sensor_data": 2048.0}


@pytest.mark.unit
def test_render_uses_gauge_with_table_label() -> None:
    publisher = UsageMetricsPublisher()
    publisher.set_table_size("sensor_data", 1048576)
    publisher.set_table_size("hourly_rollup", 0)

    body, content_type = publisher.render()
    text = body.decode("utf-8")

    assert content_type.startswith("text/plain")
    assert "# HELP timescale_table_size_bytes Table size in bytes" in text
    assert "# TYPE timescale_table_size_bytes gauge" in text
    assert _samples(publisher) == {"sensor_data": 1048576.0, "hourly_rollup": 0.0}


@pytest.mark.unit
def test_empty_snapshot_renders_without_samples() -> None:
    publisher = UsageMetricsPublisher()

    assert _samples(publisher) == {}
    assert LAST_CYCLE_METRIC not in publisher.render()[0].decode("utf-8")


@pytest.mark.unit
def test_forget_removes_only_known_tables() -> None:
    publisher = UsageMetricsPublisher()
    publisher.set_table_size("kept", 1)
    publisher.set_table_size("dropped", 2)

    removed = publisher.forget(["dropped", "never_seen"])

    assert removed == 1
    assert publisher.snapshot() == {"kept": 1}


@pytest.mark.unit
def test_record_cycle_exposes_last_cycle_timestamp() -> None:
    publisher = UsageMetricsPublisher()
    finished_at = datetime(2025, 1, 3, 12, 0, tzinfo=UTC)

    publisher.record_cycle(finished_at)

    assert publisher.last_cycle_at == finished_at
    families = {
        family.name: family
        for family in text_string_to_metric_families(publisher.render()[0].decode("utf-8"))
    }
    assert families[LAST_CYCLE_METRIC].samples[0].value == finished_at.timestamp()


@pytest.mark.unit
def test_publishers_use_independent_registries() -> None:
    first = UsageMetricsPublisher()
    second = UsageMetricsPublisher()
    first.set_table_size("sensor_data", 10)

    assert second.snapshot() == {}
    assert first.registry is not second.registry


@pytest.mark.unit
def test_concurrent_writes_and_scrapes_keep_snapshot_consistent() -> None:
    publisher = UsageMetricsPublisher()
    rounds = 300
    writers_done = threading.Event()
    errors: list[BaseException] = []

    def _writer(prefix: str) -> None:
        try:
            for i in range(rounds):
                publisher.set_table_size(f"{prefix}_{i}", i)
                publisher.set_table_size(f"{prefix}_stable", i)
                if i % 3 == 0:
                    publisher.forget([f"{prefix}_{i}"])
        except BaseException as exc:  # noqa: BLE001
            errors.append(exc)

    def _scraper() -> None:
        try:
            while not writers_done.is_set():
                list(publisher.collect())
                publisher.render()
                publisher.snapshot()
        except BaseException as exc:  # noqa: BLE001
            errors.append(exc)

    writers = [threading.Thread(target=_writer, args=(prefix,)) for prefix in ("a", "b")]
    scraper = threading.Thread(target=_scraper)
    scraper.start()
    for thread in writers:
        thread.start()
    for thread in writers:
        thread.join(10)
    writers_done.set()
    scraper.join(10)

    assert errors == []
    snapshot = publisher.snapshot()
    for prefix in ("a", "b"):
        assert snapshot[f"{prefix}_stable"] == rounds - 1
        for i in range(rounds):
            name = f"{prefix}_{i}"
            if i % 3 == 0:
                assert name not in snapshot
            else:
                assert snapshot[name] == i
    assert _samples(publisher) == {name: float(size) for name, size in snapshot.items()}
