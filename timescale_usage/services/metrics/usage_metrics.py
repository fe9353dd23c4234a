"""表容量指标发布器.

持有 ``表名 -> 最近一次字节数`` 的快照, 供 Prometheus 拉取.
采集线程写入与 /metrics 抓取并发发生, 所有读写都经过同一把锁.
"""

from __future__ import annotations

import threading
from collections.abc import Iterable, Iterator
from datetime import datetime

from prometheus_client import CONTENT_TYPE_LATEST, CollectorRegistry, generate_latest
from prometheus_client.core import GaugeMetricFamily, Metric
from prometheus_client.registry import Collector

TABLE_SIZE_METRIC = "timescale_table_size_bytes"
TABLE_SIZE_HELP = "Table size in bytes"
TABLE_LABEL = "table"
LAST_CYCLE_METRIC = "timescale_usage_last_cycle_timestamp_seconds"
LAST_CYCLE_HELP = "Unix time of the last completed collection cycle"


class UsageMetricsPublisher(Collector):
    """线程安全的表容量快照, 以自定义 Collector 的形式注册到独立 registry.

    快照条目不会自动淘汰: 对象被删除后仍保留最后一次的大小,
    除非调用方显式调用 :meth:`forget`.
    """

    def __init__(self, registry: CollectorRegistry | None = None) -> None:
        self._lock = threading.Lock()
        self._sizes: dict[str, int] = {}
        self._last_cycle_at: datetime | None = None
        self.registry = registry or CollectorRegistry(auto_describe=True)
        self.registry.register(self)

    def set_table_size(self, table: str, size_bytes: int) -> None:
        """覆盖写入某个对象的最新字节数."""
        with self._lock:
            self._sizes[table] = int(size_bytes)

    def forget(self, tables: Iterable[str]) -> int:
        """移除指定对象的快照条目, 返回实际移除数量."""
        removed = 0
        with self._lock:
            for table in tables:
                if self._sizes.pop(table, None) is not None:
                    removed += 1
        return removed

    def record_cycle(self, finished_at: datetime) -> None:
        """记录最近一次成功完成的采集周期."""
        with self._lock:
            self._last_cycle_at = finished_at

    @property
    def last_cycle_at(self) -> datetime | None:
        with self._lock:
            return self._last_cycle_at

    def snapshot(self) -> dict[str, int]:
        """返回快照副本."""
        with self._lock:
            return dict(self._sizes)

    def collect(self) -> Iterator[Metric]:
        with self._lock:
            sizes = sorted(self._sizes.items())
            last_cycle_at = self._last_cycle_at

        table_sizes = GaugeMetricFamily(TABLE_SIZE_METRIC, TABLE_SIZE_HELP, labels=[TABLE_LABEL])
        for table, size_bytes in sizes:
            table_sizes.add_metric([table], float(size_bytes))
        yield table_sizes

        if last_cycle_at is not None:
            yield GaugeMetricFamily(LAST_CYCLE_METRIC, LAST_CYCLE_HELP, value=last_cycle_at.timestamp())

    def render(self) -> tuple[bytes, str]:
        """生成 Prometheus 文本格式, 返回 (body, content_type)."""
        return generate_latest(self.registry), CONTENT_TYPE_LATEST
