"""完整采集周期: 读取 catalog -> 逐个 upsert -> 清理过期记录."""

from __future__ import annotations

import time
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime

from timescale_usage.errors import ObjectVanishedError
from timescale_usage.repositories.timescale_catalog_repository import MeasurableObject, TimescaleCatalogRepository
from timescale_usage.services.metrics.usage_metrics import UsageMetricsPublisher
from timescale_usage.services.usage.usage_reconciler import UsageReconciler
from timescale_usage.services.usage.usage_recorder import UsageRecorder
from timescale_usage.utils.structlog_config import get_collector_logger
from timescale_usage.utils.time_utils import time_utils


@dataclass(slots=True)
class CycleOutcome:
    table_count: int = 0
    view_count: int = 0
    upserted_count: int = 0
    skipped: list[str] = field(default_factory=list)
    deleted: list[str] = field(default_factory=list)
    elapsed_ms: int = 0


class UsageCollectionCycle:
    """执行一次完整采集.

    先处理全部 hypertable, 再处理全部 continuous aggregate, 最后清理.
    "对象已被删除" 只记录 warning 并跳过; 其它异常原样上抛并终止本周期,
    已提交的 upsert 不回滚.
    """

    def __init__(
        self,
        catalog: TimescaleCatalogRepository,
        recorder: UsageRecorder,
        reconciler: UsageReconciler,
        metrics: UsageMetricsPublisher,
        *,
        drop_reconciled_metrics: bool = False,
        clock: Callable[[], datetime] = time_utils.now,
    ) -> None:
        self.catalog = catalog
        self.recorder = recorder
        self.reconciler = reconciler
        self.metrics = metrics
        self.drop_reconciled_metrics = drop_reconciled_metrics
        self._clock = clock
        self.logger = get_collector_logger()

    @classmethod
    def build(
        cls,
        *,
        source_schema: str,
        metrics: UsageMetricsPublisher,
        drop_reconciled_metrics: bool = False,
    ) -> UsageCollectionCycle:
        """按默认 Repository 组装采集周期."""
        catalog = TimescaleCatalogRepository(source_schema)
        return cls(
            catalog,
            UsageRecorder(catalog, metrics),
            UsageReconciler(catalog),
            metrics,
            drop_reconciled_metrics=drop_reconciled_metrics,
        )

    def run(self) -> CycleOutcome:
        start = time.perf_counter()
        outcome = CycleOutcome()
        self.logger.info("usage_cycle_started", source_schema=self.catalog.source_schema)

        tables = self.catalog.list_tables()
        outcome.table_count = len(tables)
        self._upsert_all(tables, outcome)

        views = self.catalog.list_views()
        outcome.view_count = len(views)
        self._upsert_all(views, outcome)

        self.logger.info("usage_cleanup_started", source_schema=self.catalog.source_schema)
        outcome.deleted = self.reconciler.reconcile_deleted()
        if self.drop_reconciled_metrics and outcome.deleted:
            self.metrics.forget(outcome.deleted)

        self.metrics.record_cycle(self._clock())
        outcome.elapsed_ms = int((time.perf_counter() - start) * 1000)
        self.logger.info(
            "usage_cycle_finished",
            table_count=outcome.table_count,
            view_count=outcome.view_count,
            upserted_count=outcome.upserted_count,
            skipped_count=len(outcome.skipped),
            deleted_count=len(outcome.deleted),
            elapsed_ms=outcome.elapsed_ms,
        )
        return outcome

    def _upsert_all(self, objects: Sequence[MeasurableObject], outcome: CycleOutcome) -> None:
        for obj in objects:
            try:
                self.recorder.upsert(obj)
            except ObjectVanishedError as exc:
                self.logger.warning(
                    "usage_object_vanished",
                    table=obj.name,
                    schema=obj.schema,
                    kind=obj.kind,
                    error=str(exc),
                )
                outcome.skipped.append(obj.name)
                continue
            outcome.upserted_count += 1
