"""单个对象的容量记录服务.

对 catalog 列出的每个对象:
1. 查询最早一条数据的时间(对象为空时使用当前时间)
2. 计算对象年龄(天, 带小数)与平均每日增长字节数
3. 按对象名 upsert usage 记录并提交
4. 覆盖更新指标快照
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from datetime import datetime

from timescale_usage import db
from timescale_usage.repositories.timescale_catalog_repository import MeasurableObject, TimescaleCatalogRepository
from timescale_usage.repositories.usage_records_repository import UsageRecordsRepository
from timescale_usage.services.metrics.usage_metrics import UsageMetricsPublisher
from timescale_usage.utils.structlog_config import get_collector_logger
from timescale_usage.utils.time_utils import time_utils


@dataclass(frozen=True, slots=True)
class UsageMeasurement:
    """一次 upsert 写入的数据."""

    table_name: str
    size_bytes: int
    updated_at: datetime
    bytes_per_day: float


def compute_bytes_per_day(size_bytes: int, first_seen: datetime, now: datetime) -> float:
    """按 ``size / 年龄(天)`` 估算平均每日增长字节数.

    年龄为 0(对象首次出现且没有数据)时返回 0.0, 不做除零.
    """
    days = time_utils.elapsed_days(first_seen, now)
    if days == 0:
        return 0.0
    return float(size_bytes) / days


class UsageRecorder:
    """计算增长率并写入 usage 记录."""

    def __init__(
        self,
        catalog: TimescaleCatalogRepository,
        metrics: UsageMetricsPublisher,
        *,
        records: UsageRecordsRepository | None = None,
        clock: Callable[[], datetime] = time_utils.now,
    ) -> None:
        self.catalog = catalog
        self.metrics = metrics
        self.records = records or UsageRecordsRepository()
        self._clock = clock
        self.logger = get_collector_logger()

    def upsert(self, obj: MeasurableObject) -> UsageMeasurement:
        """测量并 upsert 单个对象.

        Raises:
            ObjectVanishedError: 对象在列出后已被删除, 由调用方跳过.
            SQLAlchemyError: 其它数据库错误, 原样上抛.

        """
        now = self._clock()
        first_seen = self.catalog.fetch_first_timestamp(obj.schema, obj.name) or now
        measurement = UsageMeasurement(
            table_name=obj.name,
            size_bytes=obj.size_bytes,
            updated_at=now,
            bytes_per_day=compute_bytes_per_day(obj.size_bytes, first_seen, now),
        )

        self.logger.info(
            "usage_measured",
            table=measurement.table_name,
            schema=obj.schema,
            kind=obj.kind,
            bytes=measurement.size_bytes,
            bytes_per_day=measurement.bytes_per_day,
        )

        self.records.upsert(
            table_name=measurement.table_name,
            size_bytes=measurement.size_bytes,
            updated_at=measurement.updated_at,
            bytes_per_day=measurement.bytes_per_day,
        )
        db.session.commit()

        self.metrics.set_table_size(measurement.table_name, measurement.size_bytes)
        return measurement
