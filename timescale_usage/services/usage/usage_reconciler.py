"""usage 记录清理服务.

删除其对象已不在 catalog(源 schema 下的 hypertable 与 continuous aggregate)中的记录.
必须在本周期所有 upsert 完成之后执行.
"""

from __future__ import annotations

from timescale_usage import db
from timescale_usage.repositories.timescale_catalog_repository import TimescaleCatalogRepository
from timescale_usage.repositories.usage_records_repository import UsageRecordsRepository
from timescale_usage.utils.structlog_config import get_collector_logger


class UsageReconciler:
    """按 catalog 现状清理过期 usage 记录."""

    def __init__(
        self,
        catalog: TimescaleCatalogRepository,
        *,
        records: UsageRecordsRepository | None = None,
    ) -> None:
        self.catalog = catalog
        self.records = records or UsageRecordsRepository()
        self.logger = get_collector_logger()

    def reconcile_deleted(self) -> list[str]:
        """删除过期记录并提交, 返回被删除的对象名."""
        deleted = self.records.delete_missing(
            self.catalog.live_table_names(),
            self.catalog.live_view_names(),
        )
        db.session.commit()

        if deleted:
            self.logger.info(
                "usage_records_reconciled",
                source_schema=self.catalog.source_schema,
                deleted_count=len(deleted),
                tables=deleted,
            )
        return deleted
