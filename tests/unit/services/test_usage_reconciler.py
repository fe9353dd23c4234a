from datetime import UTC, datetime

import pytest

from timescale_usage import db
from timescale_usage.repositories.timescale_catalog_repository import TimescaleCatalogRepository
from timescale_usage.repositories.usage_records_repository import UsageRecordsRepository
from timescale_usage.services.usage.usage_reconciler import UsageReconciler

NOW = datetime(2025, 1, 3, 12, 0, tzinfo=UTC)


def _seed(*names: str) -> None:
    for name in names:
        UsageRecordsRepository.upsert(table_name=name, size_bytes=1, updated_at=NOW, bytes_per_day=0.0)
    db.session.commit()


def _tracked() -> list[str]:
    return [record.table_name for record in UsageRecordsRepository.list_all()]


@pytest.mark.unit
def test_reconcile_deletes_records_missing_from_catalog(timescale_catalog) -> None:
    timescale_catalog("table", "sensor_data")
    timescale_catalog("view", "hourly_rollup")
    _seed("sensor_data", "hourly_rollup", "dropped_table")

    deleted = UsageReconciler(TimescaleCatalogRepository("public")).reconcile_deleted()

    assert deleted == ["dropped_table"]
    assert _tracked() == ["hourly_rollup", "sensor_data"]


@pytest.mark.unit
def test_reconcile_ignores_objects_from_other_schemas(timescale_catalog) -> None:
    timescale_catalog("table", "sensor_data")
    timescale_catalog("table", "audit_log", schema="analytics")
    _seed("sensor_data", "audit_log")

    deleted = UsageReconciler(TimescaleCatalogRepository("public")).reconcile_deleted()

    assert deleted == ["audit_log"]
    assert _tracked() == ["sensor_data"]


@pytest.mark.unit
def test_reconcile_with_empty_catalog_removes_everything(timescale_catalog) -> None:
    _seed("a", "b")

    deleted = UsageReconciler(TimescaleCatalogRepository("public")).reconcile_deleted()

    assert sorted(deleted) == ["a", "b"]
    assert _tracked() == []


@pytest.mark.unit
def test_reconcile_is_noop_when_everything_is_live(timescale_catalog) -> None:
    timescale_catalog("table", "sensor_data")
    _seed("sensor_data")

    assert UsageReconciler(TimescaleCatalogRepository("public")).reconcile_deleted() == []
    assert _tracked() == ["sensor_data"]
