import pytest
from sqlalchemy import inspect
from sqlalchemy.exc import OperationalError

from timescale_usage import db
from timescale_usage.errors import UsageSchemaError
from timescale_usage.models.usage_record import UsageRecord
from timescale_usage.services.usage.schema_initializer import UsageSchemaInitializer


@pytest.mark.unit
def test_ensure_creates_usage_table_with_expected_columns(app_context) -> None:
    UsageSchemaInitializer("usage").ensure()

    inspector = inspect(db.engine)
    assert inspector.has_table("usage")
    columns = {column["name"] for column in inspector.get_columns("usage")}
    assert columns == {"table", "bytes", "updated_at", "bytes_per_day"}
    assert inspector.get_pk_constraint("usage")["constrained_columns"] == ["table"]


@pytest.mark.unit
def test_ensure_is_idempotent(app_context) -> None:
    initializer = UsageSchemaInitializer("usage")

    initializer.ensure()
    initializer.ensure()

    assert inspect(db.engine).has_table("usage")


@pytest.mark.unit
def test_ensure_wraps_database_errors(app_context, monkeypatch) -> None:
    def _create(*_args, **_kwargs):
        raise OperationalError("CREATE TABLE usage.usage", {}, RuntimeError("connection refused"))

    monkeypatch.setattr(UsageRecord.__table__, "create", _create)

    with pytest.raises(UsageSchemaError) as exc_info:
        UsageSchemaInitializer("usage").ensure()

    assert exc_info.value.extra == {"usage_schema": "usage"}
    assert exc_info.value.recoverable is False
