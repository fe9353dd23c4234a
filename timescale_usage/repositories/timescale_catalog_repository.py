"""TimescaleDB catalog Repository.

职责:
- 查询全部 schema 下的 hypertable / continuous aggregate 列表及其近似容量
- 提供源 schema 下的存活对象名称子查询, 供清理使用
- 查询对象最早一条数据的时间
- 将 "对象已不存在"(SQLSTATE 42P01) 归类为 ObjectVanishedError
"""

from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING, Final

from sqlalchemy import DateTime, Text, asc, column, select, table, text
from sqlalchemy.exc import DBAPIError

from timescale_usage import db
from timescale_usage.errors import ObjectVanishedError

if TYPE_CHECKING:
    from sqlalchemy.sql import Select

UNDEFINED_TABLE_SQLSTATE: Final[str] = "42P01"
TIME_COLUMN: Final[str] = "time"
CATALOG_SCHEMA: Final[str] = "timescaledb_information"

OBJECT_KIND_TABLE: Final[str] = "table"
OBJECT_KIND_VIEW: Final[str] = "view"

_LIST_TABLES_SQL = """
    SELECT
        hypertable_schema,
        hypertable_name,
        hypertable_approximate_size(format('%I.%I', hypertable_schema, hypertable_name)::regclass)
    FROM timescaledb_information.hypertables
"""

_LIST_VIEWS_SQL = """
    SELECT
        view_schema,
        view_name,
        hypertable_approximate_size(format('%I.%I', view_schema, view_name)::regclass)
    FROM timescaledb_information.continuous_aggregates
"""

hypertables = table(
    "hypertables",
    column("hypertable_schema", Text),
    column("hypertable_name", Text),
    schema=CATALOG_SCHEMA,
)
continuous_aggregates = table(
    "continuous_aggregates",
    column("view_schema", Text),
    column("view_name", Text),
    schema=CATALOG_SCHEMA,
)


@dataclass(frozen=True, slots=True)
class MeasurableObject:
    """catalog 中可测量的对象(hypertable 或 continuous aggregate)."""

    schema: str
    name: str
    size_bytes: int
    kind: str = OBJECT_KIND_TABLE


def is_undefined_table_error(exc: BaseException) -> bool:
    """判断异常是否为 PostgreSQL "relation does not exist"(SQLSTATE 42P01)."""
    orig = getattr(exc, "orig", exc)
    sqlstate = getattr(orig, "sqlstate", None) or getattr(orig, "pgcode", None)
    return sqlstate == UNDEFINED_TABLE_SQLSTATE


class TimescaleCatalogRepository:
    """TimescaleDB catalog 查询 Repository."""

    def __init__(self, source_schema: str) -> None:
        self.source_schema = source_schema

    def list_tables(self) -> list[MeasurableObject]:
        """列出全部 schema 下的 hypertable 及近似容量."""
        return self._list_objects(_LIST_TABLES_SQL, kind=OBJECT_KIND_TABLE)

    def list_views(self) -> list[MeasurableObject]:
        """列出全部 schema 下的 continuous aggregate 及近似容量."""
        return self._list_objects(_LIST_VIEWS_SQL, kind=OBJECT_KIND_VIEW)

    def live_table_names(self) -> Select:
        """返回源 schema 下 hypertable 名称子查询."""
        return select(hypertables.c.hypertable_name).where(
            hypertables.c.hypertable_schema == self.source_schema,
        )

    def live_view_names(self) -> Select:
        """返回源 schema 下 continuous aggregate 名称子查询."""
        return select(continuous_aggregates.c.view_name).where(
            continuous_aggregates.c.view_schema == self.source_schema,
        )

    def fetch_first_timestamp(self, schema: str, name: str) -> datetime | None:
        """查询对象 ``time`` 列的最早值, 对象无数据时返回 None.

        Raises:
            ObjectVanishedError: 对象在列出后已被删除.

        """
        time_column = column(TIME_COLUMN, DateTime(timezone=True))
        stmt = (
            select(time_column)
            .select_from(table(name, time_column, schema=schema))
            .order_by(asc(time_column))
            .limit(1)
        )
        try:
            return db.session.execute(stmt).scalar_one_or_none()
        except DBAPIError as exc:
            # 失败语句会使 PostgreSQL 事务进入 aborted 状态
            db.session.rollback()
            if is_undefined_table_error(exc):
                raise ObjectVanishedError(schema, name) from exc
            raise

    def _list_objects(self, sql: str, *, kind: str) -> list[MeasurableObject]:
        rows = db.session.execute(text(sql)).all()
        objects: list[MeasurableObject] = []
        for row in rows:
            schema_name = "" if row[0] is None else str(row[0])
            object_name = "" if row[1] is None else str(row[1])
            if not schema_name or not object_name:
                continue
            objects.append(
                MeasurableObject(
                    schema=schema_name,
                    name=object_name,
                    size_bytes=_safe_to_int(row[2]),
                    kind=kind,
                ),
            )
        return objects


def _safe_to_int(value: int | Decimal | None) -> int:
    """将 catalog 返回的容量转为非负整数, NULL(尚无数据)视为 0."""
    if value is None:
        return 0
    return max(int(value), 0)
