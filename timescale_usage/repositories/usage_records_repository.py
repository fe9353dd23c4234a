"""usage 表 Repository.

职责:
- 封装 UsageRecord 的 upsert 与清理逻辑
- 不做业务编排、不 commit
"""

from __future__ import annotations

from datetime import datetime
from typing import TYPE_CHECKING

from sqlalchemy import delete, select
from sqlalchemy.dialects.postgresql import insert as pg_insert
from sqlalchemy.dialects.sqlite import insert as sqlite_insert

from timescale_usage import db
from timescale_usage.models.usage_record import UsageRecord

if TYPE_CHECKING:
    from sqlalchemy.sql import Select


class UsageRecordsRepository:
    """usage 表 Repository."""

    @staticmethod
    def upsert(*, table_name: str, size_bytes: int, updated_at: datetime, bytes_per_day: float) -> None:
        """按对象名 insert-or-update 一条记录(单条语句, 依赖主键冲突处理)."""
        dialect_name = db.session.get_bind(mapper=UsageRecord).dialect.name

        values = {
            "table_name": table_name,
            "size_bytes": size_bytes,
            "updated_at": updated_at,
            "bytes_per_day": bytes_per_day,
        }
        if dialect_name == "sqlite":
            insert_stmt = sqlite_insert(UsageRecord).values(values)
        else:
            insert_stmt = pg_insert(UsageRecord).values(values)

        stmt = insert_stmt.on_conflict_do_update(
            index_elements=[UsageRecord.table_name],
            set_={
                "size_bytes": insert_stmt.excluded.size_bytes,
                "updated_at": insert_stmt.excluded.updated_at,
                "bytes_per_day": insert_stmt.excluded.bytes_per_day,
            },
        )
        db.session.execute(stmt)

    @staticmethod
    def delete_missing(*live_name_queries: Select) -> list[str]:
        """删除名称不在任一子查询结果中的记录, 返回被删除的对象名.

        只发出一条 DELETE 语句.
        """
        stmt = delete(UsageRecord)
        for live_names in live_name_queries:
            stmt = stmt.where(UsageRecord.table_name.not_in(live_names))
        stmt = stmt.returning(UsageRecord.table_name)

        result = db.session.execute(stmt, execution_options={"synchronize_session": False})
        return [str(name) for name in result.scalars().all()]

    @staticmethod
    def get(table_name: str) -> UsageRecord | None:
        return db.session.get(UsageRecord, table_name)

    @staticmethod
    def list_all() -> list[UsageRecord]:
        """按对象名排序返回全部记录."""
        return list(db.session.scalars(select(UsageRecord).order_by(UsageRecord.table_name)))
