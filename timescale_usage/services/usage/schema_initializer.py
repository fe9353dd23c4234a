"""usage schema 初始化服务."""

from __future__ import annotations

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.schema import CreateSchema

from timescale_usage import db
from timescale_usage.errors import UsageSchemaError
from timescale_usage.models.usage_record import UsageRecord
from timescale_usage.utils.structlog_config import get_system_logger


class UsageSchemaInitializer:
    """幂等地确保 usage schema 与 usage 表存在.

    在第一次采集之前调用; 失败即致命, 进程不应在没有可写存储时继续.
    """

    def __init__(self, usage_schema: str) -> None:
        self.usage_schema = usage_schema
        self.logger = get_system_logger()

    def ensure(self) -> None:
        """创建缺失的 schema 与表.

        Raises:
            UsageSchemaError: 数据库不可达或 DDL 执行失败.

        """
        try:
            with db.engine.begin() as connection:
                if connection.dialect.name != "sqlite":
                    connection.execute(CreateSchema(self.usage_schema, if_not_exists=True))
                UsageRecord.__table__.create(bind=connection, checkfirst=True)
        except SQLAlchemyError as exc:
            self.logger.exception(
                "usage_schema_init_failed",
                usage_schema=self.usage_schema,
                error=str(exc),
            )
            raise UsageSchemaError(
                f"无法初始化 usage 表 {self.usage_schema}.usage: {exc}",
                extra={"usage_schema": self.usage_schema},
            ) from exc

        self.logger.info("usage_schema_ready", usage_schema=self.usage_schema)
