"""对象容量使用记录模型.

每个 hypertable / continuous aggregate 一行, 仅保留最新一次采集结果(不保留历史).
"""

from sqlalchemy import BigInteger, Column, DateTime, Double, Text

from timescale_usage import db
from timescale_usage.settings import USAGE_SCHEMA_TOKEN
from timescale_usage.utils.time_utils import time_utils


class UsageRecord(db.Model):
    """对象容量使用记录.

    Attributes:
        table_name: 对象名称(主键, 列名为 ``table``).
        size_bytes: 近似字节数(列名为 ``bytes``).
        updated_at: 最近一次采集时间.
        bytes_per_day: 平均每日增长字节数.

    """

    __tablename__ = "usage"
    # 实际 schema 由 engine 的 schema_translate_map 决定
    __table_args__ = {"schema": USAGE_SCHEMA_TOKEN}

    table_name = Column("table", Text, key="table_name", primary_key=True)
    size_bytes = Column("bytes", BigInteger, key="size_bytes", nullable=False, default=0)
    updated_at = Column(DateTime(timezone=True), nullable=False, default=time_utils.now)
    bytes_per_day = Column(Double, nullable=False, default=0.0)

    def __repr__(self) -> str:
        return (
            f"<UsageRecord(table='{self.table_name}', bytes={self.size_bytes}, "
            f"bytes_per_day={self.bytes_per_day})>"
        )
