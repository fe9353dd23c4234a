"""数据模型."""

from .usage_record import UsageRecord

__all__ = ["UsageRecord"]
