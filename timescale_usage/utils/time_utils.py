"""统一时间处理工具模块.

所有时间统一使用带时区的 UTC datetime.
"""

from __future__ import annotations

import re
from datetime import UTC, datetime, timedelta

from timescale_usage.constants import TimeConstants

# Go 风格的时长单位, 例如 "90s"、"1h30m"、"500ms"
_DURATION_UNITS: dict[str, float] = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": TimeConstants.ONE_MILLISECOND,
    "s": TimeConstants.ONE_SECOND,
    "m": TimeConstants.ONE_MINUTE,
    "h": TimeConstants.ONE_HOUR,
}
_DURATION_PART = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")


class TimeUtils:
    """统一时间处理工具类."""

    @staticmethod
    def now() -> datetime:
        """获取当前 UTC 时间.

        Returns:
            带 UTC 时区信息的当前时间.

        """
        return datetime.now(UTC)

    @staticmethod
    def ensure_utc(dt: datetime) -> datetime:
        """将 datetime 规范为 UTC.

        无时区信息的值(例如 SQLite 返回的时间)按 UTC 解释.
        """
        if dt.tzinfo is None:
            return dt.replace(tzinfo=UTC)
        return dt.astimezone(UTC)

    @classmethod
    def elapsed_days(cls, start: datetime, end: datetime) -> float:
        """计算 start 到 end 之间的天数(带小数)."""
        delta = cls.ensure_utc(end) - cls.ensure_utc(start)
        return TimeConstants.days(delta.total_seconds())

    @staticmethod
    def parse_duration(raw: str) -> timedelta:
        """解析 Go 风格的时长字符串.

        Args:
            raw: 例如 "30s"、"5m"、"1h30m"、"1.5h"; 单独的 "0" 也合法.

        Returns:
            timedelta: 解析结果.

        Raises:
            ValueError: 字符串为空或格式非法.

        """
        text = (raw or "").strip()
        if not text:
            raise ValueError("时长不能为空")

        sign = 1
        body = text
        if body[0] in "+-":
            sign = -1 if body[0] == "-" else 1
            body = body[1:]
        if body == "0":
            return timedelta(0)
        if not body:
            raise ValueError(f"无法解析的时长: {raw!r}")

        seconds = 0.0
        position = 0
        for match in _DURATION_PART.finditer(body):
            if match.start() != position:
                break
            seconds += float(match.group(1)) * _DURATION_UNITS[match.group(2)]
            position = match.end()

        if position == 0 or position != len(body):
            raise ValueError(f"无法解析的时长: {raw!r}")
        return timedelta(seconds=sign * seconds)


time_utils = TimeUtils()
