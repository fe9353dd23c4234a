"""时间常量.

提供常用时间单位的秒数表示,提高代码可读性.
"""


class TimeConstants:
    """时间常量(秒数)."""

    ONE_MILLISECOND = 0.001
    ONE_SECOND = 1
    ONE_MINUTE = 60
    ONE_HOUR = 3600
    ONE_DAY = 86400

    @classmethod
    def days(cls, seconds: float) -> float:
        """将秒数换算为天数(保留小数)."""
        return seconds / cls.ONE_DAY
