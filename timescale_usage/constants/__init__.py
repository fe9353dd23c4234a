"""常量模块.

主要常量:
- ErrorCategory / ErrorSeverity / ErrorMessages: 错误元数据
- LogLevel: 日志级别
- TimeConstants: 时间常量
"""

from .system_constants import ErrorCategory, ErrorMessages, ErrorSeverity, LogLevel
from .time_constants import TimeConstants

__all__ = [
    "ErrorCategory",
    "ErrorMessages",
    "ErrorSeverity",
    "LogLevel",
    "TimeConstants",
]
