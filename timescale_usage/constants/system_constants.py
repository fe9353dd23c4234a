"""timescale-usage - 常量定义模块.

统一管理错误分类、严重度与错误文案.
"""

from enum import Enum


class LogLevel(Enum):
    """日志级别枚举."""

    DEBUG = "DEBUG"
    INFO = "INFO"
    WARNING = "WARNING"
    ERROR = "ERROR"
    CRITICAL = "CRITICAL"


class ErrorCategory(Enum):
    """错误分类枚举."""

    CONFIGURATION = "configuration"
    DATABASE = "database"
    CATALOG = "catalog"
    SYSTEM = "system"


class ErrorSeverity(Enum):
    """错误严重程度枚举."""

    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class ErrorMessages:
    """错误消息常量."""

    INTERNAL_ERROR = "服务内部错误"
    CONFIGURATION_INVALID = "配置校验失败"
    USAGE_SCHEMA_INIT_FAILED = "usage 表初始化失败"
    OBJECT_VANISHED = "对象在采集前已被删除"
