"""timescale-usage - 统一异常定义.

集中维护采集流程中的异常类型与元数据定义.
"""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any

from timescale_usage.constants.system_constants import ErrorCategory, ErrorMessages, ErrorSeverity


@dataclass(frozen=True, slots=True)
class ExceptionMetadata:
    """异常的元信息."""

    category: ErrorCategory
    severity: ErrorSeverity
    default_message_key: str


class AppError(Exception):
    """统一的基础异常.

    Args:
        message: 自定义错误文案,若为空则根据 ``message_key`` 推导.
        message_key: 自定义消息键.
        extra: 结构化日志附加字段.
        severity: 错误严重度.
        category: 错误分类.

    """

    metadata = ExceptionMetadata(
        category=ErrorCategory.SYSTEM,
        severity=ErrorSeverity.HIGH,
        default_message_key="INTERNAL_ERROR",
    )

    def __init__(
        self,
        message: str | None = None,
        *,
        message_key: str | None = None,
        extra: dict[str, Any] | None = None,
        severity: ErrorSeverity | None = None,
        category: ErrorCategory | None = None,
    ) -> None:
        self.message_key = message_key or self.metadata.default_message_key
        self.message = message or getattr(ErrorMessages, self.message_key, ErrorMessages.INTERNAL_ERROR)
        self.extra = dict(extra or {})
        self.severity = severity or self.metadata.severity
        self.category = category or self.metadata.category
        super().__init__(self.message)

    @property
    def recoverable(self) -> bool:
        """表示该异常是否可恢复.

        Returns:
            bool: 严重度为 LOW 或 MEDIUM 时为 True,采集循环可跳过并继续.

        """
        return self.severity in (ErrorSeverity.LOW, ErrorSeverity.MEDIUM)


class ConfigurationError(AppError):
    """表示运行配置非法(如采集间隔无法解析),进程不应继续启动."""

    metadata = ExceptionMetadata(
        category=ErrorCategory.CONFIGURATION,
        severity=ErrorSeverity.CRITICAL,
        default_message_key="CONFIGURATION_INVALID",
    )


class UsageSchemaError(AppError):
    """表示 usage schema/表无法创建或数据库不可达.

    在首次采集前抛出,属于致命错误.
    """

    metadata = ExceptionMetadata(
        category=ErrorCategory.DATABASE,
        severity=ErrorSeverity.CRITICAL,
        default_message_key="USAGE_SCHEMA_INIT_FAILED",
    )


class ObjectVanishedError(AppError):
    """表示 catalog 列出的对象在测量前已被删除.

    属于可恢复错误: 采集循环记录 warning 后跳过该对象.
    """

    metadata = ExceptionMetadata(
        category=ErrorCategory.CATALOG,
        severity=ErrorSeverity.LOW,
        default_message_key="OBJECT_VANISHED",
    )

    def __init__(self, schema: str, name: str, *, message: str | None = None) -> None:
        self.schema = schema
        self.name = name
        super().__init__(
            message or f"对象 {schema}.{name} 在采集前已被删除",
            extra={"schema": schema, "table": name},
        )


__all__ = [
    "AppError",
    "ConfigurationError",
    "ObjectVanishedError",
    "UsageSchemaError",
]
