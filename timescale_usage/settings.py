"""timescale-usage - 统一配置读取与校验.

说明:
- Settings 使用 `pydantic-settings` 的 `BaseSettings` 从环境变量与本地 `.env`(可选)读取配置.
- `create_app(settings=...)` 只消费 Settings,不再直接读取环境变量.
- 未设置 `DURATION` 时只采集一次后退出.
"""

from __future__ import annotations

from datetime import timedelta
from pathlib import Path

from dotenv import load_dotenv
from pydantic import Field, field_validator, model_validator
from pydantic_settings import BaseSettings, SettingsConfigDict
from sqlalchemy.engine import URL

from timescale_usage.constants import LogLevel
from timescale_usage.utils.time_utils import time_utils

PROJECT_ROOT = Path(__file__).resolve().parent.parent
DOTENV_PATH = PROJECT_ROOT / ".env"

APP_NAME = "timescale-usage"
APP_VERSION = "1.0.0"

DEFAULT_POSTGRES_HOST = "localhost"
DEFAULT_POSTGRES_PORT = 5432
DEFAULT_POSTGRES_DB = "postgres"
DEFAULT_POSTGRES_USER = "postgres"
DEFAULT_SOURCE_SCHEMA = "public"
DEFAULT_USAGE_SCHEMA = "usage"

DEFAULT_DB_CONNECTION_TIMEOUT_SECONDS = 30
DEFAULT_DB_MAX_CONNECTIONS = 10
DEFAULT_SQLALCHEMY_POOL_RECYCLE_SECONDS = 300

DEFAULT_METRICS_HOST = "0.0.0.0"  # noqa: S104
DEFAULT_METRICS_PORT = 8080

DEFAULT_LOG_LEVEL = "INFO"
DEFAULT_LOG_FORMAT = "console"
DEFAULT_LOG_MAX_SIZE_BYTES = 10 * 1024 * 1024
DEFAULT_LOG_BACKUP_COUNT = 5

LOG_FORMATS = ("console", "json")
LOG_LEVELS = tuple(level.value for level in LogLevel)
PORT_MAX = 65535

# UsageRecord 声明时使用的占位 schema, 运行时通过 schema_translate_map 替换
USAGE_SCHEMA_TOKEN = "usage_schema"


class Settings(BaseSettings):
    """采集进程运行时设置集合."""

    model_config = SettingsConfigDict(
        env_ignore_empty=True,
        extra="ignore",
        frozen=True,
        str_strip_whitespace=True,
    )

    app_name: str = Field(default=APP_NAME, validation_alias="APP_NAME")
    app_version: str = APP_VERSION

    postgres_host: str = Field(default=DEFAULT_POSTGRES_HOST, validation_alias="POSTGRES_HOST")
    postgres_port: int = Field(default=DEFAULT_POSTGRES_PORT, validation_alias="POSTGRES_PORT")
    postgres_db: str = Field(default=DEFAULT_POSTGRES_DB, validation_alias="POSTGRES_DB")
    postgres_user: str = Field(default=DEFAULT_POSTGRES_USER, validation_alias="POSTGRES_USER")
    postgres_password: str = Field(default="", validation_alias="POSTGRES_PW")
    database_url: str = Field(default="", validation_alias="DATABASE_URL")

    source_schema: str = Field(default=DEFAULT_SOURCE_SCHEMA, validation_alias="POSTGRES_SOURCE_SCHEMA")
    usage_schema: str = Field(default=DEFAULT_USAGE_SCHEMA, validation_alias="POSTGRES_USAGE_SCHEMA")

    duration: str = Field(default="", validation_alias="DURATION")

    db_connection_timeout_seconds: int = Field(
        default=DEFAULT_DB_CONNECTION_TIMEOUT_SECONDS,
        validation_alias="DB_CONNECTION_TIMEOUT",
    )
    db_max_connections: int = Field(default=DEFAULT_DB_MAX_CONNECTIONS, validation_alias="DB_MAX_CONNECTIONS")

    metrics_host: str = Field(default=DEFAULT_METRICS_HOST, validation_alias="METRICS_HOST")
    metrics_port: int = Field(default=DEFAULT_METRICS_PORT, validation_alias="METRICS_PORT")
    metrics_drop_reconciled: bool = Field(default=False, validation_alias="METRICS_DROP_RECONCILED")

    log_level: str = Field(default=DEFAULT_LOG_LEVEL, validation_alias="LOG_LEVEL")
    log_format: str = Field(default=DEFAULT_LOG_FORMAT, validation_alias="LOG_FORMAT")
    log_file: str = Field(default="", validation_alias="LOG_FILE")
    log_max_size_bytes: int = Field(default=DEFAULT_LOG_MAX_SIZE_BYTES, validation_alias="LOG_MAX_SIZE")
    log_backup_count: int = Field(default=DEFAULT_LOG_BACKUP_COUNT, validation_alias="LOG_BACKUP_COUNT")

    @field_validator("log_level")
    @classmethod
    def _normalize_log_level(cls, value: str) -> str:
        return value.upper()

    @field_validator("log_format")
    @classmethod
    def _normalize_log_format(cls, value: str) -> str:
        return value.lower()

    @property
    def is_sqlite(self) -> bool:
        """当前连接串是否指向 SQLite(单元测试使用)."""
        return self.sqlalchemy_database_uri.startswith("sqlite")

    @property
    def sqlalchemy_database_uri(self) -> str:
        """返回 SQLAlchemy 连接串, DATABASE_URL 优先, 否则由 POSTGRES_* 拼接."""
        if self.database_url:
            return self.database_url
        url = URL.create(
            "postgresql+psycopg",
            username=self.postgres_user,
            password=self.postgres_password or None,
            host=self.postgres_host,
            port=self.postgres_port,
            database=self.postgres_db,
        )
        return url.render_as_string(hide_password=False)

    @property
    def collection_interval(self) -> timedelta | None:
        """采集间隔; 为 None 表示只运行一次."""
        if not self.duration:
            return None
        return time_utils.parse_duration(self.duration)

    @property
    def schema_translate_map(self) -> dict[str, str | None]:
        """UsageRecord 占位 schema 到实际 schema 的映射."""
        return {USAGE_SCHEMA_TOKEN: None if self.is_sqlite else self.usage_schema}

    @property
    def sqlalchemy_engine_options(self) -> dict[str, object]:
        """生成 SQLAlchemy Engine 配置选项."""
        execution_options = {"schema_translate_map": self.schema_translate_map}
        if self.is_sqlite:
            return {
                "pool_pre_ping": True,
                "connect_args": {"check_same_thread": False},
                "execution_options": execution_options,
            }
        return {
            "pool_pre_ping": True,
            "pool_recycle": DEFAULT_SQLALCHEMY_POOL_RECYCLE_SECONDS,
            "pool_timeout": self.db_connection_timeout_seconds,
            "pool_size": self.db_max_connections,
            "max_overflow": 0,
            "execution_options": execution_options,
        }

    def to_flask_config(self) -> dict[str, object]:
        """转换为 Flask app.config 可写入的配置字典."""
        return {
            "APP_NAME": self.app_name,
            "APP_VERSION": self.app_version,
            "SQLALCHEMY_DATABASE_URI": self.sqlalchemy_database_uri,
            "SQLALCHEMY_TRACK_MODIFICATIONS": False,
            "SQLALCHEMY_ENGINE_OPTIONS": dict(self.sqlalchemy_engine_options),
            "SOURCE_SCHEMA": self.source_schema,
            "USAGE_SCHEMA": self.usage_schema,
            "METRICS_DROP_RECONCILED": self.metrics_drop_reconciled,
            "LOG_LEVEL": self.log_level,
        }

    @classmethod
    def load(cls) -> Settings:
        """从环境变量加载 Settings 并执行必要校验."""
        load_dotenv(dotenv_path=DOTENV_PATH if DOTENV_PATH.exists() else None, override=False)
        return cls()

    @model_validator(mode="after")
    def _validate(self) -> Settings:
        """执行跨字段校验,统一抛出可读的 ValueError."""
        errors: list[str] = []
        checks: list[tuple[str, bool]] = [
            ("POSTGRES_SOURCE_SCHEMA 不能为空", not self.source_schema),
            ("POSTGRES_USAGE_SCHEMA 不能为空", not self.usage_schema),
            ("POSTGRES_PORT 必须为 1-65535 的整数", not 0 < self.postgres_port <= PORT_MAX),
            ("DB_CONNECTION_TIMEOUT 必须为正整数", self.db_connection_timeout_seconds <= 0),
            ("DB_MAX_CONNECTIONS 必须为正整数", self.db_max_connections <= 0),
            ("METRICS_PORT 必须为 0-65535 的整数", not 0 <= self.metrics_port <= PORT_MAX),
            (f"LOG_FORMAT 仅支持 {'/'.join(LOG_FORMATS)}", self.log_format not in LOG_FORMATS),
            (f"LOG_LEVEL 仅支持 {'/'.join(LOG_LEVELS)}", self.log_level not in LOG_LEVELS),
        ]
        for message, condition in checks:
            if condition:
                errors.append(message)

        if self.duration:
            try:
                interval = time_utils.parse_duration(self.duration)
            except ValueError as exc:
                errors.append(f"DURATION 格式非法: {exc}")
            else:
                if interval <= timedelta(0):
                    errors.append("DURATION 必须为正数时长")

        if errors:
            joined = "; ".join(errors)
            raise ValueError(f"配置校验失败: {joined}")
        return self
