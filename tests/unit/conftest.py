# tests/unit/conftest.py
"""单元测试专用 fixtures.

提供隔离的环境变量、基于 SQLite 内存库的应用实例与伪造的 TimescaleDB catalog.
"""

from datetime import UTC, datetime

import pytest
from sqlalchemy import text

from timescale_usage import create_app, db
from timescale_usage.services.usage.schema_initializer import UsageSchemaInitializer
from timescale_usage.settings import Settings

_ISOLATED_ENV = (
    "DURATION",
    "LOG_FILE",
    "METRICS_DROP_RECONCILED",
    "POSTGRES_HOST",
    "POSTGRES_PORT",
    "POSTGRES_DB",
    "POSTGRES_USER",
    "POSTGRES_PW",
    "POSTGRES_SOURCE_SCHEMA",
    "POSTGRES_USAGE_SCHEMA",
)


@pytest.fixture(autouse=True)
def _unit_test_env(monkeypatch):
    """为 unit tests 强制注入隔离环境变量.

    目标:
    - unit tests 不依赖外部 PostgreSQL/TimescaleDB
    - 避免开发者本机环境变量影响测试稳定性
    """
    monkeypatch.setenv("DATABASE_URL", "sqlite:///:memory:")
    for name in _ISOLATED_ENV:
        monkeypatch.delenv(name, raising=False)


@pytest.fixture
def mock_time():
    """可调整的固定时钟, 用于测试时间敏感的逻辑."""
    fixed_time = datetime(2025, 1, 3, 12, 0, 0, tzinfo=UTC)

    class MockTime:
        @staticmethod
        def now():
            return fixed_time

        @staticmethod
        def set(new_time: datetime):
            nonlocal fixed_time
            fixed_time = new_time

    return MockTime


@pytest.fixture
def app():
    """创建测试应用实例(每个测试一个独立的内存库)."""
    app = create_app(settings=Settings.load())
    app.config["TESTING"] = True
    return app


@pytest.fixture
def client(app):
    return app.test_client()


@pytest.fixture
def app_context(app):
    with app.app_context():
        yield app
        db.session.remove()


@pytest.fixture
def usage_table(app_context):
    """确保 usage 表已创建."""
    UsageSchemaInitializer("usage").ensure()


@pytest.fixture
def timescale_catalog(usage_table):
    """在 SQLite 中模拟 timescaledb_information 视图.

    返回一个注册函数: ``register(kind, name, schema="public")``, kind 为 table/view.
    """
    # ATTACH 不能在事务中执行, 必须先于任何写操作
    with db.engine.connect() as connection:
        connection.exec_driver_sql("ATTACH DATABASE ':memory:' AS timescaledb_information")
        connection.exec_driver_sql(
            "CREATE TABLE timescaledb_information.hypertables (hypertable_schema TEXT, hypertable_name TEXT)",
        )
        connection.exec_driver_sql(
            "CREATE TABLE timescaledb_information.continuous_aggregates (view_schema TEXT, view_name TEXT)",
        )
        connection.commit()

    def register(kind: str, name: str, schema: str = "public") -> None:
        if kind == "table":
            stmt = text("INSERT INTO timescaledb_information.hypertables VALUES (:schema, :name)")
        else:
            stmt = text("INSERT INTO timescaledb_information.continuous_aggregates VALUES (:schema, :name)")
        db.session.execute(stmt, {"schema": schema, "name": name})
        db.session.commit()

    return register
