"""timescale-usage - Flask 应用初始化.

周期性采集 TimescaleDB hypertable / continuous aggregate 的容量,
写入 usage 表并通过 /metrics 暴露给 Prometheus.
"""

from __future__ import annotations

from importlib import import_module

from flask import Flask, current_app
from flask_sqlalchemy import SQLAlchemy

from timescale_usage.services.metrics.usage_metrics import UsageMetricsPublisher
from timescale_usage.settings import APP_VERSION, Settings

__version__ = APP_VERSION

# 初始化扩展
db = SQLAlchemy()

METRICS_EXTENSION_KEY = "usage_metrics"


def create_app(
    *,
    settings: Settings | None = None,
    metrics_publisher: UsageMetricsPublisher | None = None,
) -> Flask:
    """创建 Flask 应用实例.

    Args:
        settings: 可选的配置对象,用于测试或多环境启动.
        metrics_publisher: 可选的指标发布器,缺省时新建一个独立 registry 的实例.

    Returns:
        Flask: 已绑定数据库与路由的应用实例.

    """
    resolved_settings = settings or Settings.load()
    app = Flask(__name__)

    configure_app(app, resolved_settings)
    initialize_extensions(app, metrics_publisher)
    configure_blueprints(app)
    return app


def configure_app(app: Flask, settings: Settings) -> None:
    """写入 Settings 提供的配置."""
    app.config.from_mapping(settings.to_flask_config())
    app.config["SETTINGS"] = settings


def initialize_extensions(app: Flask, metrics_publisher: UsageMetricsPublisher | None) -> None:
    """初始化数据库扩展与指标发布器."""
    # 注册模型元数据, 避免在包导入阶段产生循环依赖
    import_module("timescale_usage.models")
    db.init_app(app)
    app.extensions[METRICS_EXTENSION_KEY] = metrics_publisher or UsageMetricsPublisher()


def configure_blueprints(app: Flask) -> None:
    """注册 HTTP 路由."""
    from timescale_usage.routes.health import health_bp
    from timescale_usage.routes.metrics import metrics_bp

    app.register_blueprint(metrics_bp)
    app.register_blueprint(health_bp)


def get_metrics_publisher() -> UsageMetricsPublisher:
    """返回当前应用绑定的指标发布器."""
    return current_app.extensions[METRICS_EXTENSION_KEY]


def get_settings() -> Settings:
    """返回当前应用绑定的 Settings."""
    return current_app.config["SETTINGS"]
