"""timescale-usage - 健康检查路由."""

from flask import Blueprint, jsonify
from flask.typing import ResponseReturnValue

from timescale_usage import get_metrics_publisher

health_bp = Blueprint("health", __name__)


@health_bp.route("/health")
def health_check() -> ResponseReturnValue:
    """基础健康检查.

    Returns:
        JSON 响应,包含已跟踪的对象数量与最近一次采集完成时间.

    """
    publisher = get_metrics_publisher()
    last_cycle_at = publisher.last_cycle_at
    return jsonify(
        {
            "status": "healthy",
            "tracked_tables": len(publisher.snapshot()),
            "last_cycle_at": last_cycle_at.isoformat() if last_cycle_at else None,
        },
    )
