"""timescale-usage - Prometheus 抓取路由."""

from flask import Blueprint, Response

from timescale_usage import get_metrics_publisher

metrics_bp = Blueprint("metrics", __name__)


@metrics_bp.route("/metrics")
def metrics() -> Response:
    """以 Prometheus 文本格式输出当前表容量快照."""
    body, content_type = get_metrics_publisher().render()
    return Response(body, status=200, content_type=content_type)
