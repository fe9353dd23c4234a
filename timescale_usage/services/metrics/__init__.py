"""指标发布服务."""

from .usage_metrics import UsageMetricsPublisher

__all__ = ["UsageMetricsPublisher"]
