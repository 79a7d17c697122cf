"""CloudWatch metrics for the monitor engine."""

from authwatch.monitoring.metrics import MetricPoint, MetricsCollector, MetricType

__all__ = ["MetricPoint", "MetricsCollector", "MetricType"]
