"""Monitor engine: lifecycle hooks and query surface."""

from authwatch.engine.monitor import MonitorEngine

__all__ = ["MonitorEngine"]
