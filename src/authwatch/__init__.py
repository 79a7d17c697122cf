"""authwatch - runtime threat detection for authentication flows."""

__version__ = "0.1.0"
__author__ = "authwatch team"

from authwatch.core.types import (
    AnomalyType,
    SecurityActionType,
    SecurityEventType,
    Severity,
)

__all__ = [
    "AnomalyType",
    "SecurityActionType",
    "SecurityEventType",
    "Severity",
]
