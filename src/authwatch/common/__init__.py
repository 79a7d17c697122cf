"""Common utilities - logging, config, exceptions."""

from authwatch.common.logging.logger import get_logger
from authwatch.common.config import MonitorConfig, SecurityActionsConfig, get_config, reset_config
from authwatch.common.exceptions import (
    AuthWatchError,
    ConfigurationError,
    InputValidationError,
    GeolocationLookupError,
    InvalidCoordinatesError,
    NotificationError,
    NotFoundError,
    AuditLogIntegrityError,
)

__all__ = [
    # Logging
    "get_logger",
    # Config
    "MonitorConfig",
    "SecurityActionsConfig",
    "get_config",
    "reset_config",
    # Exceptions
    "AuthWatchError",
    "ConfigurationError",
    "InputValidationError",
    "GeolocationLookupError",
    "InvalidCoordinatesError",
    "NotificationError",
    "NotFoundError",
    "AuditLogIntegrityError",
]
