"""Custom exceptions for authwatch.

Provides a hierarchy of exceptions for the detection pipeline.
All authwatch exceptions inherit from AuthWatchError.
"""

from typing import Any, Dict, Optional


class AuthWatchError(Exception):
    """Base exception for all authwatch errors.
    
    Attributes:
        message: Human-readable error message
        code: Machine-readable error code
        details: Additional context about the error
    """
    
    def __init__(
        self,
        message: str,
        code: str = "AUTHWATCH_ERROR",
        details: Optional[Dict[str, Any]] = None
    ):
        self.message = message
        self.code = code
        self.details = details or {}
        super().__init__(self.message)
    
    def to_dict(self) -> Dict[str, Any]:
        """Convert exception to dictionary for API responses."""
        return {
            "error": self.code,
            "message": self.message,
            "details": self.details,
        }


class ConfigurationError(AuthWatchError):
    """Raised when configuration is invalid or missing."""
    
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="CONFIG_ERROR", details=details)


class InputValidationError(AuthWatchError):
    """Raised when a request body is malformed or misses a required field."""
    
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="VALIDATION_ERROR", details=details)


class GeolocationLookupError(AuthWatchError):
    """Raised when no geolocation provider could resolve an IP."""
    
    def __init__(
        self,
        message: str,
        ip: str,
        details: Optional[Dict[str, Any]] = None
    ):
        details = details or {}
        details["ip"] = ip
        super().__init__(message, code="LOOKUP_FAILURE", details=details)


class InvalidCoordinatesError(AuthWatchError):
    """Raised when a resolved location carries unusable coordinates."""
    
    def __init__(
        self,
        latitude: Optional[float],
        longitude: Optional[float],
        details: Optional[Dict[str, Any]] = None
    ):
        details = details or {}
        details.update({"latitude": latitude, "longitude": longitude})
        super().__init__(
            f"Invalid coordinates: ({latitude}, {longitude})",
            code="INVALID_COORDINATES",
            details=details,
        )


class NotificationError(AuthWatchError):
    """Raised when a notification could not be sent."""
    
    def __init__(
        self,
        message: str,
        recipient: str,
        template: str,
        details: Optional[Dict[str, Any]] = None
    ):
        details = details or {}
        details.update({"recipient": recipient, "template": template})
        super().__init__(message, code="NOTIFICATION_FAILURE", details=details)


class NotFoundError(AuthWatchError):
    """Raised when a queried entity does not exist."""
    
    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message, code="NOT_FOUND", details=details)


class AuditLogIntegrityError(AuthWatchError):
    """Raised when the audit log hash chain does not verify."""
    
    def __init__(self, message: str, line_number: int):
        super().__init__(
            message, code="AUDIT_INTEGRITY", details={"line_number": line_number}
        )
