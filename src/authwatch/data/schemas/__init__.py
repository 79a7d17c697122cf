"""Data schemas - canonical Pydantic definitions."""

from authwatch.data.schemas.location import LocationSample, UserLocationHistory
from authwatch.data.schemas.anomaly import Anomaly
from authwatch.data.schemas.action import FailedLoginAttempt, SecurityAction
from authwatch.data.schemas.event import SecurityEvent
from authwatch.data.schemas.notification import EmailNotification, NotificationData

__all__ = [
    "LocationSample",
    "UserLocationHistory",
    "Anomaly",
    "FailedLoginAttempt",
    "SecurityAction",
    "SecurityEvent",
    "EmailNotification",
    "NotificationData",
]
