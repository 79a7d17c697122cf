"""Notification schemas - outbound email contract."""

from typing import List, Optional

from pydantic import BaseModel, Field

from authwatch.core.types import NotificationTemplate


class NotificationData(BaseModel):
    """Structured payload rendered into a notification template."""
    user_name: str = Field(...)
    reason: str = Field(...)
    ip: str = Field(default="unknown")
    timestamp: str = Field(..., description="ISO 8601 time of the triggering action")
    reset_url: Optional[str] = None
    totp_uri: Optional[str] = None
    backup_codes: Optional[List[str]] = None


class EmailNotification(BaseModel):
    """Notification handed to the configured email sender."""
    to: str = Field(..., description="Recipient address")
    subject: str = Field(...)
    template: NotificationTemplate = Field(...)
    data: NotificationData = Field(...)
