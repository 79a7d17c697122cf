"""Security action schemas - remediation records and failed attempts."""

from typing import Any, Dict
from uuid import uuid4

from pydantic import BaseModel, Field

from authwatch.core.types import SecurityActionType


class FailedLoginAttempt(BaseModel):
    """One failed authentication attempt."""
    timestamp: int = Field(..., ge=0, description="Epoch milliseconds")
    ip: str = Field(default="unknown")
    user_id: str = Field(...)


class SecurityAction(BaseModel):
    """A recorded remediation action.
    
    Appended to the user's action log on creation. Only ``email_sent``
    changes afterwards; it records that a notification was attempted,
    not that it was delivered.
    """
    action_id: str = Field(
        default_factory=lambda: f"act_{uuid4().hex[:12]}",
        description="Unique action identifier"
    )
    type: SecurityActionType = Field(..., description="Action type")
    user_id: str = Field(...)
    reason: str = Field(...)
    timestamp: int = Field(..., ge=0, description="Epoch milliseconds")
    ip: str = Field(default="unknown")
    email_sent: bool = Field(default=False, description="Notification attempted")
    metadata: Dict[str, Any] = Field(default_factory=dict)
