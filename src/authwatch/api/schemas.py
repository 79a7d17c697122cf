"""API Schemas - Request/Response models for the monitor endpoints.

Request and response bodies use camelCase on the wire.
"""

from typing import Any, Dict, List, Optional
from pydantic import BaseModel, ConfigDict, Field

from authwatch.core.types import SecurityActionType
from authwatch.data.schemas.action import SecurityAction
from authwatch.data.schemas.event import SecurityEvent
from authwatch.data.schemas.location import LocationSample


class _CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


# =============================================================================
# REQUEST SCHEMAS
# =============================================================================

class TriggerActionRequest(_CamelModel):
    """Request body for POST /monitor/trigger-action."""
    user_id: str = Field(..., alias="userId", min_length=1)
    action_type: SecurityActionType = Field(..., alias="actionType")
    reason: str = Field(..., min_length=1)
    ip: Optional[str] = Field(default=None)
    
    model_config = ConfigDict(
        populate_by_name=True,
        json_schema_extra={
            "example": {
                "userId": "user_123",
                "actionType": "security_alert",
                "reason": "Manual review flagged account",
                "ip": "203.0.113.7",
            }
        },
    )


class FailedLoginRequest(_CamelModel):
    """Request body for POST /monitor/failed-login."""
    user_id: str = Field(..., alias="userId", min_length=1)
    ip: Optional[str] = Field(default=None)


# =============================================================================
# RESPONSE SCHEMAS
# =============================================================================

class EventsResponse(BaseModel):
    events: List[SecurityEvent]


class StatsResponse(BaseModel):
    stats: Dict[str, Any]


class UserLocationsResponse(_CamelModel):
    locations: List[LocationSample]
    frequent_locations: List[LocationSample] = Field(..., alias="frequentLocations")
    last_updated: int = Field(..., alias="lastUpdated")


class ActionResponse(BaseModel):
    action: SecurityAction


class UserActionsResponse(BaseModel):
    actions: List[SecurityAction]


class FailedLoginResponse(BaseModel):
    attempts: int
    threshold: int
    message: str


class ErrorResponse(BaseModel):
    """Error response body."""
    error: str = Field(..., description="Error code")
    message: str = Field(..., description="Human-readable error message")
    details: Dict[str, Any] = Field(default_factory=dict)
    request_id: Optional[str] = Field(default=None)
