"""Security event schema - structured records sent to the event logger."""

from datetime import datetime, timezone
from typing import Any, Dict, Optional

from pydantic import BaseModel, Field

from authwatch.core.types import SecurityEventType, Severity
from authwatch.data.schemas.action import SecurityAction
from authwatch.data.schemas.location import LocationSample


class SecurityEvent(BaseModel):
    """A security event emitted by the monitor engine."""
    type: SecurityEventType = Field(..., description="Event type")
    user_id: Optional[str] = Field(default=None)
    ip: str = Field(default="unknown")
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="Emission time (UTC)"
    )
    
    # Rate-based events
    attempts: Optional[int] = Field(default=None, ge=0)
    request_rate: Optional[str] = Field(default=None)
    
    # Location events
    severity: Optional[Severity] = None
    confidence: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    risk_score: Optional[float] = Field(default=None, ge=0.0, le=100.0)
    description: Optional[str] = None
    location: Optional[LocationSample] = None
    previous_location: Optional[LocationSample] = None
    
    # Remediation events
    action: Optional[SecurityAction] = None
    
    metadata: Dict[str, Any] = Field(default_factory=dict)
    
    def to_log_dict(self) -> Dict[str, Any]:
        """JSON-safe dict without unset optional fields."""
        return self.model_dump(mode="json", exclude_none=True)
