"""Anomaly schema - output of the location anomaly detector."""

from typing import Any, Dict

from pydantic import BaseModel, Field

from authwatch.core.types import AnomalyType, Severity


class Anomaly(BaseModel):
    """A classified location anomaly.
    
    Produced per evaluation call; never persisted by the detector.
    """
    type: AnomalyType = Field(..., description="Anomaly classification")
    severity: Severity = Field(..., description="Severity level")
    confidence: float = Field(..., ge=0.0, le=1.0)
    risk_score: float = Field(..., ge=0.0, le=100.0)
    description: str = Field(..., description="Human-readable summary")
    metadata: Dict[str, Any] = Field(
        default_factory=dict, description="Type-specific evidence"
    )
    
    model_config = {
        "json_schema_extra": {
            "example": {
                "type": "impossible_travel",
                "severity": "critical",
                "confidence": 0.9,
                "risk_score": 100.0,
                "description": "Impossible travel detected: 10848.8km in 0.5h (21697.6 km/h)",
                "metadata": {"distance": 10848.8, "time_diff": 0.5, "speed": 21697.6},
            }
        }
    }
