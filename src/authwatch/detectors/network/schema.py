"""Network classification output schema.

Pydantic model for VPN/Tor/proxy inference results.
"""

from typing import Optional

from pydantic import BaseModel, Field

from authwatch.core.types import RiskLevel


class NetworkAnalysis(BaseModel):
    """Output of the network classifier.
    
    Deterministic and explainable from the ISP/org strings and IP given.
    """
    is_vpn: bool = Field(default=False)
    is_tor: bool = Field(default=False)
    is_proxy: bool = Field(default=False)
    confidence: float = Field(
        ...,
        ge=0.0,
        le=1.0,
        description="Confidence in the strongest classification"
    )
    risk_level: RiskLevel = Field(..., description="Network risk level")
    provider: Optional[str] = Field(
        default=None, description="ISP string when a VPN was inferred"
    )
    evidence: list[str] = Field(
        default_factory=list,
        description="Which inputs triggered each classification"
    )
    
    model_config = {
        "json_schema_extra": {
            "example": {
                "is_vpn": True,
                "is_tor": False,
                "is_proxy": False,
                "confidence": 0.9,
                "risk_level": "high",
                "provider": "nordvpn s.a.",
                "evidence": ["isp_matches_vpn_provider:nordvpn"],
            }
        }
    }
