"""Location schemas - resolved login locations and per-user history."""

import math
from typing import List, Optional

from pydantic import BaseModel, Field


class LocationSample(BaseModel):
    """A resolved location for one login IP.
    
    Created once per resolved login and never mutated; enrichment
    (network flags, composite risk) produces a copy via model_copy.
    Coordinates are optional so that unusable provider answers can be
    represented and skipped by the detector instead of failing here.
    """
    ip: str = Field(..., description="Login IP address")
    country: str = Field(default="Unknown", description="Country name")
    country_code: str = Field(
        default="XX", description="ISO 3166-1 alpha-2 country code"
    )
    region: str = Field(default="", description="Region or state name")
    city: str = Field(default="", description="City name")
    latitude: Optional[float] = Field(default=None, description="Latitude in degrees")
    longitude: Optional[float] = Field(default=None, description="Longitude in degrees")
    timezone: str = Field(default="UTC", description="IANA zone name or abbreviation")
    isp: str = Field(default="", description="Internet service provider")
    org: str = Field(default="", description="Owning organization")
    timestamp: int = Field(..., ge=0, description="Observation time, epoch milliseconds")
    is_vpn: bool = Field(default=False, description="VPN inferred")
    is_tor: bool = Field(default=False, description="Tor inferred")
    is_proxy: bool = Field(default=False, description="Proxy or hosting inferred")
    risk_score: float = Field(
        default=0.0, ge=0.0, le=100.0, description="Composite sample risk (0-100)"
    )
    
    model_config = {
        "frozen": True,
        "json_schema_extra": {
            "example": {
                "ip": "203.0.113.7",
                "country": "United States",
                "country_code": "US",
                "region": "New York",
                "city": "New York",
                "latitude": 40.7128,
                "longitude": -74.0060,
                "timezone": "America/New_York",
                "isp": "Example Telecom",
                "org": "Example Telecom",
                "timestamp": 1769610600000,
                "is_vpn": False,
                "is_tor": False,
                "is_proxy": False,
                "risk_score": 0.0,
            }
        },
    }
    
    @property
    def has_valid_coordinates(self) -> bool:
        """True iff both coordinates are present, finite and in range."""
        if self.latitude is None or self.longitude is None:
            return False
        return (
            math.isfinite(self.latitude)
            and math.isfinite(self.longitude)
            and -90.0 <= self.latitude <= 90.0
            and -180.0 <= self.longitude <= 180.0
        )
    
    @property
    def place_key(self) -> str:
        """City/country key used for frequency counting."""
        return f"{self.city}, {self.country_code}"


class UserLocationHistory(BaseModel):
    """Per-user location history.
    
    Locations are kept in chronological (insertion) order and are
    pruned to the configured anomaly window on every update.
    """
    user_id: str = Field(..., description="Owning user")
    locations: List[LocationSample] = Field(default_factory=list)
    frequent_locations: List[LocationSample] = Field(
        default_factory=list, description="Top locations by occurrence"
    )
    last_updated: int = Field(default=0, ge=0, description="Epoch milliseconds")
    
    @property
    def last_location(self) -> Optional[LocationSample]:
        """Most recent sample, if any."""
        return self.locations[-1] if self.locations else None
