"""Shared fixtures for authwatch tests."""

import pytest

from authwatch.data.schemas.location import LocationSample

HOUR_MS = 3_600_000
BASE_TIME_MS = 1_767_225_600_000  # 2026-01-01T00:00:00Z


class FakeClock:
    """Manually advanced epoch-millisecond clock."""
    
    def __init__(self, now_ms: int = BASE_TIME_MS):
        self.now_ms = now_ms
    
    def __call__(self) -> int:
        return self.now_ms
    
    def advance(self, ms: int = 0, *, seconds: float = 0, minutes: float = 0, hours: float = 0) -> int:
        self.now_ms += int(ms + seconds * 1000 + minutes * 60_000 + hours * HOUR_MS)
        return self.now_ms


PLACES = {
    "new_york": dict(
        country="United States", country_code="US", region="New York", city="New York",
        latitude=40.7128, longitude=-74.0060, timezone="America/New_York",
    ),
    "boston": dict(
        country="United States", country_code="US", region="Massachusetts", city="Boston",
        latitude=42.3601, longitude=-71.0589, timezone="America/New_York",
    ),
    "tokyo": dict(
        country="Japan", country_code="JP", region="Tokyo", city="Tokyo",
        latitude=35.6762, longitude=139.6503, timezone="Asia/Tokyo",
    ),
    "berlin": dict(
        country="Germany", country_code="DE", region="Berlin", city="Berlin",
        latitude=52.5200, longitude=13.4050, timezone="Europe/Berlin",
    ),
    "paris": dict(
        country="France", country_code="FR", region="Ile-de-France", city="Paris",
        latitude=48.8566, longitude=2.3522, timezone="Europe/Paris",
    ),
    "pyongyang": dict(
        country="North Korea", country_code="KP", region="Pyongyang", city="Pyongyang",
        latitude=39.0392, longitude=125.7625, timezone="Asia/Pyongyang",
    ),
}


@pytest.fixture
def clock():
    return FakeClock()


@pytest.fixture
def make_sample():
    """Factory for LocationSample at a named place."""
    
    def _make(place: str = "new_york", timestamp: int = BASE_TIME_MS, **overrides) -> LocationSample:
        fields = {
            "ip": "198.51.100.10",
            "isp": "Example Broadband",
            "org": "Example Broadband",
            **PLACES[place],
            "timestamp": timestamp,
        }
        fields.update(overrides)
        return LocationSample(**fields)
    
    return _make
