"""Tests for geospatial math."""

import math

import numpy as np
import pytest

from authwatch.geo.geomath import (
    bearing_degrees,
    bearing_description,
    distance_description,
    distance_km,
    distances_km,
    location_suspicion,
    validate_coordinates,
)

NEW_YORK = (40.7128, -74.0060)
TOKYO = (35.6762, 139.6503)
LONDON = (51.5074, -0.1278)
PARIS = (48.8566, 2.3522)


class TestDistance:
    """Tests for haversine distance."""
    
    def test_new_york_to_tokyo(self):
        assert distance_km(*NEW_YORK, *TOKYO) == pytest.approx(10850, abs=25)
    
    def test_london_to_paris(self):
        assert distance_km(*LONDON, *PARIS) == pytest.approx(344, abs=2)
    
    @pytest.mark.parametrize("a,b", [
        (NEW_YORK, TOKYO),
        (LONDON, PARIS),
        ((0.0, 179.9), (0.0, -179.9)),
        ((89.9, 0.0), (-89.9, 180.0)),
    ])
    def test_symmetric(self, a, b):
        assert distance_km(*a, *b) == pytest.approx(distance_km(*b, *a))
    
    def test_same_point_is_zero(self):
        assert distance_km(*TOKYO, *TOKYO) == 0.0
    
    def test_antimeridian_is_short(self):
        """Points either side of the date line are close, not half a world apart."""
        assert distance_km(0.0, 179.9, 0.0, -179.9) < 25
    
    def test_vectorized_matches_scalar(self):
        targets = [TOKYO, LONDON, PARIS, NEW_YORK]
        result = distances_km(
            *NEW_YORK,
            [t[0] for t in targets],
            [t[1] for t in targets],
        )
        
        assert isinstance(result, np.ndarray)
        expected = [distance_km(*NEW_YORK, *t) for t in targets]
        assert result == pytest.approx(expected)
        assert result[-1] == pytest.approx(0.0, abs=1e-9)


class TestValidateCoordinates:
    
    @pytest.mark.parametrize("lat,lon", [(0, 0), (90, 180), (-90, -180), (40.7, -74.0)])
    def test_valid(self, lat, lon):
        assert validate_coordinates(lat, lon)
    
    @pytest.mark.parametrize("lat,lon", [
        (90.01, 0),
        (0, -180.5),
        (math.nan, 0),
        (0, math.inf),
        (None, 0),
        ("north", 0),
    ])
    def test_invalid(self, lat, lon):
        assert not validate_coordinates(lat, lon)


class TestBearing:
    
    def test_due_east_on_equator(self):
        assert bearing_degrees(0, 0, 0, 10) == pytest.approx(90.0)
    
    def test_due_north(self):
        assert bearing_degrees(0, 0, 10, 0) == pytest.approx(0.0)
    
    def test_range(self):
        for target in (TOKYO, LONDON, PARIS, (-33.9, 151.2)):
            bearing = bearing_degrees(*NEW_YORK, *target)
            assert 0.0 <= bearing < 360.0
    
    @pytest.mark.parametrize("bearing,expected", [
        (0, "North"), (45, "NE"), (90, "East"), (180, "South"), (270, "West"), (350, "North"),
    ])
    def test_compass_names(self, bearing, expected):
        assert bearing_description(bearing) == expected


class TestDistanceDescription:
    
    def test_short(self):
        assert distance_description(0.4) == "Less than 1 km away"
    
    def test_medium(self):
        assert distance_description(344.2) == "344 km away"
    
    def test_long(self):
        assert distance_description(10850) == "10.8 thousand km away"


class TestLocationSuspicion:
    """Tests for the simple previous-vs-current check."""
    
    def test_country_change_is_flagged_first(self):
        result = location_suspicion("FR", *PARIS, "GB", *LONDON, distance_threshold=1000)
        
        assert result.suspicious
        assert result.reason == "new_country"
        assert result.confidence == 0.8
    
    def test_beyond_threshold(self):
        result = location_suspicion("US", 34.05, -118.24, "US", *NEW_YORK, distance_threshold=1000)
        
        assert result.suspicious
        assert result.reason == "distance_threshold"
        assert 0 < result.confidence <= 0.9
    
    def test_beyond_half_threshold(self):
        # New York to Chicago, ~1145 km
        result = location_suspicion("US", 41.88, -87.63, "US", *NEW_YORK, distance_threshold=2000)
        
        assert result.suspicious
        assert result.reason == "unusual_pattern"
        assert result.confidence == 0.6
    
    def test_normal(self):
        result = location_suspicion("US", 42.36, -71.06, "US", *NEW_YORK, distance_threshold=1000)
        
        assert not result.suspicious
        assert result.reason == "normal"
        assert result.distance_km == pytest.approx(306, abs=5)
