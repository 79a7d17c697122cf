"""Geospatial math for location anomaly detection.

Pure functions: great-circle distance, initial bearing, coordinate
validation, plus the simple distance-based suspicion check driven by
the max normal distance setting.
"""

import math
from dataclasses import dataclass
from typing import Sequence

import numpy as np

from authwatch.common.constants import GeoConstants


@dataclass(frozen=True)
class LocationSuspicion:
    """Result of the simple previous-vs-current location check.
    
    Attributes:
        suspicious: Whether the pair looks unusual
        reason: new_country, distance_threshold, unusual_pattern or normal
        confidence: Confidence in the suspicion (0-1)
        distance_km: Great-circle distance between the two points
    """
    suspicious: bool
    reason: str
    confidence: float
    distance_km: float


def validate_coordinates(latitude: float, longitude: float) -> bool:
    """True iff both values are finite and within standard ranges."""
    try:
        lat = float(latitude)
        lon = float(longitude)
    except (TypeError, ValueError):
        return False
    
    return (
        math.isfinite(lat)
        and math.isfinite(lon)
        and -90.0 <= lat <= 90.0
        and -180.0 <= lon <= 180.0
    )


def distance_km(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Haversine great-circle distance in kilometers.
    
    Symmetric in its two points and zero for identical points.
    """
    d_lat = math.radians(lat2 - lat1)
    d_lon = math.radians(lon2 - lon1)
    
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2))
        * math.sin(d_lon / 2) ** 2
    )
    c = 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))
    return GeoConstants.EARTH_RADIUS_KM * c


def distances_km(
    lat: float,
    lon: float,
    lats: Sequence[float],
    lons: Sequence[float],
) -> np.ndarray:
    """Vectorized haversine distance from one point to many.
    
    Args:
        lat: Origin latitude
        lon: Origin longitude
        lats: Target latitudes
        lons: Target longitudes
        
    Returns:
        Array of distances in kilometers, same length as the targets
    """
    lats_rad = np.radians(np.asarray(lats, dtype=float))
    lons_rad = np.radians(np.asarray(lons, dtype=float))
    lat_rad = math.radians(lat)
    
    d_lat = lats_rad - lat_rad
    d_lon = lons_rad - math.radians(lon)
    
    a = (
        np.sin(d_lat / 2) ** 2
        + math.cos(lat_rad) * np.cos(lats_rad) * np.sin(d_lon / 2) ** 2
    )
    c = 2 * np.arctan2(np.sqrt(a), np.sqrt(1 - a))
    return GeoConstants.EARTH_RADIUS_KM * c


def bearing_degrees(lat1: float, lon1: float, lat2: float, lon2: float) -> float:
    """Initial bearing from point 1 to point 2, in [0, 360)."""
    d_lon = math.radians(lon2 - lon1)
    lat1_rad = math.radians(lat1)
    lat2_rad = math.radians(lat2)
    
    y = math.sin(d_lon) * math.cos(lat2_rad)
    x = (
        math.cos(lat1_rad) * math.sin(lat2_rad)
        - math.sin(lat1_rad) * math.cos(lat2_rad) * math.cos(d_lon)
    )
    
    bearing = (math.degrees(math.atan2(y, x)) + 360.0) % 360.0
    # (-tiny + 360) % 360 can round up to exactly 360.0
    return 0.0 if bearing >= 360.0 else bearing


def distance_description(distance: float) -> str:
    """Human-readable description of a distance in km."""
    if distance < 1:
        return "Less than 1 km away"
    if distance < 1000:
        return f"{round(distance)} km away"
    return f"{round(distance / 100) / 10} thousand km away"


def bearing_description(bearing: float) -> str:
    """16-point compass name for a bearing."""
    points = GeoConstants.COMPASS_POINTS
    return points[int(round(bearing / 22.5)) % len(points)]


def location_suspicion(
    current_country_code: str,
    current_lat: float,
    current_lon: float,
    previous_country_code: str,
    previous_lat: float,
    previous_lon: float,
    distance_threshold: float,
    new_country_confidence: float = 0.8,
) -> LocationSuspicion:
    """Simple distance-based check between two consecutive logins.
    
    Flags a country change first, then a jump beyond the threshold,
    then a same-country jump beyond half the threshold.
    """
    distance = distance_km(previous_lat, previous_lon, current_lat, current_lon)
    
    if current_country_code != previous_country_code:
        return LocationSuspicion(True, "new_country", new_country_confidence, distance)
    
    if distance > distance_threshold:
        confidence = min(0.9, distance / (distance_threshold * 2))
        return LocationSuspicion(True, "distance_threshold", confidence, distance)
    
    if distance > distance_threshold * 0.5:
        return LocationSuspicion(True, "unusual_pattern", 0.6, distance)
    
    return LocationSuspicion(False, "normal", 0.0, distance)
