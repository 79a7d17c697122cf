"""Geospatial helpers."""

from authwatch.geo.geomath import (
    LocationSuspicion,
    bearing_degrees,
    bearing_description,
    distance_description,
    distance_km,
    distances_km,
    location_suspicion,
    validate_coordinates,
)
from authwatch.geo.ip import is_private_ip
from authwatch.geo.timezones import utc_offset_hours

__all__ = [
    "LocationSuspicion",
    "bearing_degrees",
    "bearing_description",
    "distance_description",
    "distance_km",
    "distances_km",
    "location_suspicion",
    "validate_coordinates",
    "is_private_ip",
    "utc_offset_hours",
]
