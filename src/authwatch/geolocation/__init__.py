"""IP geolocation providers and the first-success lookup service."""

from authwatch.geolocation.providers import (
    GeoIP2Provider,
    GeolocationProvider,
    IpApiProvider,
    IpGeolocationProvider,
    IpInfoProvider,
)
from authwatch.geolocation.service import GeolocationService

__all__ = [
    "GeolocationProvider",
    "IpApiProvider",
    "IpInfoProvider",
    "IpGeolocationProvider",
    "GeoIP2Provider",
    "GeolocationService",
]
