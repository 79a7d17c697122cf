"""Geolocation providers.

Each provider resolves one IP to a LocationSample or raises
GeolocationLookupError. Online providers share one httpx.AsyncClient
when given; otherwise they open a short-lived client per lookup.
"""

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Dict, Optional

import geoip2.database
import geoip2.errors
import httpx

from authwatch.common.exceptions import GeolocationLookupError
from authwatch.counters.window import Clock, epoch_ms
from authwatch.data.schemas.location import LocationSample

logger = logging.getLogger(__name__)


def _to_float(value: Any) -> Optional[float]:
    try:
        return float(value)
    except (TypeError, ValueError):
        return None


class GeolocationProvider(ABC):
    """Resolves an IP address to a location."""
    
    name: str = "provider"
    
    def __init__(self, clock: Optional[Clock] = None):
        self._clock = clock or epoch_ms
    
    @abstractmethod
    async def resolve(self, ip: str) -> LocationSample:
        """Resolve an IP.
        
        Raises:
            GeolocationLookupError: If the IP cannot be resolved
        """


class HttpGeolocationProvider(GeolocationProvider):
    """Base for JSON-over-HTTP providers."""
    
    def __init__(
        self,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 5.0,
        clock: Optional[Clock] = None,
    ):
        super().__init__(clock)
        self._client = client
        self._timeout = timeout
    
    @abstractmethod
    def _url(self, ip: str) -> str:
        """Lookup URL for an IP."""
    
    def _params(self, ip: str) -> Dict[str, str]:
        return {}
    
    @abstractmethod
    def _parse(self, ip: str, data: Dict[str, Any]) -> LocationSample:
        """Build a sample from the provider's JSON body."""
    
    async def _fetch(self, ip: str) -> Dict[str, Any]:
        url = self._url(ip)
        try:
            if self._client is not None:
                response = await self._client.get(url, params=self._params(ip), timeout=self._timeout)
            else:
                async with httpx.AsyncClient(timeout=self._timeout) as client:
                    response = await client.get(url, params=self._params(ip))
            response.raise_for_status()
            data = response.json()
        except (httpx.HTTPError, ValueError) as e:
            raise GeolocationLookupError(
                f"{self.name} lookup failed: {e}", ip=ip, details={"provider": self.name}
            ) from e
        if not isinstance(data, dict):
            raise GeolocationLookupError(
                f"{self.name} lookup failed: expected a JSON object, got {type(data).__name__}",
                ip=ip,
                details={"provider": self.name},
            )
        return data
    
    async def resolve(self, ip: str) -> LocationSample:
        data = await self._fetch(ip)
        return self._parse(ip, data)


class IpApiProvider(HttpGeolocationProvider):
    """ip-api.com (free, rate limited)."""
    
    name = "ip-api"
    BASE_URL = "http://ip-api.com/json"
    FIELDS = "status,message,country,countryCode,regionName,city,lat,lon,timezone,isp,org,proxy,hosting,query"
    
    def _url(self, ip: str) -> str:
        return f"{self.BASE_URL}/{ip}"
    
    def _params(self, ip: str) -> Dict[str, str]:
        return {"fields": self.FIELDS}
    
    def _parse(self, ip: str, data: Dict[str, Any]) -> LocationSample:
        if data.get("status") != "success":
            raise GeolocationLookupError(
                f"ip-api lookup failed: {data.get('message', 'unknown error')}",
                ip=ip,
                details={"provider": self.name},
            )
        
        return LocationSample(
            ip=data.get("query") or ip,
            country=data.get("country") or "Unknown",
            country_code=data.get("countryCode") or "XX",
            region=data.get("regionName") or "",
            city=data.get("city") or "",
            latitude=_to_float(data.get("lat")),
            longitude=_to_float(data.get("lon")),
            timezone=data.get("timezone") or "UTC",
            isp=data.get("isp") or "",
            org=data.get("org") or "",
            is_proxy=bool(data.get("proxy") or data.get("hosting")),
            timestamp=self._clock(),
        )


class IpInfoProvider(HttpGeolocationProvider):
    """ipinfo.io (token optional for low volumes)."""
    
    name = "ipinfo"
    BASE_URL = "https://ipinfo.io"
    
    def __init__(
        self,
        token: Optional[str] = None,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 5.0,
        clock: Optional[Clock] = None,
    ):
        super().__init__(client=client, timeout=timeout, clock=clock)
        self._token = token
    
    def _url(self, ip: str) -> str:
        return f"{self.BASE_URL}/{ip}/json"
    
    def _params(self, ip: str) -> Dict[str, str]:
        return {"token": self._token} if self._token else {}
    
    def _parse(self, ip: str, data: Dict[str, Any]) -> LocationSample:
        if not data.get("country") or data.get("bogon"):
            raise GeolocationLookupError(
                "ipinfo returned no location", ip=ip, details={"provider": self.name}
            )
        
        latitude = longitude = None
        loc = data.get("loc")
        if loc and "," in loc:
            lat_raw, lon_raw = loc.split(",", 1)
            latitude, longitude = _to_float(lat_raw), _to_float(lon_raw)
        
        return LocationSample(
            ip=data.get("ip") or ip,
            country=data["country"],
            country_code=data["country"],
            region=data.get("region") or "",
            city=data.get("city") or "",
            latitude=latitude,
            longitude=longitude,
            timezone=data.get("timezone") or "UTC",
            isp=data.get("org") or "",
            org=data.get("org") or "",
            timestamp=self._clock(),
        )


class IpGeolocationProvider(HttpGeolocationProvider):
    """ipgeolocation.io (API key required)."""
    
    name = "ipgeolocation"
    BASE_URL = "https://api.ipgeolocation.io/ipgeo"
    
    def __init__(
        self,
        api_key: str,
        client: Optional[httpx.AsyncClient] = None,
        timeout: float = 5.0,
        clock: Optional[Clock] = None,
    ):
        super().__init__(client=client, timeout=timeout, clock=clock)
        self._api_key = api_key
    
    def _url(self, ip: str) -> str:
        return self.BASE_URL
    
    def _params(self, ip: str) -> Dict[str, str]:
        return {"apiKey": self._api_key, "ip": ip}
    
    def _parse(self, ip: str, data: Dict[str, Any]) -> LocationSample:
        if not data.get("country_name"):
            raise GeolocationLookupError(
                "ipgeolocation returned no location", ip=ip, details={"provider": self.name}
            )
        
        time_zone = data.get("time_zone") or {}
        return LocationSample(
            ip=data.get("ip") or ip,
            country=data["country_name"],
            country_code=data.get("country_code2") or "XX",
            region=data.get("state_prov") or "",
            city=data.get("city") or "",
            latitude=_to_float(data.get("latitude")),
            longitude=_to_float(data.get("longitude")),
            timezone=time_zone.get("name") or "UTC",
            isp=data.get("isp") or "",
            org=data.get("organization") or "",
            timestamp=self._clock(),
        )


class GeoIP2Provider(GeolocationProvider):
    """Offline lookups against a MaxMind GeoLite2/GeoIP2 City database."""
    
    name = "geoip2"
    
    def __init__(
        self,
        database_path: str,
        reader: Optional[geoip2.database.Reader] = None,
        clock: Optional[Clock] = None,
    ):
        super().__init__(clock)
        self._reader = reader or geoip2.database.Reader(database_path)
    
    async def resolve(self, ip: str) -> LocationSample:
        try:
            # Reader is blocking file I/O
            response = await asyncio.to_thread(self._reader.city, ip)
        except (geoip2.errors.AddressNotFoundError, ValueError) as e:
            raise GeolocationLookupError(
                f"geoip2 lookup failed: {e}", ip=ip, details={"provider": self.name}
            ) from e
        
        return LocationSample(
            ip=ip,
            country=response.country.name or "Unknown",
            country_code=response.country.iso_code or "XX",
            region=response.subdivisions.most_specific.name or "",
            city=response.city.name or "",
            latitude=response.location.latitude,
            longitude=response.location.longitude,
            timezone=response.location.time_zone or "UTC",
            timestamp=self._clock(),
        )
    
    def close(self) -> None:
        self._reader.close()
