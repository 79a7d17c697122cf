"""Geolocation service - first-success lookup across providers."""

import asyncio
import logging
from typing import List, Optional, Sequence

from authwatch.common.exceptions import GeolocationLookupError
from authwatch.data.schemas.location import LocationSample
from authwatch.geo.ip import is_private_ip
from authwatch.geolocation.providers import GeolocationProvider, IpApiProvider

logger = logging.getLogger(__name__)


class GeolocationService:
    """Resolves IPs by trying each provider in order.
    
    The first provider to return a sample wins. Each attempt is bounded
    by ``timeout`` seconds; a timeout or provider error moves on to the
    next provider.
    """
    
    def __init__(
        self,
        providers: Optional[Sequence[GeolocationProvider]] = None,
        timeout: float = 5.0,
        skip_private_ips: bool = True,
    ):
        """Initialize the service.
        
        Args:
            providers: Providers in priority order. ip-api.com if not provided.
            timeout: Per-provider timeout in seconds
            skip_private_ips: Return None for private/loopback addresses
        """
        self.providers: List[GeolocationProvider] = list(providers or [IpApiProvider(timeout=timeout)])
        self.timeout = timeout
        self.skip_private_ips = skip_private_ips
    
    async def resolve(self, ip: str) -> Optional[LocationSample]:
        """Resolve an IP to a location.
        
        Returns:
            LocationSample, or None when the IP is private and skipped
            
        Raises:
            GeolocationLookupError: If every provider failed
        """
        if self.skip_private_ips and is_private_ip(ip):
            logger.debug(f"Skipping geolocation for private IP {ip}")
            return None
        
        failures = []
        for provider in self.providers:
            try:
                return await asyncio.wait_for(provider.resolve(ip), timeout=self.timeout)
            except asyncio.TimeoutError:
                failures.append(f"{provider.name}: timed out")
            except GeolocationLookupError as e:
                failures.append(f"{provider.name}: {e.message}")
            except Exception as e:
                failures.append(f"{provider.name}: {type(e).__name__}: {e}")
                logger.warning(
                    f"Geolocation provider {provider.name} raised unexpectedly for {ip}",
                    exc_info=e,
                )
                continue
            logger.warning(f"Geolocation provider {provider.name} failed for {ip}")
        
        raise GeolocationLookupError(
            f"All geolocation providers failed for {ip}",
            ip=ip,
            details={"failures": failures},
        )
