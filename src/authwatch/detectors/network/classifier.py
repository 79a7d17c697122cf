"""Network Classifier - infers VPN, Tor and proxy use for a login IP.

Heuristic and string based: authoritative VPN/Tor lists need external
feeds, so classification only uses the ISP/org strings reported by the
geolocation provider plus an optional Tor exit-node set.
"""

from typing import Iterable, List, Optional

from authwatch.common.constants import NetworkConstants
from authwatch.core.types import RiskLevel
from authwatch.detectors.network.schema import NetworkAnalysis


class NetworkClassifier:
    """Classifies network origin of a login.
    
    Rules (case-insensitive):
    - VPN: ISP or org contains a known VPN provider fragment or "vpn"
    - Tor: IP is a known exit node, or ISP/org contains "tor"
    - Proxy: ISP or org contains "proxy" or "hosting"
    """
    
    def __init__(
        self,
        vpn_providers: Optional[Iterable[str]] = None,
        tor_exit_nodes: Optional[Iterable[str]] = None,
    ):
        """Initialize the classifier.
        
        Args:
            vpn_providers: VPN provider name fragments
            tor_exit_nodes: Known Tor exit-node IPs
        """
        if vpn_providers is None:
            vpn_providers = NetworkConstants.DEFAULT_VPN_PROVIDERS
        self._vpn_providers = tuple(sorted({p.lower() for p in vpn_providers if p}))
        self._tor_exit_nodes = set(tor_exit_nodes or ())
    
    def add_tor_exit_nodes(self, ips: Iterable[str]) -> None:
        """Extend the exit-node set, e.g. from a refreshed feed."""
        self._tor_exit_nodes.update(ips)
    
    def classify(
        self,
        ip: str,
        isp: Optional[str] = None,
        org: Optional[str] = None,
    ) -> NetworkAnalysis:
        """Classify a login's network origin.
        
        Args:
            ip: Login IP address
            isp: ISP string from the geolocation provider
            org: Organization string from the geolocation provider
            
        Returns:
            NetworkAnalysis with flags, confidence and risk level
        """
        isp_lower = (isp or "").lower()
        org_lower = (org or "").lower()
        evidence: List[str] = []
        
        is_vpn = False
        for label, value in (("isp", isp_lower), ("org", org_lower)):
            provider = self._match_vpn_provider(value)
            if provider:
                is_vpn = True
                evidence.append(f"{label}_matches_vpn_provider:{provider}")
            elif "vpn" in value:
                is_vpn = True
                evidence.append(f"{label}_mentions_vpn")
        
        is_tor = False
        if ip in self._tor_exit_nodes:
            is_tor = True
            evidence.append("ip_is_tor_exit_node")
        for label, value in (("isp", isp_lower), ("org", org_lower)):
            if "tor" in value:
                is_tor = True
                evidence.append(f"{label}_mentions_tor")
        
        is_proxy = False
        for label, value in (("isp", isp_lower), ("org", org_lower)):
            for marker in ("proxy", "hosting"):
                if marker in value:
                    is_proxy = True
                    evidence.append(f"{label}_mentions_{marker}")
        
        if is_vpn:
            confidence = NetworkConstants.VPN_CONFIDENCE
        elif is_tor:
            confidence = NetworkConstants.TOR_CONFIDENCE
        elif is_proxy:
            confidence = NetworkConstants.PROXY_CONFIDENCE
        else:
            confidence = NetworkConstants.BASELINE_CONFIDENCE
        
        if is_vpn or is_tor:
            risk_level = RiskLevel.HIGH
        elif is_proxy:
            risk_level = RiskLevel.MEDIUM
        else:
            risk_level = RiskLevel.LOW
        
        return NetworkAnalysis(
            is_vpn=is_vpn,
            is_tor=is_tor,
            is_proxy=is_proxy,
            confidence=confidence,
            risk_level=risk_level,
            provider=isp if is_vpn else None,
            evidence=evidence,
        )
    
    def _match_vpn_provider(self, value: str) -> Optional[str]:
        if not value:
            return None
        for provider in self._vpn_providers:
            if provider in value:
                return provider
        return None
