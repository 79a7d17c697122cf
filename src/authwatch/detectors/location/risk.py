"""Composite risk score for a single location sample.

Independent of which anomalies fire: the score summarizes how risky
the login origin looks on its own.
"""

from typing import Collection

from authwatch.common.constants import RiskWeights
from authwatch.data.schemas.location import LocationSample
from authwatch.detectors.network.schema import NetworkAnalysis


def composite_risk_score(
    sample: LocationSample,
    network: NetworkAnalysis,
    suspicious_countries: Collection[str],
) -> float:
    """Score a sample from 0 to 100.
    
    +40 suspicious country, +30 VPN, +50 Tor, +20 proxy, +15 when the
    ISP or org mentions hosting; capped at 100.
    """
    score = 0
    
    if sample.country_code.upper() in suspicious_countries:
        score += RiskWeights.SUSPICIOUS_COUNTRY
    
    if network.is_vpn:
        score += RiskWeights.VPN
    if network.is_tor:
        score += RiskWeights.TOR
    if network.is_proxy:
        score += RiskWeights.PROXY
    
    if "hosting" in sample.isp.lower() or "hosting" in sample.org.lower():
        score += RiskWeights.HOSTING
    
    return float(min(RiskWeights.MAX_SCORE, score))
