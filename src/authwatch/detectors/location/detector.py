"""Location Anomaly Detector - flags unusual login geography.

Given a user's current location and retained history, produces zero
or more classified anomalies:
- VPN / Tor origin
- Suspicious country
- Impossible travel, new country, new city, timezone inconsistency
  (history-dependent; need min_location_history prior samples)

Every rule is individually switchable and all may fire together.
"""

import logging
from dataclasses import dataclass, field
from typing import List, Optional

from authwatch.common.config import MonitorConfig
from authwatch.common.constants import AnomalyConstants
from authwatch.common.exceptions import InvalidCoordinatesError
from authwatch.core.types import AnomalyType, Severity
from authwatch.data.schemas.anomaly import Anomaly
from authwatch.data.schemas.location import LocationSample, UserLocationHistory
from authwatch.detectors.location.risk import composite_risk_score
from authwatch.detectors.network.classifier import NetworkClassifier
from authwatch.geo.geomath import (
    LocationSuspicion,
    distance_km,
    distances_km,
    location_suspicion,
)
from authwatch.geo.timezones import utc_offset_hours
from authwatch.store.history import InMemoryLocationHistoryStore, LocationHistoryStore

logger = logging.getLogger(__name__)

_MS_PER_HOUR = 3_600_000


@dataclass
class LocationAssessment:
    """Full result of evaluating one sample.
    
    Attributes:
        anomalies: Anomalies that fired, in rule order
        evaluated: False when the sample was skipped (invalid coordinates)
        skip_error: Why the sample was skipped, when it was
        previous: Most recent prior sample, if any
        prior_count: Number of retained samples before this one
        history_ready: Whether history-dependent rules ran
        suspicion: Simple distance-based check against previous
        nearest_known_km: Distance to the closest retained prior sample
    """
    anomalies: List[Anomaly] = field(default_factory=list)
    evaluated: bool = True
    previous: Optional[LocationSample] = None
    prior_count: int = 0
    history_ready: bool = False
    suspicion: Optional[LocationSuspicion] = None
    nearest_known_km: Optional[float] = None
    skip_error: Optional[InvalidCoordinatesError] = None


def _hours_between(previous: LocationSample, current: LocationSample) -> float:
    return (current.timestamp - previous.timestamp) / _MS_PER_HOUR


def _require_coordinates(sample: LocationSample) -> None:
    if not sample.has_valid_coordinates:
        raise InvalidCoordinatesError(
            sample.latitude, sample.longitude, details={"ip": sample.ip}
        )


class LocationAnomalyDetector:
    """Evaluates login locations against per-user history.
    
    Owns the location history store; each evaluation prunes the user's
    history to the anomaly window and appends the new sample before the
    history-dependent rules run against the prior samples only.
    """
    
    def __init__(
        self,
        config: Optional[MonitorConfig] = None,
        history_store: Optional[LocationHistoryStore] = None,
        classifier: Optional[NetworkClassifier] = None,
    ):
        """Initialize the detector.
        
        Args:
            config: Monitor configuration (rule switches and thresholds)
            history_store: Per-user history store. In-memory if not provided.
            classifier: Network classifier. Built from config if not provided.
        """
        self.config = config or MonitorConfig()
        self.history_store = history_store or InMemoryLocationHistoryStore()
        self.classifier = classifier or NetworkClassifier(
            vpn_providers=self.config.vpn_providers,
            tor_exit_nodes=self.config.tor_exit_nodes,
        )
        self._suspicious_countries = frozenset(self.config.suspicious_countries)
    
    def enrich(self, sample: LocationSample) -> LocationSample:
        """Attach network flags and the composite risk score.
        
        Provider-reported flags are kept; classifier flags are added.
        
        Returns:
            A new LocationSample; the input is not modified
        """
        network = self.classifier.classify(sample.ip, sample.isp, sample.org)
        merged = network.model_copy(update={
            "is_vpn": sample.is_vpn or network.is_vpn,
            "is_tor": sample.is_tor or network.is_tor,
            "is_proxy": sample.is_proxy or network.is_proxy,
        })
        risk = composite_risk_score(sample, merged, self._suspicious_countries)
        
        return sample.model_copy(update={
            "is_vpn": merged.is_vpn,
            "is_tor": merged.is_tor,
            "is_proxy": merged.is_proxy,
            "risk_score": max(sample.risk_score, risk),
        })
    
    def evaluate(self, user_id: str, sample: LocationSample) -> List[Anomaly]:
        """Evaluate a sample and record it in the user's history.
        
        Args:
            user_id: User identity
            sample: Current (enriched) location sample
            
        Returns:
            List of anomalies, empty when nothing fired or the sample
            could not be evaluated
        """
        return self.assess(user_id, sample).anomalies
    
    def assess(self, user_id: str, sample: LocationSample) -> LocationAssessment:
        """Evaluate a sample and return the anomalies with their context."""
        try:
            _require_coordinates(sample)
        except InvalidCoordinatesError as e:
            logger.info(
                f"Skipping location evaluation: {e.message}",
                extra={"user_id": user_id, "ip": sample.ip},
            )
            return LocationAssessment(evaluated=False, skip_error=e)
        
        prior, _ = self.history_store.record(
            user_id, sample, self.config.location_anomaly_window_ms
        )
        # Samples stored before validation existed may lack coordinates
        comparable = [loc for loc in prior if loc.has_valid_coordinates]
        
        assessment = LocationAssessment(
            previous=comparable[-1] if comparable else None,
            prior_count=len(prior),
        )
        anomalies = assessment.anomalies
        
        if self.config.enable_vpn_detection and sample.is_vpn:
            anomalies.append(self._vpn_anomaly(sample))
        
        if self.config.enable_tor_detection and sample.is_tor:
            anomalies.append(self._tor_anomaly(sample))
        
        if (
            self.config.enable_suspicious_country_detection
            and sample.country_code.upper() in self._suspicious_countries
        ):
            anomalies.append(self._suspicious_country_anomaly(sample))
        
        previous = assessment.previous
        if previous is None or len(prior) < self.config.min_location_history:
            return assessment
        
        assessment.history_ready = True
        
        if self.config.enable_impossible_travel_detection:
            anomaly = self._detect_impossible_travel(previous, sample)
            if anomaly:
                anomalies.append(anomaly)
        
        if self.config.enable_new_country_detection:
            anomaly = self._detect_new_country(prior, sample)
            if anomaly:
                anomalies.append(anomaly)
        
        if self.config.enable_new_city_detection:
            anomaly = self._detect_new_city(prior, sample)
            if anomaly:
                anomalies.append(anomaly)
        
        if self.config.enable_timezone_anomaly_detection:
            anomaly = self._detect_timezone_anomaly(previous, sample)
            if anomaly:
                anomalies.append(anomaly)
        
        assessment.suspicion = location_suspicion(
            sample.country_code,
            sample.latitude,
            sample.longitude,
            previous.country_code,
            previous.latitude,
            previous.longitude,
            distance_threshold=self.config.max_normal_distance,
        )
        distances = distances_km(
            sample.latitude,
            sample.longitude,
            [loc.latitude for loc in comparable],
            [loc.longitude for loc in comparable],
        )
        assessment.nearest_known_km = float(distances.min())
        
        return assessment
    
    def get_history(self, user_id: str) -> Optional[UserLocationHistory]:
        """Snapshot of a user's retained history."""
        return self.history_store.get(user_id)
    
    # ------------------------------------------------------------------
    # History-dependent rules
    # ------------------------------------------------------------------
    
    def _detect_impossible_travel(
        self,
        previous: LocationSample,
        current: LocationSample,
    ) -> Optional[Anomaly]:
        hours = _hours_between(previous, current)
        # Short gaps make the speed estimate noise
        if hours < AnomalyConstants.MIN_TRAVEL_ELAPSED_HOURS:
            return None
        
        distance = distance_km(
            previous.latitude, previous.longitude,
            current.latitude, current.longitude,
        )
        speed = distance / hours
        max_speed = self.config.max_travel_speed
        
        if speed <= max_speed:
            return None
        
        ratio = speed / max_speed
        severity = (
            Severity.CRITICAL
            if speed > AnomalyConstants.CRITICAL_TRAVEL_SPEED_KMH
            else Severity.HIGH
        )
        
        return Anomaly(
            type=AnomalyType.IMPOSSIBLE_TRAVEL,
            severity=severity,
            confidence=min(AnomalyConstants.MAX_TRAVEL_CONFIDENCE, ratio),
            risk_score=min(100.0, ratio * 100),
            description=(
                f"Impossible travel detected: {distance:.1f}km in {hours:.1f}h "
                f"({speed:.1f} km/h)"
            ),
            metadata={
                "distance": distance,
                "time_diff": hours,
                "speed": speed,
                "previous_location": previous.model_dump(mode="json"),
                "current_location": current.model_dump(mode="json"),
            },
        )
    
    def _detect_new_country(
        self,
        prior: List[LocationSample],
        current: LocationSample,
    ) -> Optional[Anomaly]:
        since = current.timestamp - AnomalyConstants.NOVELTY_LOOKBACK_HOURS * _MS_PER_HOUR
        seen = any(
            loc.country_code == current.country_code and loc.timestamp > since
            for loc in prior
        )
        if seen:
            return None
        
        severity, confidence, risk = AnomalyConstants.NEW_COUNTRY
        return Anomaly(
            type=AnomalyType.NEW_COUNTRY,
            severity=Severity(severity),
            confidence=confidence,
            risk_score=risk,
            description=f"New country detected: {current.country}",
            metadata={
                "country": current.country,
                "country_code": current.country_code,
                "previous_countries": sorted({loc.country_code for loc in prior}),
            },
        )
    
    def _detect_new_city(
        self,
        prior: List[LocationSample],
        current: LocationSample,
    ) -> Optional[Anomaly]:
        since = current.timestamp - AnomalyConstants.NOVELTY_LOOKBACK_HOURS * _MS_PER_HOUR
        seen = any(
            loc.city == current.city
            and loc.country_code == current.country_code
            and loc.timestamp > since
            for loc in prior
        )
        if seen:
            return None
        
        severity, confidence, risk = AnomalyConstants.NEW_CITY
        return Anomaly(
            type=AnomalyType.NEW_CITY,
            severity=Severity(severity),
            confidence=confidence,
            risk_score=risk,
            description=f"New city detected: {current.city}, {current.country}",
            metadata={
                "city": current.city,
                "country": current.country,
                "previous_cities": sorted({loc.place_key for loc in prior}),
            },
        )
    
    def _detect_timezone_anomaly(
        self,
        previous: LocationSample,
        current: LocationSample,
    ) -> Optional[Anomaly]:
        if previous.timezone == current.timezone:
            return None
        
        previous_offset = utc_offset_hours(previous.timezone, previous.timestamp)
        current_offset = utc_offset_hours(current.timezone, current.timestamp)
        if previous_offset is None or current_offset is None:
            logger.debug(
                f"Timezone check skipped: cannot resolve "
                f"{previous.timezone!r} or {current.timezone!r}"
            )
            return None
        
        hours = _hours_between(previous, current)
        offset_diff = abs(previous_offset - current_offset)
        
        if abs(hours - offset_diff) <= AnomalyConstants.TIMEZONE_TOLERANCE_HOURS:
            return None
        
        severity, confidence, risk = AnomalyConstants.TIMEZONE
        return Anomaly(
            type=AnomalyType.TIMEZONE_ANOMALY,
            severity=Severity(severity),
            confidence=confidence,
            risk_score=risk,
            description=(
                f"Timezone anomaly: {previous.timezone} to {current.timezone} "
                f"in {hours:.1f}h"
            ),
            metadata={
                "previous_timezone": previous.timezone,
                "current_timezone": current.timezone,
                "time_diff": hours,
                "timezone_diff": offset_diff,
            },
        )
    
    # ------------------------------------------------------------------
    # History-independent rules
    # ------------------------------------------------------------------
    
    def _vpn_anomaly(self, sample: LocationSample) -> Anomaly:
        severity, confidence, risk = AnomalyConstants.VPN
        return Anomaly(
            type=AnomalyType.VPN_DETECTED,
            severity=Severity(severity),
            confidence=confidence,
            risk_score=risk,
            description=f"VPN detected: {sample.isp}",
            metadata={"isp": sample.isp, "org": sample.org, "ip": sample.ip},
        )
    
    def _tor_anomaly(self, sample: LocationSample) -> Anomaly:
        severity, confidence, risk = AnomalyConstants.TOR
        return Anomaly(
            type=AnomalyType.TOR_DETECTED,
            severity=Severity(severity),
            confidence=confidence,
            risk_score=risk,
            description=f"Tor network detected: {sample.isp}",
            metadata={"isp": sample.isp, "org": sample.org, "ip": sample.ip},
        )
    
    def _suspicious_country_anomaly(self, sample: LocationSample) -> Anomaly:
        severity, confidence, risk = AnomalyConstants.SUSPICIOUS_COUNTRY
        return Anomaly(
            type=AnomalyType.SUSPICIOUS_COUNTRY,
            severity=Severity(severity),
            confidence=confidence,
            risk_score=risk,
            description=f"Suspicious country detected: {sample.country}",
            metadata={
                "country": sample.country,
                "country_code": sample.country_code,
            },
        )
