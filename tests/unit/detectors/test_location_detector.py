"""Unit tests for the location anomaly detector."""

import math

import pytest

from authwatch.common.config import MonitorConfig
from authwatch.common.exceptions import InvalidCoordinatesError
from authwatch.core.types import AnomalyType, Severity
from authwatch.detectors.location.detector import LocationAnomalyDetector
from authwatch.detectors.location.risk import composite_risk_score
from authwatch.detectors.network.classifier import NetworkClassifier

HOUR_MS = 3_600_000
T0 = 1_767_225_600_000


def _types(anomalies):
    return [a.type for a in anomalies]


@pytest.fixture
def detector():
    """Detector whose history rules run after a single prior sample."""
    return LocationAnomalyDetector(MonitorConfig(min_location_history=1))


class TestImpossibleTravel:
    
    def test_new_york_to_tokyo_in_thirty_minutes(self, detector, make_sample):
        detector.evaluate("u1", make_sample("new_york", T0))
        anomalies = detector.evaluate("u1", make_sample("tokyo", T0 + HOUR_MS // 2))
        
        travel = [a for a in anomalies if a.type == AnomalyType.IMPOSSIBLE_TRAVEL]
        assert len(travel) == 1
        anomaly = travel[0]
        assert anomaly.severity == Severity.CRITICAL
        assert anomaly.metadata["distance"] == pytest.approx(10850, abs=25)
        assert anomaly.metadata["speed"] == pytest.approx(21700, abs=50)
        assert anomaly.metadata["time_diff"] == pytest.approx(0.5)
        assert anomaly.confidence == 0.9
        assert anomaly.risk_score == 100.0
    
    def test_plausible_flight_is_not_flagged(self, detector, make_sample):
        detector.evaluate("u1", make_sample("new_york", T0))
        anomalies = detector.evaluate("u1", make_sample("tokyo", T0 + 14 * HOUR_MS))
        
        assert AnomalyType.IMPOSSIBLE_TRAVEL not in _types(anomalies)
    
    def test_high_severity_below_critical_speed(self, detector, make_sample):
        # Berlin to Tokyo (~8900 km) in 6h is ~1480 km/h
        detector.evaluate("u1", make_sample("berlin", T0))
        anomalies = detector.evaluate("u1", make_sample("tokyo", T0 + 6 * HOUR_MS))
        
        travel = [a for a in anomalies if a.type == AnomalyType.IMPOSSIBLE_TRAVEL][0]
        assert travel.severity == Severity.HIGH
    
    def test_short_gap_is_ignored(self, detector, make_sample):
        detector.evaluate("u1", make_sample("new_york", T0))
        anomalies = detector.evaluate("u1", make_sample("tokyo", T0 + 10 * 60_000))
        
        assert AnomalyType.IMPOSSIBLE_TRAVEL not in _types(anomalies)
    
    def test_rule_can_be_disabled(self, make_sample):
        detector = LocationAnomalyDetector(MonitorConfig(
            min_location_history=1, enable_impossible_travel_detection=False,
        ))
        detector.evaluate("u1", make_sample("new_york", T0))
        anomalies = detector.evaluate("u1", make_sample("tokyo", T0 + HOUR_MS // 2))
        
        assert AnomalyType.IMPOSSIBLE_TRAVEL not in _types(anomalies)


class TestNoveltyRules:
    
    def test_identical_location_produces_nothing(self, detector, make_sample):
        detector.evaluate("u1", make_sample("new_york", T0))
        anomalies = detector.evaluate("u1", make_sample("new_york", T0 + HOUR_MS))
        
        assert anomalies == []
    
    def test_first_login_has_no_baseline(self, make_sample):
        detector = LocationAnomalyDetector(MonitorConfig())
        
        assert detector.evaluate("u1", make_sample("berlin", T0)) == []
    
    def test_new_country_needs_min_history(self, make_sample):
        detector = LocationAnomalyDetector(MonitorConfig(min_location_history=3))
        
        for i in range(2):
            detector.evaluate("u1", make_sample("berlin", T0 + i * HOUR_MS))
        # Only two prior samples: history rules do not run yet
        assert detector.evaluate("u1", make_sample("paris", T0 + 2 * HOUR_MS)) == []
        
        anomalies = detector.evaluate("u1", make_sample("new_york", T0 + 20 * HOUR_MS))
        
        assert AnomalyType.NEW_COUNTRY in _types(anomalies)
        new_country = [a for a in anomalies if a.type == AnomalyType.NEW_COUNTRY][0]
        assert new_country.metadata["previous_countries"] == ["DE", "FR"]
    
    def test_new_city_is_off_by_default(self, make_sample):
        detector = LocationAnomalyDetector(MonitorConfig(min_location_history=1))
        detector.evaluate("u1", make_sample("new_york", T0))
        
        anomalies = detector.evaluate("u1", make_sample("boston", T0 + 2 * HOUR_MS))
        
        assert anomalies == []
    
    def test_new_city_when_enabled(self, make_sample):
        detector = LocationAnomalyDetector(MonitorConfig(
            min_location_history=1, enable_new_city_detection=True,
        ))
        detector.evaluate("u1", make_sample("new_york", T0))
        
        anomalies = detector.evaluate("u1", make_sample("boston", T0 + 2 * HOUR_MS))
        
        assert _types(anomalies) == [AnomalyType.NEW_CITY]
        assert anomalies[0].severity == Severity.LOW
    
    def test_history_is_per_user(self, detector, make_sample):
        detector.evaluate("alice", make_sample("new_york", T0))
        
        assert detector.evaluate("bob", make_sample("tokyo", T0 + HOUR_MS // 2)) == []


class TestTimezoneRule:
    
    def test_offset_jump_faster_than_elapsed_time(self, make_sample):
        detector = LocationAnomalyDetector(MonitorConfig(
            min_location_history=1,
            enable_new_country_detection=False,
            enable_impossible_travel_detection=False,
        ))
        detector.evaluate("u1", make_sample("new_york", T0))
        
        anomalies = detector.evaluate("u1", make_sample("tokyo", T0 + HOUR_MS))
        
        assert _types(anomalies) == [AnomalyType.TIMEZONE_ANOMALY]
        assert anomalies[0].metadata["timezone_diff"] == 14.0
    
    def test_unknown_zone_skips_rule(self, make_sample):
        detector = LocationAnomalyDetector(MonitorConfig(
            min_location_history=1,
            enable_new_country_detection=False,
            enable_impossible_travel_detection=False,
        ))
        detector.evaluate("u1", make_sample("new_york", T0))
        
        anomalies = detector.evaluate(
            "u1", make_sample("tokyo", T0 + HOUR_MS, timezone="Somewhere/Unknown")
        )
        
        assert anomalies == []


class TestHistoryIndependentRules:
    
    def test_suspicious_country_on_first_login(self, make_sample):
        detector = LocationAnomalyDetector(MonitorConfig())
        
        anomalies = detector.evaluate("u1", make_sample("pyongyang", T0))
        
        assert _types(anomalies) == [AnomalyType.SUSPICIOUS_COUNTRY]
        assert anomalies[0].severity == Severity.HIGH
        assert anomalies[0].risk_score == 80.0
    
    def test_vpn_and_tor_fire_together(self, make_sample):
        detector = LocationAnomalyDetector(MonitorConfig())
        sample = make_sample("berlin", T0, is_vpn=True, is_tor=True)
        
        anomalies = detector.evaluate("u1", sample)
        
        assert _types(anomalies) == [AnomalyType.VPN_DETECTED, AnomalyType.TOR_DETECTED]
    
    def test_custom_suspicious_countries(self, make_sample):
        detector = LocationAnomalyDetector(MonitorConfig(suspicious_countries=("de",)))
        
        assert _types(detector.evaluate("u1", make_sample("berlin", T0))) == [
            AnomalyType.SUSPICIOUS_COUNTRY
        ]
        assert detector.evaluate("u2", make_sample("pyongyang", T0)) == []


class TestAssessment:
    
    def test_invalid_coordinates_are_skipped_and_not_stored(self, detector, make_sample):
        assessment = detector.assess("u1", make_sample("berlin", T0, latitude=math.nan))
        
        assert not assessment.evaluated
        assert assessment.anomalies == []
        assert detector.get_history("u1") is None
    
    def test_missing_coordinates_are_skipped(self, detector, make_sample):
        assessment = detector.assess("u1", make_sample("berlin", T0, latitude=None, longitude=None))
        
        assert not assessment.evaluated
    
    def test_skip_carries_coordinates_error(self, detector, make_sample):
        assessment = detector.assess("u1", make_sample("berlin", T0, latitude=95.0))
        
        error = assessment.skip_error
        assert isinstance(error, InvalidCoordinatesError)
        assert error.code == "INVALID_COORDINATES"
        assert error.details["latitude"] == 95.0
        assert error.details["ip"] == "198.51.100.10"
    
    def test_valid_sample_has_no_skip_error(self, detector, make_sample):
        assert detector.assess("u1", make_sample("berlin", T0)).skip_error is None
    
    def test_history_ready_and_suspicion(self, detector, make_sample):
        first = detector.assess("u1", make_sample("new_york", T0))
        assert not first.history_ready
        assert first.prior_count == 0
        
        second = detector.assess("u1", make_sample("paris", T0 + 12 * HOUR_MS))
        
        assert second.history_ready
        assert second.prior_count == 1
        assert second.previous.city == "New York"
        assert second.suspicion.suspicious
        assert second.suspicion.reason == "new_country"
        assert second.nearest_known_km == pytest.approx(5837, abs=20)
    
    def test_history_is_pruned_to_window(self, make_sample):
        detector = LocationAnomalyDetector(MonitorConfig(location_anomaly_window=24))
        detector.evaluate("u1", make_sample("new_york", T0))
        detector.evaluate("u1", make_sample("boston", T0 + 12 * HOUR_MS))
        detector.evaluate("u1", make_sample("new_york", T0 + 30 * HOUR_MS))
        
        history = detector.get_history("u1")
        
        assert [loc.city for loc in history.locations] == ["Boston", "New York"]
        assert history.last_updated == T0 + 30 * HOUR_MS


class TestEnrichment:
    
    def test_flags_and_risk_are_added(self, detector, make_sample):
        sample = make_sample("pyongyang", T0, isp="NordVPN", org="Cloud Hosting Ltd")
        
        enriched = detector.enrich(sample)
        
        assert enriched.is_vpn and enriched.is_proxy
        # 40 country + 30 vpn + 20 proxy + 15 hosting
        assert enriched.risk_score == 100.0
        assert not sample.is_vpn
    
    def test_provider_flags_are_kept(self, detector, make_sample):
        enriched = detector.enrich(make_sample("berlin", T0, is_proxy=True))
        
        assert enriched.is_proxy
        assert enriched.risk_score == 20.0
    
    def test_provider_flags_count_toward_risk(self, detector, make_sample):
        sample = make_sample("berlin", T0, is_vpn=True, is_tor=True)
        
        enriched = detector.enrich(sample)
        
        # 30 vpn + 50 tor, neither visible in the ISP string
        assert enriched.risk_score == 80.0
    
    def test_composite_score_is_capped(self, make_sample):
        sample = make_sample("berlin", T0, isp="Tor hosting", org="Proxy VPN")
        network = NetworkClassifier().classify(sample.ip, sample.isp, sample.org)
        
        assert composite_risk_score(sample, network, {"DE"}) == 100.0
