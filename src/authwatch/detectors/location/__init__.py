"""Location anomaly detector - module init."""

from authwatch.detectors.location.detector import LocationAnomalyDetector, LocationAssessment
from authwatch.detectors.location.risk import composite_risk_score

__all__ = ["LocationAnomalyDetector", "LocationAssessment", "composite_risk_score"]
