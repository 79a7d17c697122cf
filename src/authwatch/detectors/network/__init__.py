"""Network classifier - module init."""

from authwatch.detectors.network.classifier import NetworkClassifier
from authwatch.detectors.network.schema import NetworkAnalysis

__all__ = ["NetworkClassifier", "NetworkAnalysis"]
