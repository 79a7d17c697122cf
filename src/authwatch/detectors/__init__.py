"""Detectors - network classification and location anomalies."""
