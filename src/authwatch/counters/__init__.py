"""Sliding-window counters."""

from authwatch.counters.window import Clock, RateWindowCounter, WindowEntry, epoch_ms

__all__ = ["Clock", "RateWindowCounter", "WindowEntry", "epoch_ms"]
