"""REST query surface for the monitor engine."""
