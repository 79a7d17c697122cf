"""Centralized constants for authwatch detection rules."""


# ===== GEO =====
class GeoConstants:
    EARTH_RADIUS_KM = 6371.0
    COMPASS_POINTS = (
        "North", "NNE", "NE", "ENE", "East", "ESE", "SE", "SSE",
        "South", "SSW", "SW", "WSW", "West", "WNW", "NW", "NNW",
    )


# ===== LOCATION ANOMALIES =====
class AnomalyConstants:
    # Lookback for new country/city rules, independent of the anomaly window
    NOVELTY_LOOKBACK_HOURS = 24
    
    # Impossible travel
    MIN_TRAVEL_ELAPSED_HOURS = 0.5
    CRITICAL_TRAVEL_SPEED_KMH = 2000.0
    MAX_TRAVEL_CONFIDENCE = 0.9
    
    # Timezone consistency tolerance
    TIMEZONE_TOLERANCE_HOURS = 2.0
    
    FREQUENT_LOCATIONS_LIMIT = 5
    
    # (severity, confidence, risk_score) per fixed-score rule
    VPN = ("medium", 0.9, 70.0)
    TOR = ("high", 0.9, 85.0)
    SUSPICIOUS_COUNTRY = ("high", 0.8, 80.0)
    NEW_COUNTRY = ("medium", 0.8, 60.0)
    NEW_CITY = ("low", 0.7, 30.0)
    TIMEZONE = ("medium", 0.7, 50.0)


# ===== COMPOSITE SAMPLE RISK =====
class RiskWeights:
    SUSPICIOUS_COUNTRY = 40
    VPN = 30
    TOR = 50
    PROXY = 20
    HOSTING = 15
    MAX_SCORE = 100


# ===== NETWORK CLASSIFICATION =====
class NetworkConstants:
    VPN_CONFIDENCE = 0.9
    TOR_CONFIDENCE = 0.8
    PROXY_CONFIDENCE = 0.6
    BASELINE_CONFIDENCE = 0.1
    
    DEFAULT_VPN_PROVIDERS = (
        "nordvpn", "expressvpn", "surfshark", "cyberghost", "private internet access",
        "protonvpn", "windscribe", "tunnelbear", "ipvanish", "hotspot shield",
        "vyprvpn", "purevpn", "zenmate", "hidemyass", "buffered",
    )


# ===== MONITOR DEFAULTS =====
class MonitorDefaults:
    DEFAULT_SUSPICIOUS_COUNTRIES = ("KP", "IR", "SY", "CU", "VE", "MM", "BY", "RU", "CN")
    MAX_EVENTS = 1000
    METRICS_BATCH_SIZE = 20
