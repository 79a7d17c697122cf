"""Core types and enums."""

from enum import Enum


class AnomalyType(str, Enum):
    """Location anomaly classifications."""
    IMPOSSIBLE_TRAVEL = "impossible_travel"
    NEW_COUNTRY = "new_country"
    NEW_CITY = "new_city"
    TIMEZONE_ANOMALY = "timezone_anomaly"
    SUSPICIOUS_COUNTRY = "suspicious_country"
    VPN_DETECTED = "vpn_detected"
    TOR_DETECTED = "tor_detected"


class Severity(str, Enum):
    """Anomaly severity levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


class RiskLevel(str, Enum):
    """Network risk levels."""
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class SecurityActionType(str, Enum):
    """Remediation actions the dispatcher can record."""
    ENABLE_2FA = "enable_2fa"
    RESET_PASSWORD = "reset_password"
    ACCOUNT_LOCKOUT = "account_lockout"
    SECURITY_ALERT = "security_alert"


class NotificationTemplate(str, Enum):
    """Email templates, one per action type."""
    TWO_FACTOR_SETUP = "2fa_setup"
    PASSWORD_RESET = "password_reset"
    SECURITY_ALERT = "security_alert"
    ACCOUNT_LOCKOUT = "account_lockout"


class SecurityEventType(str, Enum):
    """Types of security events emitted to the event logger."""
    FAILED_LOGIN = "failed_login"
    UNUSUAL_LOCATION = "unusual_location"
    BOT_ACTIVITY = "bot_activity"
    SECURITY_ACTION = "security_action"
    VPN_DETECTED = "vpn_detected"
    TOR_DETECTED = "tor_detected"
    IMPOSSIBLE_TRAVEL = "impossible_travel"
    NEW_COUNTRY = "new_country"
    NEW_CITY = "new_city"
    TIMEZONE_ANOMALY = "timezone_anomaly"
    SUSPICIOUS_COUNTRY = "suspicious_country"


ACTION_TEMPLATES = {
    SecurityActionType.ENABLE_2FA: NotificationTemplate.TWO_FACTOR_SETUP,
    SecurityActionType.RESET_PASSWORD: NotificationTemplate.PASSWORD_RESET,
    SecurityActionType.SECURITY_ALERT: NotificationTemplate.SECURITY_ALERT,
    SecurityActionType.ACCOUNT_LOCKOUT: NotificationTemplate.ACCOUNT_LOCKOUT,
}
