"""Configuration management - Centralized configuration for authwatch.

Provides environment-aware configuration with sensible defaults.
Every scalar option can be overridden by an AUTHWATCH_ environment
variable; callables (email sender, user email resolver) are injected
in code only.
"""

import os
from dataclasses import dataclass, field, fields
from pathlib import Path
from typing import Any, Awaitable, Callable, Dict, Mapping, Optional, Tuple, Union

import yaml

from authwatch.common.constants import MonitorDefaults, NetworkConstants
from authwatch.common.exceptions import ConfigurationError
from authwatch.core.types import AnomalyType, SecurityActionType


EmailSender = Callable[[Any], Union[None, Awaitable[None]]]


def _env_str(name: str, default: str) -> str:
    return os.getenv(f"AUTHWATCH_{name}", default)


def _env_int(name: str, default: int) -> int:
    return int(os.getenv(f"AUTHWATCH_{name}", str(default)))


def _env_float(name: str, default: float) -> float:
    return float(os.getenv(f"AUTHWATCH_{name}", str(default)))


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(f"AUTHWATCH_{name}")
    if raw is None:
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


def _env_list(name: str, default: Tuple[str, ...]) -> Tuple[str, ...]:
    raw = os.getenv(f"AUTHWATCH_{name}")
    if raw is None:
        return tuple(default)
    return tuple(item.strip() for item in raw.split(",") if item.strip())


@dataclass(frozen=True)
class SecurityActionsConfig:
    """Remediation settings applied when the failed-login threshold is breached.

    Example:
        AUTHWATCH_ENABLE_2FA_ENFORCEMENT=true
        AUTHWATCH_CONSOLIDATE_BREACH_EMAIL=true
    """

    enable_2fa_enforcement: bool = field(
        default_factory=lambda: _env_bool("ENABLE_2FA_ENFORCEMENT", False)
    )
    enable_password_reset_enforcement: bool = field(
        default_factory=lambda: _env_bool("ENABLE_PASSWORD_RESET_ENFORCEMENT", False)
    )
    send_email: Optional[EmailSender] = None

    # One email per breach (the security alert) instead of one per action
    consolidate_breach_email: bool = field(
        default_factory=lambda: _env_bool("CONSOLIDATE_BREACH_EMAIL", False)
    )
    reset_url_template: Optional[str] = field(
        default_factory=lambda: os.getenv("AUTHWATCH_RESET_URL_TEMPLATE")
    )
    user_email_resolver: Optional[Callable[[str], str]] = None

    def resolve_email(self, user_id: str) -> str:
        """Map a user id to a notification address."""
        if self.user_email_resolver is not None:
            return self.user_email_resolver(user_id)
        return user_id

    def reset_url(self, user_id: str) -> Optional[str]:
        """Build the password reset link for a user, if configured."""
        if not self.reset_url_template:
            return None
        return self.reset_url_template.format(user_id=user_id)


@dataclass(frozen=True)
class MonitorConfig:
    """Central, immutable configuration object for the monitor engine.

    All scalar settings can be overridden via environment variables
    prefixed with AUTHWATCH_.

    Example:
        AUTHWATCH_FAILED_LOGIN_THRESHOLD=3
        AUTHWATCH_SUSPICIOUS_COUNTRIES=KP,IR
        AUTHWATCH_ENABLE_NEW_CITY_DETECTION=true
    """

    # Failed login monitoring
    failed_login_threshold: int = field(
        default_factory=lambda: _env_int("FAILED_LOGIN_THRESHOLD", 5)
    )
    failed_login_window: float = field(  # minutes
        default_factory=lambda: _env_float("FAILED_LOGIN_WINDOW", 10)
    )
    enable_failed_login_monitoring: bool = field(
        default_factory=lambda: _env_bool("ENABLE_FAILED_LOGIN_MONITORING", True)
    )

    # Bot detection
    bot_detection_threshold: int = field(
        default_factory=lambda: _env_int("BOT_DETECTION_THRESHOLD", 10)
    )
    bot_detection_window: float = field(  # seconds
        default_factory=lambda: _env_float("BOT_DETECTION_WINDOW", 10)
    )
    enable_bot_detection: bool = field(
        default_factory=lambda: _env_bool("ENABLE_BOT_DETECTION", True)
    )

    # Location detection
    enable_location_detection: bool = field(
        default_factory=lambda: _env_bool("ENABLE_LOCATION_DETECTION", True)
    )
    max_normal_distance: float = field(  # km
        default_factory=lambda: _env_float("MAX_NORMAL_DISTANCE", 1000)
    )
    location_anomaly_window: float = field(  # hours
        default_factory=lambda: _env_float("LOCATION_ANOMALY_WINDOW", 24)
    )
    min_location_history: int = field(
        default_factory=lambda: _env_int("MIN_LOCATION_HISTORY", 3)
    )
    enable_vpn_detection: bool = field(
        default_factory=lambda: _env_bool("ENABLE_VPN_DETECTION", True)
    )
    enable_tor_detection: bool = field(
        default_factory=lambda: _env_bool("ENABLE_TOR_DETECTION", True)
    )
    enable_suspicious_country_detection: bool = field(
        default_factory=lambda: _env_bool("ENABLE_SUSPICIOUS_COUNTRY_DETECTION", True)
    )
    suspicious_countries: Tuple[str, ...] = field(
        default_factory=lambda: _env_list(
            "SUSPICIOUS_COUNTRIES", MonitorDefaults.DEFAULT_SUSPICIOUS_COUNTRIES
        )
    )
    enable_impossible_travel_detection: bool = field(
        default_factory=lambda: _env_bool("ENABLE_IMPOSSIBLE_TRAVEL_DETECTION", True)
    )
    max_travel_speed: float = field(  # km/h, commercial aircraft
        default_factory=lambda: _env_float("MAX_TRAVEL_SPEED", 900)
    )
    enable_new_country_detection: bool = field(
        default_factory=lambda: _env_bool("ENABLE_NEW_COUNTRY_DETECTION", True)
    )
    enable_new_city_detection: bool = field(
        default_factory=lambda: _env_bool("ENABLE_NEW_CITY_DETECTION", False)
    )
    enable_timezone_anomaly_detection: bool = field(
        default_factory=lambda: _env_bool("ENABLE_TIMEZONE_ANOMALY_DETECTION", True)
    )

    # Network classification inputs
    vpn_providers: Tuple[str, ...] = field(
        default_factory=lambda: _env_list(
            "VPN_PROVIDERS", NetworkConstants.DEFAULT_VPN_PROVIDERS
        )
    )
    tor_exit_nodes: Tuple[str, ...] = field(
        default_factory=lambda: _env_list("TOR_EXIT_NODES", ())
    )

    # Geolocation
    geolocation_timeout_seconds: float = field(
        default_factory=lambda: _env_float("GEOLOCATION_TIMEOUT_SECONDS", 5.0)
    )
    skip_private_ips: bool = field(
        default_factory=lambda: _env_bool("SKIP_PRIVATE_IPS", True)
    )

    # Remediation
    security_actions: SecurityActionsConfig = field(default_factory=SecurityActionsConfig)
    anomaly_actions: Mapping[AnomalyType, SecurityActionType] = field(default_factory=dict)

    # Event buffer
    max_events: int = field(
        default_factory=lambda: _env_int("MAX_EVENTS", MonitorDefaults.MAX_EVENTS)
    )
    log_level: str = field(
        default_factory=lambda: _env_str("LOG_LEVEL", "INFO")
    )

    def __post_init__(self):
        """Validate and normalize configuration after initialization."""
        for name in (
            "failed_login_threshold",
            "bot_detection_threshold",
            "max_events",
        ):
            if getattr(self, name) < 1:
                raise ConfigurationError(
                    f"{name} must be at least 1", details={name: getattr(self, name)}
                )

        for name in (
            "failed_login_window",
            "bot_detection_window",
            "location_anomaly_window",
            "max_travel_speed",
            "max_normal_distance",
            "geolocation_timeout_seconds",
        ):
            if getattr(self, name) <= 0:
                raise ConfigurationError(
                    f"{name} must be positive", details={name: getattr(self, name)}
                )

        if self.min_location_history < 0:
            raise ConfigurationError(
                "min_location_history must not be negative",
                details={"min_location_history": self.min_location_history},
            )

        raw_countries = self.suspicious_countries
        if isinstance(raw_countries, str):
            raw_countries = raw_countries.split(",")
        countries = tuple(code.strip().upper() for code in raw_countries if code.strip())
        bad = [code for code in countries if len(code) != 2 or not code.isalpha()]
        if bad:
            raise ConfigurationError(
                "suspicious_countries must be ISO 3166-1 alpha-2 codes",
                details={"invalid": bad},
            )

        try:
            actions = {
                AnomalyType(anomaly): SecurityActionType(action)
                for anomaly, action in dict(self.anomaly_actions).items()
            }
        except ValueError as e:
            raise ConfigurationError(f"Invalid anomaly_actions mapping: {e}") from e

        # Frozen dataclass: normalized values are written through object.__setattr__
        object.__setattr__(self, "suspicious_countries", countries)
        object.__setattr__(self, "anomaly_actions", actions)
        object.__setattr__(
            self, "vpn_providers", tuple(p.lower() for p in self.vpn_providers)
        )
        object.__setattr__(self, "tor_exit_nodes", tuple(self.tor_exit_nodes))

    @property
    def failed_login_window_ms(self) -> int:
        """Failed-login sliding window in milliseconds."""
        return int(self.failed_login_window * 60_000)

    @property
    def bot_detection_window_ms(self) -> int:
        """Request-rate sliding window in milliseconds."""
        return int(self.bot_detection_window * 1000)

    @property
    def location_anomaly_window_ms(self) -> int:
        """Location history retention window in milliseconds."""
        return int(self.location_anomaly_window * 3_600_000)

    @classmethod
    def from_mapping(cls, data: Mapping[str, Any]) -> "MonitorConfig":
        """Build a config from a plain mapping (e.g. parsed YAML).

        Unknown keys raise ConfigurationError so typos do not silently
        fall back to defaults.
        """
        data = dict(data)
        known = {f.name for f in fields(cls)}
        unknown = sorted(set(data) - known)
        if unknown:
            raise ConfigurationError(
                "Unknown configuration keys", details={"keys": unknown}
            )

        actions = data.pop("security_actions", None)
        if isinstance(actions, Mapping):
            action_known = {f.name for f in fields(SecurityActionsConfig)}
            bad = sorted(set(actions) - action_known)
            if bad:
                raise ConfigurationError(
                    "Unknown security_actions keys", details={"keys": bad}
                )
            data["security_actions"] = SecurityActionsConfig(**actions)
        elif actions is not None:
            data["security_actions"] = actions

        for key in ("suspicious_countries", "vpn_providers", "tor_exit_nodes"):
            value = data.get(key)
            if isinstance(value, str):
                data[key] = tuple(value.split(","))
            elif value is not None:
                data[key] = tuple(value)

        return cls(**data)

    @classmethod
    def from_yaml(cls, path: Union[str, Path]) -> "MonitorConfig":
        """Load configuration from a YAML file."""
        path = Path(path)
        if not path.exists():
            raise ConfigurationError(
                f"Config file not found: {path}", details={"path": str(path)}
            )

        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}

        if not isinstance(data, dict):
            raise ConfigurationError(
                "Config file must contain a mapping", details={"path": str(path)}
            )

        return cls.from_mapping(data)


# Singleton instance
_config: Optional[MonitorConfig] = None


def get_config() -> MonitorConfig:
    """Get the global configuration instance.

    Returns:
        MonitorConfig: The global configuration singleton.
    """
    global _config
    if _config is None:
        _config = MonitorConfig()
    return _config


def reset_config() -> None:
    """Reset the global configuration (for testing)."""
    global _config
    _config = None


def config_summary(config: MonitorConfig) -> Dict[str, Any]:
    """Serializable view of the scalar settings (callables omitted)."""
    summary: Dict[str, Any] = {}
    for f in fields(config):
        if f.name == "security_actions":
            actions = config.security_actions
            summary[f.name] = {
                "enable_2fa_enforcement": actions.enable_2fa_enforcement,
                "enable_password_reset_enforcement": actions.enable_password_reset_enforcement,
                "email_configured": actions.send_email is not None,
                "consolidate_breach_email": actions.consolidate_breach_email,
            }
        elif f.name == "anomaly_actions":
            summary[f.name] = {k.value: v.value for k, v in config.anomaly_actions.items()}
        else:
            value = getattr(config, f.name)
            summary[f.name] = list(value) if isinstance(value, tuple) else value
    return summary
