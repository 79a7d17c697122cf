"""Monitor Engine - wires detection into the authentication lifecycle.

The host auth framework calls three lifecycle hooks explicitly:

- ``on_request(ip)`` before authentication (bot detection)
- ``on_failed_login(user_id, ip)`` after a rejected login
- ``on_successful_login(user_id, ip)`` after an accepted login

Every hook fails open: internal errors are logged with user, IP and
stage context and never propagate to the caller, so the engine can
never be the reason a legitimate login fails.
"""

import logging
import threading
from collections import Counter, deque
from typing import Any, Deque, Dict, List, Optional

from authwatch.actions.dispatcher import SecurityActionDispatcher
from authwatch.common.config import MonitorConfig, get_config
from authwatch.common.exceptions import GeolocationLookupError, InputValidationError
from authwatch.core.types import SecurityActionType, SecurityEventType
from authwatch.counters.window import Clock, RateWindowCounter, epoch_ms
from authwatch.data.schemas.action import FailedLoginAttempt, SecurityAction
from authwatch.data.schemas.anomaly import Anomaly
from authwatch.data.schemas.event import SecurityEvent
from authwatch.data.schemas.location import LocationSample, UserLocationHistory
from authwatch.detectors.location.detector import LocationAnomalyDetector, LocationAssessment
from authwatch.events.sink import EventSink, StdoutEventSink
from authwatch.geolocation.service import GeolocationService
from authwatch.monitoring.metrics import MetricsCollector

logger = logging.getLogger(__name__)


class MonitorEngine:
    """Orchestrates counters, location detection and remediation.
    
    Holds a bounded buffer of recent security events; totals per event
    type are kept separately so statistics survive buffer eviction.
    """
    
    def __init__(
        self,
        config: Optional[MonitorConfig] = None,
        geolocation: Optional[GeolocationService] = None,
        detector: Optional[LocationAnomalyDetector] = None,
        dispatcher: Optional[SecurityActionDispatcher] = None,
        event_logger: Optional[EventSink] = None,
        metrics: Optional[MetricsCollector] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize the engine.
        
        Args:
            config: Monitor configuration. Global config if not provided.
            geolocation: IP lookup service. ip-api.com backed if not provided.
            detector: Location anomaly detector. Built from config if not provided.
            dispatcher: Action dispatcher. Built from config if not provided.
            event_logger: Security event sink. Stdout JSON lines if not provided.
            metrics: Optional CloudWatch metrics collector
            clock: Returns the current time in epoch milliseconds
        """
        self.config = config or get_config()
        self._clock = clock or epoch_ms
        
        self.geolocation = geolocation or GeolocationService(
            timeout=self.config.geolocation_timeout_seconds,
            skip_private_ips=self.config.skip_private_ips,
        )
        self.detector = detector or LocationAnomalyDetector(self.config)
        self.event_logger = event_logger if event_logger is not None else StdoutEventSink()
        self.metrics = metrics
        self.dispatcher = dispatcher or SecurityActionDispatcher(
            self.config.security_actions,
            emit=self.emit,
            clock=self._clock,
        )
        
        self.failed_logins = RateWindowCounter(self.config.failed_login_window_ms, self._clock)
        self.requests = RateWindowCounter(self.config.bot_detection_window_ms, self._clock)
        
        self._events: Deque[SecurityEvent] = deque(maxlen=self.config.max_events)
        self._event_counts: Counter = Counter()
        self._anomaly_counts: Counter = Counter()
        self._last_evaluation: Optional[int] = None
        self._lock = threading.Lock()
        
        logger.info(
            "MonitorEngine initialized",
            extra={
                "failed_login_threshold": self.config.failed_login_threshold,
                "bot_detection_threshold": self.config.bot_detection_threshold,
            },
        )
    
    # ------------------------------------------------------------------
    # Lifecycle hooks
    # ------------------------------------------------------------------
    
    async def on_request(self, ip: str) -> int:
        """Count an inbound request for bot detection.
        
        Detection only: the request is never rejected.
        
        Returns:
            Requests from ip within the window (0 when disabled or on error)
        """
        if not self.config.enable_bot_detection:
            return 0
        
        try:
            count = self.requests.record(ip)
            if count >= self.config.bot_detection_threshold:
                self.emit(SecurityEvent(
                    type=SecurityEventType.BOT_ACTIVITY,
                    ip=ip,
                    attempts=count,
                    request_rate=f"{count} requests in {self.config.bot_detection_window}s",
                    description="Request rate exceeded bot detection threshold",
                ))
            return count
        except Exception as e:
            self._report_error("request", e, ip=ip)
            return 0
    
    async def on_failed_login(self, user_id: str, ip: str = "unknown") -> int:
        """Count a failed login; run the breach actions at the threshold.
        
        The threshold is re-checked on every call, so each failure at or
        past it within the window fires again.
        
        Returns:
            Failed attempts for user_id within the window
        """
        if not self.config.enable_failed_login_monitoring:
            return 0
        
        try:
            attempts = self.failed_logins.record(
                user_id, FailedLoginAttempt(timestamp=self._clock(), ip=ip, user_id=user_id)
            )
        except Exception as e:
            self._report_error("failed_login", e, user_id=user_id, ip=ip)
            return 0
        
        if attempts < self.config.failed_login_threshold:
            return attempts
        
        try:
            self.emit(SecurityEvent(
                type=SecurityEventType.FAILED_LOGIN,
                user_id=user_id,
                ip=ip,
                attempts=attempts,
                description=(
                    f"{attempts} failed login attempts within "
                    f"{self.config.failed_login_window} minutes"
                ),
            ))
            actions = await self.dispatcher.dispatch_breach(user_id, ip, attempts)
            self._record_actions(actions)
        except Exception as e:
            self._report_error("failed_login_actions", e, user_id=user_id, ip=ip)
        
        return attempts
    
    async def on_successful_login(self, user_id: str, ip: str) -> List[Anomaly]:
        """Resolve the login location and evaluate it for anomalies.
        
        Returns:
            Anomalies detected (empty when disabled, skipped or on error)
        """
        if not self.config.enable_location_detection:
            return []
        
        try:
            sample = await self.geolocation.resolve(ip)
        except GeolocationLookupError as e:
            logger.warning(
                f"Geolocation failed, skipping location detection: {e.message}",
                extra={"user_id": user_id, "ip": ip, "stage": "geolocation"},
            )
            self._publish_metric("record_error", "geolocation", type(e).__name__)
            return []
        except Exception as e:
            self._report_error("geolocation", e, user_id=user_id, ip=ip)
            return []
        
        if sample is None:
            return []
        
        try:
            return await self._evaluate(user_id, ip, sample)
        except Exception as e:
            self._report_error("location_detection", e, user_id=user_id, ip=ip)
            return []
    
    async def _evaluate(self, user_id: str, ip: str, sample: LocationSample) -> List[Anomaly]:
        # Observation time is the login time, not the provider's
        sample = self.detector.enrich(sample.model_copy(update={"timestamp": self._clock()}))
        assessment = self.detector.assess(user_id, sample)
        if not assessment.evaluated:
            if assessment.skip_error is not None:
                self._publish_metric(
                    "record_error", "location_detection", type(assessment.skip_error).__name__
                )
            return []
        
        with self._lock:
            self._last_evaluation = sample.timestamp
            self._anomaly_counts.update(a.type.value for a in assessment.anomalies)
        
        for anomaly in assessment.anomalies:
            self.emit(SecurityEvent(
                type=SecurityEventType(anomaly.type.value),
                user_id=user_id,
                ip=ip,
                severity=anomaly.severity,
                confidence=anomaly.confidence,
                risk_score=anomaly.risk_score,
                description=anomaly.description,
                location=sample,
                previous_location=assessment.previous,
                metadata=anomaly.metadata,
            ))
            self._publish_metric(
                "record_anomaly", anomaly.type, anomaly.severity, anomaly.risk_score
            )
            
            action_type = self.config.anomaly_actions.get(anomaly.type)
            if action_type is not None:
                action = await self.dispatcher.dispatch(
                    action_type,
                    user_id,
                    anomaly.description,
                    ip,
                    metadata={"anomaly_type": anomaly.type.value, "risk_score": anomaly.risk_score},
                )
                self._record_actions([action])
        
        if not assessment.anomalies:
            self._emit_unusual_location(user_id, ip, sample, assessment)
        
        return assessment.anomalies
    
    def _emit_unusual_location(
        self,
        user_id: str,
        ip: str,
        sample: LocationSample,
        assessment: LocationAssessment,
    ) -> None:
        suspicion = assessment.suspicion
        if not assessment.history_ready or suspicion is None or not suspicion.suspicious:
            return
        
        self.emit(SecurityEvent(
            type=SecurityEventType.UNUSUAL_LOCATION,
            user_id=user_id,
            ip=ip,
            confidence=suspicion.confidence,
            description=f"Login from unusual location: {suspicion.reason}",
            location=sample,
            previous_location=assessment.previous,
            metadata={
                "reason": suspicion.reason,
                "distance": suspicion.distance_km,
                "nearest_known_distance": assessment.nearest_known_km,
            },
        ))
    
    # ------------------------------------------------------------------
    # Events
    # ------------------------------------------------------------------
    
    def emit(self, event: SecurityEvent) -> None:
        """Buffer an event and forward it to the event logger."""
        with self._lock:
            self._events.append(event)
            self._event_counts[event.type.value] += 1
        
        if self.event_logger is not None:
            try:
                self.event_logger(event)
            except Exception:
                logger.exception(
                    "Event logger failed",
                    extra={"user_id": event.user_id, "ip": event.ip, "stage": "emit"},
                )
        
        self._publish_metric("record_security_event", event.type)
    
    # ------------------------------------------------------------------
    # Queries (pure reads)
    # ------------------------------------------------------------------
    
    def get_events(
        self,
        limit: Optional[int] = None,
        user_id: Optional[str] = None,
        event_type: Optional[SecurityEventType] = None,
    ) -> List[SecurityEvent]:
        """Buffered events, oldest first, optionally filtered."""
        with self._lock:
            events = list(self._events)
        
        if user_id is not None:
            events = [e for e in events if e.user_id == user_id]
        if event_type is not None:
            events = [e for e in events if e.type == SecurityEventType(event_type)]
        if limit is not None:
            events = events[-limit:] if limit > 0 else []
        return events
    
    def get_stats(self) -> Dict[str, Any]:
        """Aggregate counters over events, tracking state and actions."""
        with self._lock:
            events_by_type = dict(self._event_counts)
            buffered = len(self._events)
        
        actions_by_type = self.dispatcher.action_counts()
        return {
            "total_events": sum(events_by_type.values()),
            "buffered_events": buffered,
            "events_by_type": events_by_type,
            "total_actions": sum(actions_by_type.values()),
            "actions_by_type": actions_by_type,
            "failed_login": {
                "enabled": self.config.enable_failed_login_monitoring,
                "threshold": self.config.failed_login_threshold,
                "window_minutes": self.config.failed_login_window,
                "tracked_users": self.failed_logins.active_keys(),
            },
            "bot_detection": {
                "enabled": self.config.enable_bot_detection,
                "threshold": self.config.bot_detection_threshold,
                "window_seconds": self.config.bot_detection_window,
                "tracked_ips": self.requests.active_keys(),
            },
            "location_detection": {
                "enabled": self.config.enable_location_detection,
            },
        }
    
    def get_location_stats(self) -> Dict[str, Any]:
        """Summary of retained location history and anomaly counts."""
        store = self.detector.history_store
        users = 0
        total_samples = 0
        countries = set()
        for user_id in list(store.users()):
            history = store.get(user_id)
            if history is None:
                continue
            users += 1
            total_samples += len(history.locations)
            countries.update(loc.country_code for loc in history.locations)
        
        with self._lock:
            anomalies_by_type = dict(self._anomaly_counts)
            last_evaluation = self._last_evaluation
        
        return {
            "users_tracked": users,
            "total_samples": total_samples,
            "countries_seen": sorted(countries),
            "anomalies_by_type": anomalies_by_type,
            "total_anomalies": sum(anomalies_by_type.values()),
            "last_evaluation": last_evaluation,
        }
    
    def get_user_actions(self, user_id: str) -> List[SecurityAction]:
        return self.dispatcher.get_user_actions(user_id)
    
    def get_user_location_history(self, user_id: str) -> Optional[UserLocationHistory]:
        """Retained history for a user, or None if never seen."""
        return self.detector.get_history(user_id)
    
    def get_failed_login_count(self, user_id: str) -> int:
        return self.failed_logins.count(user_id)
    
    # ------------------------------------------------------------------
    # Manual remediation
    # ------------------------------------------------------------------
    
    async def trigger_action(
        self,
        user_id: str,
        action_type: str,
        reason: str,
        ip: Optional[str] = None,
    ) -> SecurityAction:
        """Dispatch a remediation action on an operator's request.
        
        Raises:
            InputValidationError: If user_id, reason or action_type is invalid
        """
        if not user_id or not reason:
            raise InputValidationError(
                "user_id and reason are required",
                details={"user_id": user_id, "reason": reason},
            )
        try:
            parsed = SecurityActionType(action_type)
        except ValueError as e:
            raise InputValidationError(
                f"Unknown action type: {action_type}",
                details={"allowed": [t.value for t in SecurityActionType]},
            ) from e
        
        action = await self.dispatcher.dispatch(
            parsed,
            user_id,
            reason,
            ip or "unknown",
            metadata={"trigger": "manual"},
        )
        self._record_actions([action])
        return action
    
    def shutdown(self) -> None:
        """Flush buffered metrics."""
        if self.metrics is None:
            return
        try:
            self.metrics.shutdown()
        except Exception:
            logger.exception("Failed to flush metrics on shutdown")
    
    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------
    
    def _record_actions(self, actions: List[SecurityAction]) -> None:
        for action in actions:
            self._publish_metric("record_action", action.type, action.email_sent)
    
    def _publish_metric(self, method: str, *args) -> None:
        if self.metrics is None:
            return
        try:
            getattr(self.metrics, method)(*args)
        except Exception:
            logger.exception("Failed to record metric")
    
    def _report_error(
        self,
        stage: str,
        error: Exception,
        user_id: Optional[str] = None,
        ip: Optional[str] = None,
    ) -> None:
        logger.error(
            f"Monitor pipeline error at {stage}: {error}",
            extra={"user_id": user_id, "ip": ip, "stage": stage},
            exc_info=error,
        )
        self._publish_metric("record_error", stage, type(error).__name__)
