"""End-to-end tests for the monitor engine lifecycle hooks."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from authwatch.actions.email import LoggingEmailSender
from authwatch.common.config import MonitorConfig, SecurityActionsConfig
from authwatch.common.exceptions import GeolocationLookupError, InputValidationError
from authwatch.core.types import AnomalyType, SecurityActionType, SecurityEventType
from authwatch.engine.monitor import MonitorEngine



def _config(**overrides):
    values = dict(
        security_actions=SecurityActionsConfig(
            enable_2fa_enforcement=True,
            enable_password_reset_enforcement=True,
            send_email=LoggingEmailSender(),
        ),
    )
    values.update(overrides)
    return MonitorConfig(**values)


@pytest.fixture
def geolocation():
    service = MagicMock()
    service.resolve = AsyncMock()
    return service


@pytest.fixture
def logged_events():
    return []


@pytest.fixture
def make_engine(clock, geolocation, logged_events):
    def _make(**config_overrides):
        return MonitorEngine(
            config=_config(**config_overrides),
            geolocation=geolocation,
            event_logger=logged_events.append,
            clock=clock,
        )
    return _make


@pytest.fixture
def engine(make_engine):
    return make_engine()


class TestFailedLogins:
    
    async def test_threshold_edge(self, engine):
        for expected in range(1, 5):
            assert await engine.on_failed_login("u1", "8.8.8.8") == expected
        assert engine.get_user_actions("u1") == []
        
        assert await engine.on_failed_login("u1", "8.8.8.8") == 5
        
        actions = engine.get_user_actions("u1")
        assert [a.type for a in actions] == [
            SecurityActionType.ENABLE_2FA,
            SecurityActionType.RESET_PASSWORD,
            SecurityActionType.SECURITY_ALERT,
        ]
        assert all(a.email_sent for a in actions)
        failed = engine.get_events(event_type=SecurityEventType.FAILED_LOGIN)
        assert len(failed) == 1
        assert failed[0].attempts == 5
    
    async def test_refires_past_threshold(self, engine):
        for _ in range(6):
            await engine.on_failed_login("u1", "8.8.8.8")
        
        assert len(engine.get_events(event_type=SecurityEventType.FAILED_LOGIN)) == 2
        assert len(engine.get_user_actions("u1")) == 6
    
    async def test_window_expiry_resets_count(self, engine, clock):
        for _ in range(4):
            await engine.on_failed_login("u1")
        clock.advance(minutes=10)
        
        assert await engine.on_failed_login("u1") == 1
        assert engine.get_user_actions("u1") == []
    
    async def test_disabled(self, make_engine):
        engine = make_engine(enable_failed_login_monitoring=False)
        
        for _ in range(10):
            assert await engine.on_failed_login("u1") == 0
        assert engine.get_events() == []
    
    async def test_dispatch_failure_is_contained(self, engine):
        engine.dispatcher.dispatch_breach = AsyncMock(side_effect=RuntimeError("boom"))
        for _ in range(4):
            await engine.on_failed_login("u1")
        
        assert await engine.on_failed_login("u1") == 5


class TestBotDetection:
    
    async def test_emits_at_threshold(self, engine, logged_events):
        counts = [await engine.on_request("8.8.8.8") for _ in range(10)]
        
        assert counts == list(range(1, 11))
        bot_events = [e for e in logged_events if e.type == SecurityEventType.BOT_ACTIVITY]
        assert len(bot_events) == 1
        assert bot_events[0].request_rate == "10 requests in 10.0s"
    
    async def test_spread_out_requests_are_fine(self, engine, clock):
        for _ in range(20):
            await engine.on_request("8.8.8.8")
            clock.advance(seconds=2)
        
        assert engine.get_events(event_type=SecurityEventType.BOT_ACTIVITY) == []
    
    async def test_idle_ips_are_forgotten(self, engine, clock):
        for i in range(1000):
            await engine.on_request(f"100.64.{i // 256}.{i % 256}")
        clock.advance(hours=1)
        
        await engine.on_request("8.8.8.8")
        
        assert list(engine.requests.keys()) == ["8.8.8.8"]
        assert engine.get_stats()["bot_detection"]["tracked_ips"] == 1
    
    async def test_stats_count_live_ips_only(self, engine, clock):
        await engine.on_request("8.8.8.8")
        clock.advance(seconds=5)
        await engine.on_request("8.8.4.4")
        clock.advance(seconds=6)
        
        assert engine.get_stats()["bot_detection"]["tracked_ips"] == 1


class TestSuccessfulLogins:
    
    async def test_impossible_travel_emits_typed_event(
        self, make_engine, geolocation, make_sample, clock
    ):
        engine = make_engine(min_location_history=1)
        geolocation.resolve.return_value = make_sample("new_york")
        assert await engine.on_successful_login("u1", "8.8.8.8") == []
        
        clock.advance(minutes=30)
        geolocation.resolve.return_value = make_sample("tokyo")
        anomalies = await engine.on_successful_login("u1", "8.8.8.8")
        
        assert AnomalyType.IMPOSSIBLE_TRAVEL in [a.type for a in anomalies]
        events = engine.get_events(event_type=SecurityEventType.IMPOSSIBLE_TRAVEL)
        assert len(events) == 1
        assert events[0].location.city == "Tokyo"
        assert events[0].previous_location.city == "New York"
        assert events[0].severity.value == "critical"
        # Anomalies are only logged unless mapped to an action
        assert engine.get_user_actions("u1") == []
    
    async def test_login_time_comes_from_engine_clock(
        self, engine, geolocation, make_sample, clock
    ):
        geolocation.resolve.return_value = make_sample("berlin", timestamp=1)
        
        await engine.on_successful_login("u1", "8.8.8.8")
        
        assert engine.get_user_location_history("u1").locations[0].timestamp == clock.now_ms
    
    async def test_suspicious_country_first_login(self, engine, geolocation, make_sample):
        geolocation.resolve.return_value = make_sample("pyongyang")
        
        anomalies = await engine.on_successful_login("u1", "8.8.8.8")
        
        assert [a.type for a in anomalies] == [AnomalyType.SUSPICIOUS_COUNTRY]
        stored = engine.get_user_location_history("u1").locations[0]
        assert stored.risk_score == 40.0
    
    async def test_mapped_anomaly_dispatches_action(self, make_engine, geolocation, make_sample):
        engine = make_engine(anomaly_actions={"suspicious_country": "account_lockout"})
        geolocation.resolve.return_value = make_sample("pyongyang")
        
        await engine.on_successful_login("u1", "8.8.8.8")
        
        actions = engine.get_user_actions("u1")
        assert [a.type for a in actions] == [SecurityActionType.ACCOUNT_LOCKOUT]
        assert actions[0].metadata["anomaly_type"] == "suspicious_country"
    
    async def test_unusual_location_event(self, make_engine, geolocation, make_sample, clock):
        engine = make_engine(min_location_history=1, enable_timezone_anomaly_detection=False)
        geolocation.resolve.return_value = make_sample("new_york")
        await engine.on_successful_login("u1", "8.8.8.8")
        
        # Same country, ~3900 km, plausible flight time
        clock.advance(hours=8)
        geolocation.resolve.return_value = make_sample(
            "new_york", city="Los Angeles", latitude=34.05, longitude=-118.24,
            timezone="America/Los_Angeles",
        )
        anomalies = await engine.on_successful_login("u1", "8.8.8.8")
        
        assert anomalies == []
        unusual = engine.get_events(event_type=SecurityEventType.UNUSUAL_LOCATION)
        assert len(unusual) == 1
        assert unusual[0].metadata["reason"] == "distance_threshold"
    
    async def test_lookup_failure_fails_open(self, engine, geolocation):
        geolocation.resolve.side_effect = GeolocationLookupError("all down", ip="8.8.8.8")
        
        assert await engine.on_successful_login("u1", "8.8.8.8") == []
        assert engine.get_user_location_history("u1") is None
    
    async def test_unexpected_error_fails_open(self, engine, geolocation, make_sample):
        geolocation.resolve.return_value = make_sample("berlin")
        engine.detector.assess = MagicMock(side_effect=RuntimeError("bug"))
        
        assert await engine.on_successful_login("u1", "8.8.8.8") == []
    
    async def test_private_ip_skipped(self, engine, geolocation):
        geolocation.resolve.return_value = None
        
        assert await engine.on_successful_login("u1", "10.0.0.5") == []
        assert engine.get_location_stats()["users_tracked"] == 0
    
    async def test_disabled(self, make_engine, geolocation):
        engine = make_engine(enable_location_detection=False)
        
        assert await engine.on_successful_login("u1", "8.8.8.8") == []
        geolocation.resolve.assert_not_awaited()


class TestQueries:
    
    async def test_stats_idempotent(self, engine, geolocation, make_sample):
        geolocation.resolve.return_value = make_sample("pyongyang")
        await engine.on_successful_login("u1", "8.8.8.8")
        for _ in range(5):
            await engine.on_failed_login("u2", "8.8.4.4")
        await engine.on_request("8.8.8.8")
        
        first = engine.get_stats()
        second = engine.get_stats()
        
        assert first == second
        assert first["events_by_type"]["suspicious_country"] == 1
        assert first["events_by_type"]["failed_login"] == 1
        assert first["events_by_type"]["security_action"] == 3
        assert first["total_actions"] == 3
        assert first["failed_login"]["tracked_users"] == 1
        assert first["bot_detection"]["tracked_ips"] == 1
    
    async def test_location_stats(self, engine, geolocation, make_sample, clock):
        geolocation.resolve.return_value = make_sample("berlin")
        await engine.on_successful_login("u1", "8.8.8.8")
        geolocation.resolve.return_value = make_sample("pyongyang")
        await engine.on_successful_login("u2", "8.8.4.4")
        
        stats = engine.get_location_stats()
        
        assert stats["users_tracked"] == 2
        assert stats["total_samples"] == 2
        assert stats["countries_seen"] == ["DE", "KP"]
        assert stats["anomalies_by_type"] == {"suspicious_country": 1}
        assert stats["last_evaluation"] == clock.now_ms
    
    async def test_event_buffer_is_bounded(self, make_engine):
        engine = make_engine(max_events=3, bot_detection_threshold=1)
        for _ in range(5):
            await engine.on_request("8.8.8.8")
        
        assert len(engine.get_events()) == 3
        assert engine.get_stats()["total_events"] == 5
    
    async def test_event_filters(self, engine):
        for _ in range(5):
            await engine.on_failed_login("u1")
        
        assert len(engine.get_events(user_id="u1")) == 4
        assert len(engine.get_events(limit=2)) == 2
        assert engine.get_events(limit=0) == []
    
    async def test_event_logger_failure_is_contained(self, clock, geolocation):
        engine = MonitorEngine(
            config=_config(bot_detection_threshold=1),
            geolocation=geolocation,
            event_logger=MagicMock(side_effect=OSError("stdout closed")),
            clock=clock,
        )
        
        assert await engine.on_request("8.8.8.8") == 1
        assert len(engine.get_events()) == 1


class TestManualActions:
    
    async def test_trigger_action(self, engine):
        action = await engine.trigger_action("u1", "security_alert", "operator review", "8.8.8.8")
        
        assert action.type == SecurityActionType.SECURITY_ALERT
        assert action.metadata["trigger"] == "manual"
        assert engine.get_user_actions("u1")[0].action_id == action.action_id
    
    async def test_unknown_action_type(self, engine):
        with pytest.raises(InputValidationError):
            await engine.trigger_action("u1", "self_destruct", "why not")
    
    async def test_reason_required(self, engine):
        with pytest.raises(InputValidationError):
            await engine.trigger_action("u1", "security_alert", "")


class TestMetricsWiring:
    
    async def test_metrics_recorded(self, clock, geolocation, make_sample):
        metrics = MagicMock()
        engine = MonitorEngine(
            config=_config(),
            geolocation=geolocation,
            event_logger=lambda event: None,
            metrics=metrics,
            clock=clock,
        )
        geolocation.resolve.return_value = make_sample("pyongyang")
        
        await engine.on_successful_login("u1", "8.8.8.8")
        await engine.trigger_action("u1", "security_alert", "r")
        engine.shutdown()
        
        metrics.record_anomaly.assert_called_once()
        metrics.record_action.assert_called_once_with(SecurityActionType.SECURITY_ALERT, True)
        assert metrics.record_security_event.call_count == 2
        metrics.shutdown.assert_called_once()
    
    async def test_metrics_failure_is_contained(self, clock, geolocation):
        metrics = MagicMock()
        metrics.record_security_event.side_effect = IOError("CloudWatch write failed")
        engine = MonitorEngine(
            config=_config(bot_detection_threshold=1),
            geolocation=geolocation,
            event_logger=lambda event: None,
            metrics=metrics,
            clock=clock,
        )
        
        assert await engine.on_request("8.8.8.8") == 1
    
    async def test_invalid_coordinates_recorded_as_error(self, clock, geolocation, make_sample):
        metrics = MagicMock()
        engine = MonitorEngine(
            config=_config(),
            geolocation=geolocation,
            event_logger=lambda event: None,
            metrics=metrics,
            clock=clock,
        )
        geolocation.resolve.return_value = make_sample("berlin", latitude=None)
        
        assert await engine.on_successful_login("u1", "8.8.8.8") == []
        
        metrics.record_error.assert_called_once_with("location_detection", "InvalidCoordinatesError")
        assert engine.get_user_location_history("u1") is None
