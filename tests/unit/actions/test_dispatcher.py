"""Tests for the security action dispatcher."""

from unittest.mock import AsyncMock, MagicMock

import pytest

from authwatch.actions.dispatcher import SecurityActionDispatcher
from authwatch.actions.email import LoggingEmailSender
from authwatch.common.config import SecurityActionsConfig
from authwatch.core.types import NotificationTemplate, SecurityActionType, SecurityEventType
from authwatch.data.schemas.action import SecurityAction


def _config(**overrides):
    values = dict(
        enable_2fa_enforcement=True,
        enable_password_reset_enforcement=True,
        send_email=LoggingEmailSender(),
    )
    values.update(overrides)
    return SecurityActionsConfig(**values)


@pytest.fixture
def events():
    return []


@pytest.fixture
def dispatcher(clock, events):
    return SecurityActionDispatcher(_config(), emit=events.append, clock=clock)


class TestDispatch:
    
    async def test_records_emits_and_notifies(self, dispatcher, events, clock):
        action = await dispatcher.dispatch(
            SecurityActionType.SECURITY_ALERT, "u1", "manual review", ip="8.8.8.8"
        )
        
        assert action.type == SecurityActionType.SECURITY_ALERT
        assert action.timestamp == clock.now_ms
        assert action.action_id.startswith("act_")
        assert action.email_sent
        assert dispatcher.get_user_actions("u1")[0].action_id == action.action_id
        
        assert len(events) == 1
        assert events[0].type == SecurityEventType.SECURITY_ACTION
        assert events[0].action.action_id == action.action_id
        
        sent = dispatcher.config.send_email.sent
        assert len(sent) == 1
        assert sent[0].template == NotificationTemplate.SECURITY_ALERT
        assert sent[0].to == "u1"
    
    async def test_accepts_string_action_type(self, dispatcher):
        action = await dispatcher.dispatch("account_lockout", "u1", "locked")
        
        assert action.type == SecurityActionType.ACCOUNT_LOCKOUT
    
    async def test_no_sender_means_no_email(self, clock):
        dispatcher = SecurityActionDispatcher(SecurityActionsConfig(), clock=clock)
        
        action = await dispatcher.dispatch(SecurityActionType.SECURITY_ALERT, "u1", "r")
        
        assert not action.email_sent
    
    async def test_send_failure_is_swallowed(self, clock, caplog):
        sender = AsyncMock(side_effect=ConnectionError("smtp down"))
        dispatcher = SecurityActionDispatcher(_config(send_email=sender), clock=clock)
        
        action = await dispatcher.dispatch(SecurityActionType.RESET_PASSWORD, "u1", "r")
        
        # Attempted, not delivered
        assert action.email_sent
        assert sender.await_count == 1
        assert "Failed to send notification" in caplog.text
    
    async def test_sync_sender_supported(self, clock):
        sender = MagicMock(return_value=None)
        dispatcher = SecurityActionDispatcher(_config(send_email=sender), clock=clock)
        
        await dispatcher.dispatch(SecurityActionType.ENABLE_2FA, "u1", "r")
        
        sender.assert_called_once()
    
    async def test_emit_failure_does_not_block(self, clock):
        emit = MagicMock(side_effect=RuntimeError("sink broken"))
        dispatcher = SecurityActionDispatcher(_config(), emit=emit, clock=clock)
        
        action = await dispatcher.dispatch(SecurityActionType.SECURITY_ALERT, "u1", "r")
        
        assert action.email_sent
        assert len(dispatcher.get_user_actions("u1")) == 1


class TestBreachSequence:
    
    async def test_full_sequence_in_order(self, dispatcher):
        actions = await dispatcher.dispatch_breach("u1", "8.8.8.8", attempts=5)
        
        assert [a.type for a in actions] == [
            SecurityActionType.ENABLE_2FA,
            SecurityActionType.RESET_PASSWORD,
            SecurityActionType.SECURITY_ALERT,
        ]
        assert all(a.email_sent for a in actions)
        assert len(dispatcher.config.send_email.sent) == 3
        assert actions[0].metadata["attempts"] == 5
    
    async def test_alert_is_unconditional(self, clock):
        dispatcher = SecurityActionDispatcher(
            _config(enable_2fa_enforcement=False, enable_password_reset_enforcement=False),
            clock=clock,
        )
        
        actions = await dispatcher.dispatch_breach("u1", "8.8.8.8", attempts=5)
        
        assert [a.type for a in actions] == [SecurityActionType.SECURITY_ALERT]
    
    async def test_consolidated_email(self, clock):
        dispatcher = SecurityActionDispatcher(_config(consolidate_breach_email=True), clock=clock)
        
        actions = await dispatcher.dispatch_breach("u1", "8.8.8.8", attempts=7)
        
        assert len(actions) == 3
        assert [a.email_sent for a in actions] == [False, False, True]
        assert len(dispatcher.config.send_email.sent) == 1
        assert actions[-1].metadata["consolidated_actions"] == ["enable_2fa", "reset_password"]


class TestQueries:
    
    async def test_user_actions_are_copies(self, dispatcher):
        await dispatcher.dispatch(SecurityActionType.SECURITY_ALERT, "u1", "r")
        
        dispatcher.get_user_actions("u1")[0].reason = "tampered"
        
        assert dispatcher.get_user_actions("u1")[0].reason == "r"
    
    async def test_counts_and_clear(self, dispatcher):
        await dispatcher.dispatch_breach("u1", "8.8.8.8", attempts=5)
        await dispatcher.dispatch(SecurityActionType.SECURITY_ALERT, "u2", "r")
        
        assert dispatcher.action_counts() == {
            "enable_2fa": 1, "reset_password": 1, "security_alert": 2,
        }
        assert dispatcher.clear_user_actions("u1") == 3
        assert dispatcher.get_user_actions("u1") == []
    
    def test_notification_payload(self, clock):
        dispatcher = SecurityActionDispatcher(
            _config(
                reset_url_template="https://example.com/reset/{user_id}",
                user_email_resolver=lambda uid: f"{uid}@example.com",
            ),
            clock=clock,
        )
        action = SecurityAction(
            type=SecurityActionType.RESET_PASSWORD,
            user_id="alice",
            reason="5 failed login attempts",
            timestamp=clock.now_ms,
            ip="8.8.8.8",
        )
        
        notification = dispatcher.build_notification(action)
        
        assert notification.to == "alice@example.com"
        assert notification.subject == "Password Reset Required"
        assert notification.template == NotificationTemplate.PASSWORD_RESET
        assert notification.data.reset_url == "https://example.com/reset/alice"
        assert notification.data.timestamp.startswith("2026-01-01T00:00:00")
