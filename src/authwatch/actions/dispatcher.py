"""Security Action Dispatcher - turns detected conditions into remediation.

Each dispatch records one SecurityAction in the user's action log,
emits a security event and, when an email sender is configured, sends
exactly one notification for that action. Send failures are logged and
never reach the caller; the action still records the attempt.
"""

import inspect
import logging
import threading
from collections import Counter
from datetime import datetime, timezone
from typing import Any, Callable, Dict, List, Optional

from authwatch.actions.templates import subject_for
from authwatch.common.config import SecurityActionsConfig
from authwatch.common.exceptions import NotificationError
from authwatch.core.types import ACTION_TEMPLATES, SecurityActionType, SecurityEventType
from authwatch.counters.window import Clock, epoch_ms
from authwatch.data.schemas.action import SecurityAction
from authwatch.data.schemas.event import SecurityEvent
from authwatch.data.schemas.notification import EmailNotification, NotificationData

logger = logging.getLogger(__name__)


class SecurityActionDispatcher:
    """Records remediation actions and sends their notifications.
    
    The per-user action log grows without bound; callers that need a
    retention limit prune externally via ``clear_user_actions``.
    """
    
    def __init__(
        self,
        config: Optional[SecurityActionsConfig] = None,
        emit: Optional[Callable[[SecurityEvent], None]] = None,
        clock: Optional[Clock] = None,
    ):
        """Initialize the dispatcher.
        
        Args:
            config: Remediation settings, including the email sender
            emit: Security event sink
            clock: Returns the current time in epoch milliseconds
        """
        self.config = config or SecurityActionsConfig()
        self._emit = emit
        self._clock = clock or epoch_ms
        self._actions: Dict[str, List[SecurityAction]] = {}
        self._lock = threading.Lock()
    
    async def dispatch(
        self,
        action_type: SecurityActionType,
        user_id: str,
        reason: str,
        ip: str = "unknown",
        metadata: Optional[Dict[str, Any]] = None,
        notify: bool = True,
    ) -> SecurityAction:
        """Record an action, emit its event and send its notification.
        
        Args:
            action_type: Remediation type
            user_id: Affected user
            reason: Human-readable reason
            ip: IP associated with the triggering activity
            metadata: Extra context stored on the action
            notify: Whether to send an email for this action
            
        Returns:
            The recorded SecurityAction
        """
        action = SecurityAction(
            type=SecurityActionType(action_type),
            user_id=user_id,
            reason=reason,
            timestamp=self._clock(),
            ip=ip or "unknown",
            metadata=metadata or {},
        )
        
        with self._lock:
            self._actions.setdefault(user_id, []).append(action)
        
        self._emit_event(action)
        
        if notify and self.config.send_email is not None:
            await self._notify(action)
        
        return action
    
    async def dispatch_breach(
        self,
        user_id: str,
        ip: str,
        attempts: int,
    ) -> List[SecurityAction]:
        """Run the failed-login breach sequence.
        
        In order: enable_2fa (if enforced), reset_password (if enforced),
        and always security_alert. Each is a separate action; with
        ``consolidate_breach_email`` only the security alert sends email.
        """
        consolidate = self.config.consolidate_breach_email
        reason = f"{attempts} failed login attempts"
        metadata = {"attempts": attempts, "trigger": "failed_login_threshold"}
        actions: List[SecurityAction] = []
        
        if self.config.enable_2fa_enforcement:
            actions.append(await self.dispatch(
                SecurityActionType.ENABLE_2FA,
                user_id,
                f"{reason}: two-factor authentication required",
                ip,
                metadata=dict(metadata),
                notify=not consolidate,
            ))
        
        if self.config.enable_password_reset_enforcement:
            actions.append(await self.dispatch(
                SecurityActionType.RESET_PASSWORD,
                user_id,
                f"{reason}: password reset required",
                ip,
                metadata=dict(metadata),
                notify=not consolidate,
            ))
        
        alert_metadata = dict(metadata)
        if consolidate:
            alert_metadata["consolidated_actions"] = [a.type.value for a in actions]
        actions.append(await self.dispatch(
            SecurityActionType.SECURITY_ALERT,
            user_id,
            reason,
            ip,
            metadata=alert_metadata,
        ))
        
        return actions
    
    def get_user_actions(self, user_id: str) -> List[SecurityAction]:
        """Copy of a user's action log, oldest first."""
        with self._lock:
            return [a.model_copy() for a in self._actions.get(user_id, [])]
    
    def clear_user_actions(self, user_id: str) -> int:
        """Drop a user's action log. Returns number of actions removed."""
        with self._lock:
            return len(self._actions.pop(user_id, []))
    
    def action_counts(self) -> Dict[str, int]:
        """Number of recorded actions per type."""
        with self._lock:
            counts = Counter(
                action.type.value
                for actions in self._actions.values()
                for action in actions
            )
        return dict(counts)
    
    def build_notification(self, action: SecurityAction) -> EmailNotification:
        """Map an action onto its email template and payload."""
        template = ACTION_TEMPLATES[action.type]
        data = NotificationData(
            user_name=action.user_id,
            reason=action.reason,
            ip=action.ip,
            timestamp=datetime.fromtimestamp(
                action.timestamp / 1000.0, tz=timezone.utc
            ).isoformat(),
            reset_url=(
                self.config.reset_url(action.user_id)
                if action.type == SecurityActionType.RESET_PASSWORD
                else None
            ),
            totp_uri=action.metadata.get("totp_uri"),
            backup_codes=action.metadata.get("backup_codes"),
        )
        return EmailNotification(
            to=self.config.resolve_email(action.user_id),
            subject=subject_for(action.type),
            template=template,
            data=data,
        )
    
    async def _notify(self, action: SecurityAction) -> None:
        notification: Optional[EmailNotification] = None
        try:
            notification = self.build_notification(action)
            result = self.config.send_email(notification)
            if inspect.isawaitable(result):
                await result
        except Exception as e:
            error = NotificationError(
                f"Failed to send notification: {e}",
                recipient=notification.to if notification else action.user_id,
                template=ACTION_TEMPLATES[action.type].value,
                details={"action_id": action.action_id, "user_id": action.user_id},
            )
            logger.error(error.message, extra=error.details, exc_info=True)
        finally:
            # Records the attempt, not delivery
            action.email_sent = True
    
    def _emit_event(self, action: SecurityAction) -> None:
        if self._emit is None:
            return
        try:
            self._emit(SecurityEvent(
                type=SecurityEventType.SECURITY_ACTION,
                user_id=action.user_id,
                ip=action.ip,
                description=action.reason,
                action=action,
                metadata={"action_type": action.type.value},
            ))
        except Exception:
            logger.exception(
                "Failed to emit security action event",
                extra={"user_id": action.user_id, "ip": action.ip, "stage": "dispatch"},
            )
