"""Notification templates - subjects and HTML bodies per action type."""

from jinja2 import DictLoader, Environment, select_autoescape

from authwatch.core.types import NotificationTemplate, SecurityActionType
from authwatch.data.schemas.notification import EmailNotification

SUBJECTS = {
    SecurityActionType.ENABLE_2FA: "Set Up Two-Factor Authentication",
    SecurityActionType.RESET_PASSWORD: "Password Reset Required",
    SecurityActionType.SECURITY_ALERT: "Security Alert: Suspicious Activity Detected",
    SecurityActionType.ACCOUNT_LOCKOUT: "Your Account Has Been Temporarily Locked",
}

_LAYOUT = """\
<div style="font-family: Arial, sans-serif; max-width: 600px; margin: 0 auto;">
  <div style="background: #f8f9fa; padding: 20px; border-radius: 8px;">
    <h2 style="margin: 0 0 20px 0;">{% block title %}{% endblock %}</h2>
    <p>Hello {{ data.user_name }},</p>
    {% block body %}{% endblock %}
    <p style="margin: 20px 0 0 0; color: #666; font-size: 14px;">
      If you have any questions, please contact our support team.
    </p>
  </div>
</div>
"""

_DETAILS = """\
<ul>
  <li><strong>Reason:</strong> {{ data.reason }}</li>
  <li><strong>IP Address:</strong> {{ data.ip }}</li>
  <li><strong>Time:</strong> {{ data.timestamp }}</li>
</ul>
"""

TEMPLATES = {
    "layout.html": _LAYOUT,
    "details.html": _DETAILS,
    NotificationTemplate.TWO_FACTOR_SETUP.value: """\
{% extends "layout.html" %}
{% block title %}Two-Factor Authentication Setup{% endblock %}
{% block body %}
<p>Two-factor authentication is now required for your account.</p>
{% include "details.html" %}
{% if data.totp_uri %}<p>Authenticator setup URI: <code>{{ data.totp_uri }}</code></p>{% endif %}
<h3>Your Backup Codes:</h3>
<div style="font-family: monospace;">
{% for code in data.backup_codes or [] %}<div>{{ code }}</div>{% else %}No backup codes provided{% endfor %}
</div>
<p><strong>Important:</strong> Store these backup codes in a safe place.</p>
{% endblock %}
""",
    NotificationTemplate.PASSWORD_RESET.value: """\
{% extends "layout.html" %}
{% block title %}Password Reset Required{% endblock %}
{% block body %}
<p>For your security, please reset your password.</p>
{% include "details.html" %}
{% if data.reset_url %}<p><a href="{{ data.reset_url }}">Reset Password</a></p>{% endif %}
<p>Your password will remain unchanged until you complete the reset.</p>
{% endblock %}
""",
    NotificationTemplate.SECURITY_ALERT.value: """\
{% extends "layout.html" %}
{% block title %}Security Alert{% endblock %}
{% block body %}
<p>We detected suspicious activity on your account:</p>
{% include "details.html" %}
<p>If this wasn't you, change your password and enable two-factor authentication.</p>
{% endblock %}
""",
    NotificationTemplate.ACCOUNT_LOCKOUT.value: """\
{% extends "layout.html" %}
{% block title %}Account Temporarily Locked{% endblock %}
{% block body %}
<p>Your account has been temporarily locked due to suspicious activity:</p>
{% include "details.html" %}
<p>Your account will be unlocked after a security review.</p>
{% endblock %}
""",
}

_environment = Environment(
    loader=DictLoader(TEMPLATES),
    autoescape=select_autoescape(default=True, default_for_string=True),
)


def subject_for(action_type: SecurityActionType) -> str:
    """Email subject for an action type."""
    return SUBJECTS[action_type]


def render_notification_html(notification: EmailNotification) -> str:
    """Render the HTML body for a notification."""
    template = _environment.get_template(notification.template.value)
    return template.render(data=notification.data, subject=notification.subject)
