"""Email sender implementations.

The dispatcher accepts any callable taking an EmailNotification and
returning None or an awaitable; provider SDKs plug in there. Senders
raise NotificationError on delivery failure; the dispatcher logs it
and carries on.

- LoggingEmailSender: console provider for development setups
- SmtpEmailSender: HTML + plain text over SMTP (STARTTLS by default)
- SesEmailSender: Amazon SES via boto3
"""

import asyncio
import logging
import os
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate, make_msgid
from typing import Any, List, Optional

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from authwatch.actions.templates import render_notification_html
from authwatch.common.exceptions import NotificationError
from authwatch.data.schemas.notification import EmailNotification

logger = logging.getLogger(__name__)


def render_notification_text(notification: EmailNotification) -> str:
    """Plain-text alternative to the HTML body."""
    data = notification.data
    lines = [
        f"Hello {data.user_name},",
        "",
        notification.subject,
        "",
        f"Reason: {data.reason}",
        f"IP Address: {data.ip}",
        f"Time: {data.timestamp}",
    ]
    if data.reset_url:
        lines.append(f"Reset your password: {data.reset_url}")
    if data.backup_codes:
        lines.append("Backup codes: " + ", ".join(data.backup_codes))
    return "\n".join(lines) + "\n"


def _failure(notification: EmailNotification, provider: str, error: Exception) -> NotificationError:
    return NotificationError(
        f"{provider} delivery failed: {error}",
        recipient=notification.to,
        template=notification.template.value,
        details={"provider": provider},
    )


class LoggingEmailSender:
    """Renders notifications and logs them instead of delivering."""
    
    def __init__(self, render_html: bool = True):
        self.render_html = render_html
        self.sent: List[EmailNotification] = []
    
    async def __call__(self, notification: EmailNotification) -> None:
        body = render_notification_html(notification) if self.render_html else ""
        self.sent.append(notification)
        logger.info(
            f"Email to {notification.to}: {notification.subject} "
            f"[{notification.template.value}, {len(body)} bytes]"
        )


class SmtpEmailSender:
    """Delivers notifications over SMTP.
    
    smtplib is blocking, so each send runs in a worker thread and one
    connection is opened per message.
    """
    
    def __init__(
        self,
        host: str,
        from_email: str,
        port: int = 587,
        username: Optional[str] = None,
        password: Optional[str] = None,
        use_tls: bool = True,
        from_name: Optional[str] = None,
        timeout: float = 30.0,
    ):
        """Initialize the sender.
        
        Args:
            host: SMTP server address
            from_email: Sender address
            port: SMTP server port
            username: SMTP username (login is skipped without credentials)
            password: SMTP password
            use_tls: Upgrade the connection with STARTTLS
            from_name: Display name for the From header
            timeout: Socket timeout in seconds
        """
        if not host:
            raise ValueError("SMTP host is required")
        self.host = host
        self.port = port
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.from_email = from_email
        self.from_name = from_name
        self.timeout = timeout
    
    @classmethod
    def from_env(cls) -> "SmtpEmailSender":
        """Build from AUTHWATCH_SMTP_* environment variables."""
        return cls(
            host=os.getenv("AUTHWATCH_SMTP_HOST", ""),
            from_email=os.getenv("AUTHWATCH_SMTP_FROM", "security@localhost"),
            port=int(os.getenv("AUTHWATCH_SMTP_PORT", "587")),
            username=os.getenv("AUTHWATCH_SMTP_USERNAME"),
            password=os.getenv("AUTHWATCH_SMTP_PASSWORD"),
            use_tls=os.getenv("AUTHWATCH_SMTP_USE_TLS", "true").lower() in ("1", "true", "yes", "on"),
            from_name=os.getenv("AUTHWATCH_SMTP_FROM_NAME"),
        )
    
    def build_message(self, notification: EmailNotification) -> MIMEMultipart:
        """MIME multipart/alternative message with text and HTML parts."""
        msg = MIMEMultipart("alternative")
        msg["Subject"] = notification.subject
        msg["From"] = f"{self.from_name} <{self.from_email}>" if self.from_name else self.from_email
        msg["To"] = notification.to
        msg["Date"] = formatdate(localtime=False)
        msg["Message-ID"] = make_msgid(domain=self.from_email.split("@")[-1])
        msg["X-Authwatch-Template"] = notification.template.value
        
        # Last part is the preferred one
        msg.attach(MIMEText(render_notification_text(notification), "plain", "utf-8"))
        msg.attach(MIMEText(render_notification_html(notification), "html", "utf-8"))
        return msg
    
    def _send(self, notification: EmailNotification) -> None:
        msg = self.build_message(notification)
        try:
            with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
                if self.use_tls:
                    smtp.starttls()
                if self.username and self.password:
                    smtp.login(self.username, self.password)
                smtp.sendmail(self.from_email, [notification.to], msg.as_string())
        except (smtplib.SMTPException, OSError) as e:
            raise _failure(notification, "smtp", e) from e
        
        logger.info(f"Email [{msg['Message-ID']}] sent to {notification.to} via SMTP")
    
    async def __call__(self, notification: EmailNotification) -> None:
        await asyncio.to_thread(self._send, notification)


class SesEmailSender:
    """Delivers notifications through Amazon SES."""
    
    def __init__(
        self,
        from_email: str,
        region: Optional[str] = None,
        aws_profile: Optional[str] = None,
        client: Optional[Any] = None,
    ):
        """Initialize the sender.
        
        Args:
            from_email: Verified SES sender identity
            region: AWS region (defaults to AWS_REGION or us-east-1)
            aws_profile: Optional AWS profile name
            client: Pre-built SES client
        """
        self.from_email = from_email
        self.region = region or os.environ.get("AWS_REGION", "us-east-1")
        
        if client is not None:
            self.ses = client
        elif aws_profile:
            session = boto3.Session(profile_name=aws_profile)
            self.ses = session.client("ses", region_name=self.region)
        else:
            self.ses = boto3.client("ses", region_name=self.region)
    
    def _send(self, notification: EmailNotification) -> None:
        try:
            response = self.ses.send_email(
                Source=self.from_email,
                Destination={"ToAddresses": [notification.to]},
                Message={
                    "Subject": {"Data": notification.subject, "Charset": "UTF-8"},
                    "Body": {
                        "Text": {"Data": render_notification_text(notification), "Charset": "UTF-8"},
                        "Html": {"Data": render_notification_html(notification), "Charset": "UTF-8"},
                    },
                },
            )
        except (ClientError, BotoCoreError) as e:
            raise _failure(notification, "ses", e) from e
        
        logger.info(f"Email [{response.get('MessageId')}] sent to {notification.to} via SES")
    
    async def __call__(self, notification: EmailNotification) -> None:
        await asyncio.to_thread(self._send, notification)
