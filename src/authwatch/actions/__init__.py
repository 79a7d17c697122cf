"""Security actions - dispatch, templates, email senders."""

from authwatch.actions.dispatcher import SecurityActionDispatcher
from authwatch.actions.email import LoggingEmailSender, SesEmailSender, SmtpEmailSender
from authwatch.actions.templates import render_notification_html, subject_for

__all__ = [
    "SecurityActionDispatcher",
    "LoggingEmailSender",
    "SmtpEmailSender",
    "SesEmailSender",
    "render_notification_html",
    "subject_for",
]
