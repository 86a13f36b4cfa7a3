"""Reminder delivery: template rendering and notifier backends.

Public API::

    from rapport.notifications import build_notifier, TemplateRenderer

    notifier = build_notifier(settings)
    notifier.send(renderer.render(reminder), reminder.idempotency_key)
"""

from rapport.notifications.base import Notifier, RenderedMessage
from rapport.notifications.factory import build_notifier
from rapport.notifications.log import LogNotifier
from rapport.notifications.renderer import TemplateRenderer
from rapport.notifications.smtp import SmtpNotifier
from rapport.notifications.webhook import WebhookNotifier

__all__ = [
    "LogNotifier",
    "Notifier",
    "RenderedMessage",
    "SmtpNotifier",
    "TemplateRenderer",
    "WebhookNotifier",
    "build_notifier",
]
