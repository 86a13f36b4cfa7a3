"""Select the notifier backend named by ``notifier.backend``."""

from __future__ import annotations

from typing import TYPE_CHECKING

from rapport.notifications.log import LogNotifier
from rapport.notifications.smtp import SmtpNotifier
from rapport.notifications.webhook import WebhookNotifier

if TYPE_CHECKING:
    from rapport.config.settings import RapportSettings
    from rapport.notifications.base import Notifier


def build_notifier(settings: RapportSettings) -> Notifier:
    cfg = settings.notifier
    if cfg.backend == "smtp":
        return SmtpNotifier(
            settings.smtp,
            recipient=cfg.recipient,
            timeout_seconds=cfg.timeout_seconds,
        )
    if cfg.backend == "webhook":
        return WebhookNotifier(
            settings.webhook,
            recipient=cfg.recipient,
            timeout_seconds=cfg.timeout_seconds,
        )
    if cfg.backend == "log":
        return LogNotifier(recipient=cfg.recipient)
    msg = f"Unknown notifier backend: {cfg.backend!r}"
    raise ValueError(msg)
