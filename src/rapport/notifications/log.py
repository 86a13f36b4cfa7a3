"""Log-only notifier for development and dry runs.

Behaves like a downstream system that honours idempotency keys: a key
it has already accepted is acknowledged again without a second
delivery.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from rapport.notifications.base import Notifier

if TYPE_CHECKING:
    from rapport.notifications.base import RenderedMessage

log = logging.getLogger(__name__)


class LogNotifier(Notifier):
    name = "log"

    def __init__(self, *, recipient: str = "") -> None:
        self._recipient = recipient
        self._lock = threading.Lock()
        self.delivered: list[tuple[str, RenderedMessage]] = []
        self._keys: set[str] = set()

    def send(self, message: RenderedMessage, idempotency_key: str) -> None:
        with self._lock:
            if idempotency_key in self._keys:
                log.info("Duplicate delivery %s ignored", idempotency_key)
                return
            self._keys.add(idempotency_key)
            self.delivered.append((idempotency_key, message))
        log.info(
            "REMINDER for %s: %s",
            self._recipient or "owner",
            message.subject,
            extra={
                "idempotency_key": idempotency_key,
                "reminder_type": message.reminder_type,
                "contact_email": message.contact_email,
            },
        )
