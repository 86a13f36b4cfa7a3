"""Notifier interface and the rendered message it delivers."""

from __future__ import annotations

import abc
from dataclasses import dataclass, field
from typing import Any


@dataclass(frozen=True)
class RenderedMessage:
    """A reminder ready for delivery.

    ``payload`` carries the reminder's rendering data verbatim
    (``subject``, ``preview``, ``deep_link``, ``fallback_query``) for
    backends that forward structured data instead of the rendered body.
    """

    subject: str
    body: str
    reminder_type: str
    contact_email: str
    contact_name: str | None = None
    payload: dict[str, Any] = field(default_factory=dict)


class Notifier(abc.ABC):
    """Delivers one rendered reminder.

    Implementations must bound every network call with a timeout and
    signal failure by raising
    :class:`~rapport.core.errors.TransientSendError` (retry later) or
    :class:`~rapport.core.errors.PermanentSendError` (give up).  The
    *idempotency_key* must be forwarded so the receiving system can
    drop duplicates.
    """

    name: str = "notifier"

    @abc.abstractmethod
    def send(self, message: RenderedMessage, idempotency_key: str) -> None: ...
