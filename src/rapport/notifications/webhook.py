"""Webhook notifier: POSTs the reminder as JSON.

The receiving service is expected to de-duplicate on the
``Idempotency-Key`` header.  ``408``, ``429`` and ``5xx`` responses and
network errors are transient; any other ``4xx`` is permanent.
"""

from __future__ import annotations

import json
import logging
import urllib.error
import urllib.request
from typing import TYPE_CHECKING

from rapport.core.errors import PermanentSendError, TransientSendError
from rapport.notifications.base import Notifier

if TYPE_CHECKING:
    from rapport.config.settings import WebhookSettings
    from rapport.notifications.base import RenderedMessage

log = logging.getLogger(__name__)

_RETRYABLE_STATUS = frozenset({408, 425, 429})


class WebhookNotifier(Notifier):
    name = "webhook"

    def __init__(
        self,
        webhook: WebhookSettings,
        *,
        recipient: str = "",
        timeout_seconds: int = 30,
    ) -> None:
        self._url = webhook.url
        self._headers = dict(webhook.headers)
        self._recipient = recipient
        self._timeout = timeout_seconds

    def _body(self, message: RenderedMessage, idempotency_key: str) -> bytes:
        return json.dumps(
            {
                "idempotency_key": idempotency_key,
                "recipient": self._recipient or None,
                "reminder_type": message.reminder_type,
                "contact_email": message.contact_email,
                "contact_name": message.contact_name,
                "subject": message.subject,
                "body": message.body,
                "payload": message.payload,
            }
        ).encode("utf-8")

    def send(self, message: RenderedMessage, idempotency_key: str) -> None:
        req = urllib.request.Request(
            self._url,
            data=self._body(message, idempotency_key),
            headers={
                **self._headers,
                "Content-Type": "application/json",
                "Idempotency-Key": idempotency_key,
            },
            method="POST",
        )
        try:
            with urllib.request.urlopen(req, timeout=self._timeout) as resp:
                status = resp.status
        except urllib.error.HTTPError as exc:
            detail = f"webhook returned HTTP {exc.code}"
            if exc.code in _RETRYABLE_STATUS or exc.code >= 500:
                raise TransientSendError(detail) from exc
            raise PermanentSendError(detail) from exc
        except (urllib.error.URLError, TimeoutError, OSError) as exc:
            reason = getattr(exc, "reason", exc)
            raise TransientSendError(f"webhook unreachable: {reason}") from exc

        log.info(
            "Reminder posted to webhook (HTTP %s)",
            status,
            extra={"idempotency_key": idempotency_key, "reminder_type": message.reminder_type},
        )
