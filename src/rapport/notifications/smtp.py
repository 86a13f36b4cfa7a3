"""SMTP notifier.

One connection per message, bounded by ``notifier.timeout_seconds``.
The idempotency key travels as the ``Message-ID`` (so mail stores that
de-duplicate on it drop a repeated attempt) and as ``X-Idempotency-Key``.
"""

from __future__ import annotations

import logging
import smtplib
from email.mime.multipart import MIMEMultipart
from email.mime.text import MIMEText
from email.utils import formatdate
from typing import TYPE_CHECKING

from rapport.core.errors import PermanentSendError, TransientSendError
from rapport.notifications.base import Notifier

if TYPE_CHECKING:
    from rapport.config.settings import SmtpSettings
    from rapport.notifications.base import RenderedMessage

log = logging.getLogger(__name__)

_PERMANENT_MIN_CODE = 500


def message_id_for(key: str, from_address: str) -> str:
    domain = from_address.rpartition("@")[2] or "rapport.local"
    return f"<{key}@{domain}>"


class SmtpNotifier(Notifier):
    name = "smtp"

    def __init__(self, smtp: SmtpSettings, *, recipient: str, timeout_seconds: int = 30) -> None:
        self._smtp = smtp
        self._recipient = recipient
        self._timeout = timeout_seconds

    def _build(self, message: RenderedMessage, idempotency_key: str) -> MIMEMultipart:
        msg = MIMEMultipart("alternative")
        msg["From"] = self._smtp.from_address
        msg["To"] = self._recipient
        msg["Subject"] = message.subject
        msg["Date"] = formatdate(localtime=False)
        msg["Message-ID"] = message_id_for(idempotency_key, self._smtp.from_address)
        msg["X-Idempotency-Key"] = idempotency_key
        msg.attach(MIMEText(message.body, "html", "utf-8"))
        return msg

    def send(self, message: RenderedMessage, idempotency_key: str) -> None:
        msg = self._build(message, idempotency_key)
        try:
            with smtplib.SMTP(self._smtp.host, self._smtp.port, timeout=self._timeout) as server:
                server.ehlo()
                if self._smtp.use_tls:
                    server.starttls()
                    server.ehlo()
                if self._smtp.username:
                    server.login(self._smtp.username, self._smtp.password)
                server.sendmail(self._smtp.from_address, [self._recipient], msg.as_string())
        except smtplib.SMTPRecipientsRefused as exc:
            raise PermanentSendError(f"recipient refused: {self._recipient}") from exc
        except smtplib.SMTPAuthenticationError as exc:
            # Credentials can be fixed without losing the reminder.
            raise TransientSendError(f"SMTP authentication failed ({exc.smtp_code})") from exc
        except smtplib.SMTPResponseException as exc:
            detail = f"SMTP {exc.smtp_code}: {_decode(exc.smtp_error)}"
            if exc.smtp_code >= _PERMANENT_MIN_CODE:
                raise PermanentSendError(detail) from exc
            raise TransientSendError(detail) from exc
        except (smtplib.SMTPException, OSError) as exc:
            raise TransientSendError(f"SMTP unavailable: {exc}") from exc

        log.info(
            "Reminder mailed to %s",
            self._recipient,
            extra={"idempotency_key": idempotency_key, "reminder_type": message.reminder_type},
        )


def _decode(value: bytes | str) -> str:
    if isinstance(value, bytes):
        return value.decode("utf-8", errors="replace")
    return value
