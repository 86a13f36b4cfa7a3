"""Tests for the SMTP notifier's delivery and error classification."""

from __future__ import annotations

import smtplib
from email import message_from_string
from unittest.mock import MagicMock, patch

import pytest

from rapport.config.settings import SmtpSettings
from rapport.core.errors import PermanentSendError, TransientSendError
from rapport.notifications.base import RenderedMessage
from rapport.notifications.smtp import SmtpNotifier, message_id_for

SMTP = SmtpSettings(
    host="smtp.example.com",
    port=587,
    username="rapport",
    password="pw",
    use_tls=True,
    from_address="rapport@example.com",
)

MESSAGE = RenderedMessage(
    subject="Reply to Sarah",
    body="<p>Sarah is waiting</p>",
    reminder_type="email-response",
    contact_email="sarah@acme.io",
)


@pytest.fixture()
def server():
    with patch("rapport.notifications.smtp.smtplib.SMTP") as smtp_cls:
        instance = MagicMock()
        smtp_cls.return_value.__enter__.return_value = instance
        instance.smtp_cls = smtp_cls
        yield instance


def _notifier(**overrides) -> SmtpNotifier:
    return SmtpNotifier(SMTP, recipient="me@example.com", timeout_seconds=15, **overrides)


class TestSmtpDelivery:
    def test_sends_with_tls_and_login(self, server):
        _notifier().send(MESSAGE, "abc-1")

        server.smtp_cls.assert_called_once_with("smtp.example.com", 587, timeout=15)
        server.starttls.assert_called_once()
        server.login.assert_called_once_with("rapport", "pw")
        sender, recipients, raw = server.sendmail.call_args[0]
        assert sender == "rapport@example.com"
        assert recipients == ["me@example.com"]

        parsed = message_from_string(raw)
        assert parsed["Subject"] == "Reply to Sarah"
        assert parsed["Message-ID"] == "<abc-1@example.com>"
        assert parsed["X-Idempotency-Key"] == "abc-1"

    def test_no_login_without_username(self, server):
        settings = SmtpSettings(
            host="localhost",
            port=25,
            username="",
            password="",
            use_tls=False,
            from_address="r@example.com",
        )
        SmtpNotifier(settings, recipient="me@example.com").send(MESSAGE, "k")
        server.login.assert_not_called()
        server.starttls.assert_not_called()

    def test_message_id_for(self):
        assert message_id_for("k-1", "a@b.io") == "<k-1@b.io>"
        assert message_id_for("k-1", "") == "<k-1@rapport.local>"


class TestSmtpErrors:
    def test_recipient_refused_is_permanent(self, server):
        server.sendmail.side_effect = smtplib.SMTPRecipientsRefused({"me@example.com": (550, b"no")})
        with pytest.raises(PermanentSendError):
            _notifier().send(MESSAGE, "k")

    def test_5xx_is_permanent(self, server):
        server.sendmail.side_effect = smtplib.SMTPDataError(554, b"rejected")
        with pytest.raises(PermanentSendError, match="554"):
            _notifier().send(MESSAGE, "k")

    def test_4xx_is_transient(self, server):
        server.sendmail.side_effect = smtplib.SMTPDataError(451, b"try later")
        with pytest.raises(TransientSendError, match="451"):
            _notifier().send(MESSAGE, "k")

    def test_auth_failure_is_transient(self, server):
        server.login.side_effect = smtplib.SMTPAuthenticationError(535, b"bad creds")
        with pytest.raises(TransientSendError, match="authentication"):
            _notifier().send(MESSAGE, "k")

    def test_connection_error_is_transient(self):
        with patch(
            "rapport.notifications.smtp.smtplib.SMTP", side_effect=ConnectionRefusedError("refused")
        ):
            with pytest.raises(TransientSendError, match="unavailable"):
                _notifier().send(MESSAGE, "k")

    def test_timeout_is_transient(self, server):
        server.sendmail.side_effect = TimeoutError("timed out")
        with pytest.raises(TransientSendError) as exc_info:
            _notifier().send(MESSAGE, "k")
        assert exc_info.value.retryable
