"""Tests for the webhook notifier."""

from __future__ import annotations

import io
import json
import urllib.error
from unittest.mock import MagicMock, patch

import pytest

from rapport.config.settings import WebhookSettings
from rapport.core.errors import PermanentSendError, TransientSendError
from rapport.notifications.base import RenderedMessage
from rapport.notifications.log import LogNotifier
from rapport.notifications.webhook import WebhookNotifier

MESSAGE = RenderedMessage(
    subject="Reply to Sarah",
    body="<p>Sarah is waiting</p>",
    reminder_type="email-response",
    contact_email="sarah@acme.io",
    contact_name="Sarah",
    payload={"subject": "Pricing", "deep_link": "https://mail/#all/t1"},
)

HOOK = WebhookSettings(url="https://hooks.example.com/rapport", headers={"X-Team": "sales"})


def _http_error(code: int) -> urllib.error.HTTPError:
    return urllib.error.HTTPError(HOOK.url, code, "err", {}, io.BytesIO(b""))


@pytest.fixture()
def urlopen():
    with patch("rapport.notifications.webhook.urllib.request.urlopen") as mock:
        resp = MagicMock(status=202)
        mock.return_value.__enter__.return_value = resp
        yield mock


class TestWebhookDelivery:
    def test_posts_json_with_idempotency_header(self, urlopen):
        WebhookNotifier(HOOK, recipient="me@example.com", timeout_seconds=7).send(MESSAGE, "abc-1")

        req = urlopen.call_args[0][0]
        assert urlopen.call_args[1]["timeout"] == 7
        assert req.get_method() == "POST"
        assert req.get_header("Idempotency-key") == "abc-1"
        assert req.get_header("X-team") == "sales"
        assert req.get_header("Content-type") == "application/json"

        body = json.loads(req.data)
        assert body["idempotency_key"] == "abc-1"
        assert body["recipient"] == "me@example.com"
        assert body["payload"]["deep_link"] == "https://mail/#all/t1"


class TestWebhookErrors:
    @pytest.mark.parametrize("code", [408, 425, 429, 500, 502, 503])
    def test_retryable_status(self, urlopen, code):
        urlopen.side_effect = _http_error(code)
        with pytest.raises(TransientSendError, match=str(code)):
            WebhookNotifier(HOOK).send(MESSAGE, "k")

    @pytest.mark.parametrize("code", [400, 401, 404, 410, 422])
    def test_client_errors_are_permanent(self, urlopen, code):
        urlopen.side_effect = _http_error(code)
        with pytest.raises(PermanentSendError):
            WebhookNotifier(HOOK).send(MESSAGE, "k")

    def test_unreachable_is_transient(self, urlopen):
        urlopen.side_effect = urllib.error.URLError("Name or service not known")
        with pytest.raises(TransientSendError, match="unreachable"):
            WebhookNotifier(HOOK).send(MESSAGE, "k")

    def test_timeout_is_transient(self, urlopen):
        urlopen.side_effect = TimeoutError("timed out")
        with pytest.raises(TransientSendError):
            WebhookNotifier(HOOK).send(MESSAGE, "k")


class TestLogNotifier:
    def test_duplicate_key_delivered_once(self):
        notifier = LogNotifier(recipient="me@example.com")
        notifier.send(MESSAGE, "k-1")
        notifier.send(MESSAGE, "k-1")
        notifier.send(MESSAGE, "k-2")
        assert [k for k, _ in notifier.delivered] == ["k-1", "k-2"]
