"""Tests for the raw-record event normalizer."""

from __future__ import annotations

from datetime import UTC, datetime, timedelta

import pytest

from rapport.config.settings import OwnerSettings
from rapport.core.types import EmailDirection
from rapport.sources.normalizer import EventFormatError, EventNormalizer, parse_timestamp

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)
OWNER = OwnerSettings(addresses=("me@example.com",), name="Me", internal_domains=("example.com",))


@pytest.fixture()
def normalizer() -> EventNormalizer:
    return EventNormalizer(OWNER, clock=lambda: NOW, meeting_lookback_days=14, preview_length=10)


# ---------------------------------------------------------------------------
# parse_timestamp
# ---------------------------------------------------------------------------


class TestParseTimestamp:
    def test_zulu(self):
        assert parse_timestamp("2026-03-01T15:00:00Z") == datetime(2026, 3, 1, 15, tzinfo=UTC)

    def test_offset_converted_to_utc(self):
        assert parse_timestamp("2026-03-01T17:00:00+02:00") == datetime(2026, 3, 1, 15, tzinfo=UTC)

    def test_naive_assumed_utc(self):
        assert parse_timestamp("2026-03-01T15:00:00").tzinfo is UTC

    def test_google_datetime_object(self):
        assert parse_timestamp({"dateTime": "2026-03-01T15:00:00Z"}).hour == 15

    @pytest.mark.parametrize("value", [None, "", "yesterday", 42])
    def test_invalid(self, value):
        with pytest.raises(EventFormatError):
            parse_timestamp(value)


# ---------------------------------------------------------------------------
# Messages
# ---------------------------------------------------------------------------


class TestFromMessage:
    def test_received(self, normalizer):
        (event,) = normalizer.from_message(
            {
                "id": "m1",
                "threadId": "t1",
                "from": "Sarah Chen <Sarah@Acme.io>",
                "to": ["me@example.com"],
                "subject": "Pricing",
                "date": "2026-03-02T08:00:00Z",
                "snippet": "Could you send the numbers?",
            }
        )
        assert event.direction is EmailDirection.RECEIVED
        assert event.contact_email == "sarah@acme.io"
        assert event.contact_name == "Sarah Chen"
        assert event.thread_id == "t1"
        assert event.snippet == "Could you "
        assert event.message_id == "m1"

    def test_sent_one_event_per_external_recipient(self, normalizer):
        events = normalizer.from_message(
            {
                "from": "me@example.com",
                "to": ["Sarah <sarah@acme.io>, me@example.com"],
                "cc": ["mike@vendor.com", "sarah@acme.io"],
                "subject": "Re: Pricing",
                "date": "2026-03-02T08:30:00Z",
            }
        )
        assert [e.contact_email for e in events] == ["sarah@acme.io", "mike@vendor.com"]
        assert all(e.direction is EmailDirection.SENT for e in events)
        assert events[0].contact_name == "Sarah"

    def test_to_as_plain_string(self, normalizer):
        events = normalizer.from_message(
            {"from": "me@example.com", "to": "sarah@acme.io", "date": "2026-03-02T08:30:00Z"}
        )
        assert [e.contact_email for e in events] == ["sarah@acme.io"]

    def test_missing_sender(self, normalizer):
        with pytest.raises(EventFormatError, match="no sender"):
            normalizer.from_message({"id": "m1", "date": "2026-03-02T08:00:00Z"})

    def test_missing_date(self, normalizer):
        with pytest.raises(EventFormatError):
            normalizer.from_message({"from": "sarah@acme.io"})


# ---------------------------------------------------------------------------
# Calendar
# ---------------------------------------------------------------------------


def _calendar(start: datetime, attendees: list[dict]) -> dict:
    return {
        "id": "evt1",
        "summary": "Intro call",
        "start": {"dateTime": start.isoformat()},
        "htmlLink": "https://calendar/evt1",
        "attendees": attendees,
    }


class TestFromCalendarEvent:
    def test_past_meeting_external_attendees(self, normalizer):
        events = normalizer.from_calendar_event(
            _calendar(
                NOW - timedelta(hours=3),
                [
                    {"email": "me@example.com", "self": True},
                    {"email": "colleague@example.com"},
                    {"email": "Mike@Vendor.com", "displayName": "Mike"},
                    {"email": "ann@vendor.com", "responseStatus": "accepted"},
                ],
            )
        )
        assert [e.contact_email for e in events] == ["mike@vendor.com", "ann@vendor.com"]
        assert events[0].is_past
        assert events[0].external_participants == ("mike@vendor.com", "ann@vendor.com")
        assert events[0].title == "Intro call"
        assert events[0].link == "https://calendar/evt1"
        assert events[0].contact_name == "Mike"

    def test_declined_attendee_skipped(self, normalizer):
        events = normalizer.from_calendar_event(
            _calendar(NOW - timedelta(hours=1), [{"email": "x@vendor.com", "responseStatus": "declined"}])
        )
        assert events == []

    def test_future_meeting_not_past(self, normalizer):
        (event,) = normalizer.from_calendar_event(
            _calendar(NOW + timedelta(days=1), [{"email": "mike@vendor.com"}])
        )
        assert not event.is_past

    def test_outside_lookback_window(self, normalizer):
        assert (
            normalizer.from_calendar_event(
                _calendar(NOW - timedelta(days=15), [{"email": "mike@vendor.com"}])
            )
            == []
        )

    def test_internal_only(self, normalizer):
        assert (
            normalizer.from_calendar_event(
                _calendar(NOW - timedelta(hours=1), [{"email": "a@sub.example.com"}])
            )
            == []
        )

    def test_missing_start(self, normalizer):
        with pytest.raises(EventFormatError):
            normalizer.from_calendar_event({"id": "evt1", "attendees": []})

    @pytest.mark.parametrize("attendee", ["mike@vendor.com", None, 7, {"email": 7}])
    def test_malformed_attendee(self, normalizer, attendee):
        raw = _calendar(NOW - timedelta(hours=1), [{"email": "ana@acme.io"}, attendee])
        with pytest.raises(EventFormatError, match="malformed attendee"):
            normalizer.from_calendar_event(raw)

    def test_attendees_not_a_list(self, normalizer):
        raw = dict(_calendar(NOW - timedelta(hours=1), []), attendees="mike@vendor.com")
        with pytest.raises(EventFormatError, match="non-list"):
            normalizer.from_calendar_event(raw)
