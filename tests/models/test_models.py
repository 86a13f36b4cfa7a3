"""Tests for the frozen entity models."""

from __future__ import annotations

import dataclasses
from datetime import UTC, datetime, timedelta

import pytest

from rapport.core.types import EmailDirection, ReminderStatus, ReminderType, RunKind
from rapport.models import (
    RECORD_FIELDS,
    Contact,
    DispatchSummary,
    EmailEvent,
    EnrichmentSummary,
    MeetingEvent,
    Reminder,
    ReminderPayload,
    RunRecord,
    normalize_email,
    subject_key,
)

NOW = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)


def _email(direction=EmailDirection.RECEIVED, at=NOW, **kw) -> EmailEvent:
    return EmailEvent(
        contact_email=kw.pop("contact_email", "sarah@acme.io"),
        direction=direction,
        subject=kw.pop("subject", "Pricing"),
        occurred_at=at,
        **kw,
    )


# ---------------------------------------------------------------------------
# Helpers
# ---------------------------------------------------------------------------


class TestHelpers:
    def test_normalize_email(self):
        assert normalize_email("  Sarah@ACME.io ") == "sarah@acme.io"

    @pytest.mark.parametrize(
        "subject",
        ["Pricing", "Re: Pricing", "RE: re: pricing", "Fwd: RE[2]:  Pricing", "  pricing  "],
    )
    def test_subject_key_strips_prefixes(self, subject):
        assert subject_key(subject) == "pricing"

    def test_subject_key_none(self):
        assert subject_key(None) == ""

    def test_thread_key_prefers_thread_id(self):
        assert _email(thread_id="t1").thread_key == "t1"
        assert _email(subject="Re: Hello").thread_key == "hello"

    def test_meeting_occurred_at(self):
        m = MeetingEvent(contact_email="a@b.co", meeting_start=NOW, is_past=True)
        assert m.occurred_at == NOW


# ---------------------------------------------------------------------------
# Contact
# ---------------------------------------------------------------------------


class TestContact:
    def test_new_normalizes(self):
        c = Contact.new(" Mike@Vendor.COM", now=NOW, display_name="")
        assert c.email == "mike@vendor.com"
        assert c.display_name is None
        assert c.created_at == NOW

    def test_observe_received(self):
        c = Contact.new("sarah@acme.io", now=NOW)
        updated = c.observe(_email(contact_name="Sarah"), now=NOW)
        assert updated.last_received_at == NOW
        assert updated.last_activity_at == NOW
        assert updated.last_sent_at is None
        assert updated.display_name == "Sarah"

    def test_observe_sent(self):
        c = Contact.new("sarah@acme.io", now=NOW)
        updated = c.observe(_email(EmailDirection.SENT), now=NOW)
        assert updated.last_sent_at == NOW
        assert updated.last_received_at is None

    def test_observe_never_moves_backwards(self):
        c = Contact.new("sarah@acme.io", now=NOW).observe(_email(), now=NOW)
        older = c.observe(_email(at=NOW - timedelta(days=1)), now=NOW)
        assert older.last_received_at == NOW

    def test_observe_future_meeting_leaves_timestamps(self):
        c = Contact.new("mike@vendor.com", now=NOW)
        m = MeetingEvent(
            contact_email="mike@vendor.com",
            meeting_start=NOW + timedelta(days=1),
            is_past=False,
        )
        assert c.observe(m, now=NOW).last_meeting_at is None

    def test_observe_past_meeting(self):
        c = Contact.new("mike@vendor.com", now=NOW)
        m = MeetingEvent(contact_email="mike@vendor.com", meeting_start=NOW, is_past=True)
        updated = c.observe(m, now=NOW)
        assert updated.last_meeting_at == NOW
        assert updated.last_activity_at == NOW

    def test_merged_with_takes_latest_of_each(self):
        earlier = NOW - timedelta(hours=1)
        a = Contact(email="x@y.io", last_received_at=NOW, last_sent_at=None, updated_at=earlier)
        b = Contact(
            email="x@y.io",
            display_name="X",
            last_received_at=earlier,
            last_sent_at=earlier,
            updated_at=NOW,
        )
        merged = a.merged_with(b)
        assert merged.last_received_at == NOW
        assert merged.last_sent_at == earlier
        assert merged.display_name == "X"
        assert merged.updated_at == NOW

    def test_frozen(self):
        c = Contact.new("a@b.co", now=NOW)
        with pytest.raises(dataclasses.FrozenInstanceError):
            c.email = "other@b.co"  # type: ignore[misc]


# ---------------------------------------------------------------------------
# Reminder
# ---------------------------------------------------------------------------


class TestReminder:
    def _reminder(self) -> Reminder:
        return Reminder.new(
            contact_email="sarah@acme.io",
            contact_name="Sarah",
            reminder_type=ReminderType.EMAIL_RESPONSE,
            payload=ReminderPayload(
                subject="Pricing",
                preview="Can you send...",
                deep_link="https://mail/#all/t1",
                fallback_query='from:sarah@acme.io subject:"Pricing"',
            ),
            now=NOW,
        )

    def test_new_is_queued_and_due(self):
        r = self._reminder()
        assert r.status is ReminderStatus.QUEUED
        assert r.next_attempt_at == NOW
        assert r.attempt_count == 0
        assert r.sent_keys == ()
        assert r.is_active

    def test_priority_derived_from_type(self):
        assert self._reminder().priority == 1

    def test_key_for_attempt(self):
        r = self._reminder()
        assert r.key_for_attempt(3) == f"{r.id}-3"

    def test_record_has_exact_field_set(self):
        record = self._reminder().to_record()
        assert tuple(record) == RECORD_FIELDS

    def test_record_round_trip(self):
        r = dataclasses.replace(
            self._reminder(),
            status=ReminderStatus.SENT,
            sent_keys=("a-1",),
            sent_at=NOW,
        )
        assert Reminder.from_record(r.to_record()) == r

    def test_from_record_rejects_missing_fields(self):
        record = self._reminder().to_record()
        del record["sentKeys"]
        with pytest.raises(ValueError, match="sentKeys"):
            Reminder.from_record(record)


# ---------------------------------------------------------------------------
# Run summaries
# ---------------------------------------------------------------------------


class TestRunModels:
    def test_summary_counters(self):
        s = DispatchSummary(claimed=2, sent=1, failed=1)
        assert s.counters()["claimed"] == 2
        assert set(EnrichmentSummary().counters()) >= {"created", "replaced", "resolved"}

    def test_run_record_duration(self):
        rec = RunRecord(
            kind=RunKind.ENRICH,
            started_at=NOW,
            finished_at=NOW + timedelta(seconds=3),
        )
        assert rec.duration_seconds == 3.0
