"""Overlapping dispatch and enrich runs against one shared store."""

from __future__ import annotations

import threading
import time
from collections import Counter
from datetime import timedelta

from rapport.core.types import EmailDirection, ReminderStatus, ReminderType
from rapport.models.events import EmailEvent
from rapport.models.reminder import DeliveryOutcome, Reminder, ReminderPayload
from rapport.notifications.base import Notifier
from rapport.notifications.renderer import TemplateRenderer
from rapport.services.dispatcher import Dispatcher
from rapport.services.enrichment import EnrichmentService
from rapport.services.resolver import PriorityResolver

WORKERS = 6


class CountingNotifier(Notifier):
    """Records every delivery; sleeps briefly so workers overlap."""

    name = "counting"

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.by_contact: Counter[str] = Counter()

    def send(self, message, idempotency_key):
        time.sleep(0.001)
        with self._lock:
            self.by_contact[message.contact_email] += 1


def _run_threads(target, count=WORKERS):
    barrier = threading.Barrier(count)
    errors = []

    def worker():
        barrier.wait()
        try:
            target()
        except Exception as exc:  # noqa: BLE001
            errors.append(exc)

    threads = [threading.Thread(target=worker) for _ in range(count)]
    for t in threads:
        t.start()
    for t in threads:
        t.join(timeout=10)
    assert errors == []


def _seed(store, clock, n):
    for i in range(n):
        store.insert(
            Reminder.new(
                contact_email=f"c{i}@acme.io",
                reminder_type=ReminderType.EMAIL_RESPONSE,
                payload=ReminderPayload(subject=f"Topic {i}"),
                now=clock() - timedelta(minutes=1),
            )
        )


class TestConcurrentDispatch:
    def test_each_reminder_delivered_once(self, reminder_store, clock):
        _seed(reminder_store, clock, 40)
        notifier = CountingNotifier()
        dispatcher = Dispatcher(reminder_store, notifier, TemplateRenderer(), batch_size=5, clock=clock)

        _run_threads(lambda: [dispatcher.dispatch() for _ in range(10)])

        assert len(notifier.by_contact) == 40
        assert set(notifier.by_contact.values()) == {1}
        counts = reminder_store.count_by_status()
        assert counts["sent"] == 40
        assert counts["sending"] == 0

    def test_claims_never_overlap(self, reminder_store, clock):
        _seed(reminder_store, clock, 30)
        claimed = []
        lock = threading.Lock()

        def claim():
            batch = reminder_store.claim_due(clock(), 4, f"w-{threading.get_ident()}")
            with lock:
                claimed.extend(r.id for r in batch)

        _run_threads(claim)

        assert len(claimed) == len(set(claimed)) == min(30, 4 * WORKERS)

    def test_sent_key_confirmed_once(self, reminder_store, clock):
        _seed(reminder_store, clock, 1)
        (reminder,) = reminder_store.claim_due(clock(), 1, "w1")
        results = []
        lock = threading.Lock()

        def confirm():
            ok = reminder_store.confirm_sent_key(reminder.id, f"{reminder.id}-1")
            with lock:
                results.append(ok)

        _run_threads(confirm)

        assert results.count(True) == 1
        assert reminder_store.find_by_id(reminder.id).sent_keys == (f"{reminder.id}-1",)

    def test_supersede_wins_over_inflight_outcome(self, reminder_store, clock):
        _seed(reminder_store, clock, 1)
        (leased,) = reminder_store.claim_due(clock(), 1, "w1")

        reminder_store.supersede(leased.id, "user-responded", now=clock(), status=ReminderStatus.RESOLVED)
        confirmed = reminder_store.confirm_sent_key(leased.id, leased.idempotency_key)
        late = reminder_store.record_outcome(leased.id, DeliveryOutcome.ok(), owner="w1", now=clock())

        assert confirmed is False
        assert late is None
        final = reminder_store.find_by_id(leased.id)
        assert final.status is ReminderStatus.RESOLVED
        assert final.sent_keys == ()
        assert final.sent_at is None


class TestConcurrentEnrich:
    def test_overlapping_runs_keep_one_active(self, settings, reminder_store, contact_store, clock):
        service = EnrichmentService(
            settings, reminder_store, contact_store, PriorityResolver(settings), clock=clock
        )
        event = EmailEvent(
            contact_email="sarah@acme.io",
            direction=EmailDirection.RECEIVED,
            subject="Pricing",
            occurred_at=clock(),
            thread_id="t1",
        )

        _run_threads(lambda: service.apply_event(event))

        active = [r for r in reminder_store.find_by_contact("sarah@acme.io") if r.is_active]
        assert len(active) == 1
