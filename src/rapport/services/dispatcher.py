"""Dispatcher: the ``dispatch()`` entry point.

One call is one poll cycle:

1. lease up to ``batch_size`` due reminders under a fresh owner id;
2. for each, in priority order, hand it back with its attempt refunded
   if the lease has already run out, re-read it and drop it if it is no
   longer ours;
3. if its idempotency key is already in ``sent_keys`` the previous
   attempt reached the notifier, so record success without sending;
4. otherwise render, send, and record the outcome.

Per-reminder failures are recorded on the reminder and never stop the
batch.  :class:`~rapport.core.errors.StoreUnavailable` is not caught:
it aborts the cycle and the next cycle starts over.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING
from uuid import uuid4

from jinja2 import TemplateError

from rapport.core.errors import SendError, StoreUnavailable
from rapport.core.types import ReminderStatus
from rapport.models.reminder import DeliveryOutcome
from rapport.models.run import DispatchSummary

if TYPE_CHECKING:
    from collections.abc import Callable

    from rapport.models.reminder import Reminder
    from rapport.notifications.base import Notifier
    from rapport.notifications.renderer import TemplateRenderer
    from rapport.repositories.base import ReminderStore

log = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(UTC)


class Dispatcher:
    def __init__(
        self,
        reminders: ReminderStore,
        notifier: Notifier,
        renderer: TemplateRenderer,
        *,
        batch_size: int = 10,
        clock: Callable[[], datetime] = utcnow,
        owner_prefix: str = "dispatch",
    ) -> None:
        self._reminders = reminders
        self._notifier = notifier
        self._renderer = renderer
        self._batch_size = batch_size
        self._clock = clock
        self._owner_prefix = owner_prefix

    def new_owner(self) -> str:
        return f"{self._owner_prefix}-{uuid4().hex[:12]}"

    def dispatch(self) -> DispatchSummary:
        """Run one poll cycle and return its counters."""
        summary = DispatchSummary()
        owner = self.new_owner()
        claimed = self._reminders.claim_due(self._clock(), self._batch_size, owner)
        summary.claimed = len(claimed)
        if claimed:
            log.info("Claimed %d reminders as %s", len(claimed), owner)
        for reminder in claimed:
            self._process(reminder, owner, summary)
        return summary

    # -- per reminder --------------------------------------------------------

    def _process(self, claimed: Reminder, owner: str, summary: DispatchSummary) -> None:
        extra = {"reminder_id": str(claimed.id), "contact_email": claimed.contact_email}

        if claimed.lock_expires_at is not None and self._clock() >= claimed.lock_expires_at:
            summary.lease_lost += 1
            log.warning("Lease on %s expired before send; releasing it", claimed.id, extra=extra)
            self._reminders.release(claimed.id, owner=owner)
            return

        current = self._reminders.find_by_id(claimed.id)
        if (
            current is None
            or current.status is not ReminderStatus.SENDING
            or current.lock_owner != owner
        ):
            summary.discarded += 1
            log.info("Reminder %s changed while queued for send; skipping", claimed.id, extra=extra)
            return

        key = current.idempotency_key or current.key_for_attempt(current.attempt_count)
        if key in current.sent_keys:
            log.info("Reminder %s already delivered as %s", current.id, key, extra=extra)
            result = self._reminders.record_outcome(
                current.id, DeliveryOutcome.ok(), owner=owner, now=self._clock()
            )
            if result is None:
                summary.discarded += 1
            else:
                summary.short_circuited += 1
            return

        outcome = self._deliver(current, key)
        result = self._reminders.record_outcome(current.id, outcome, owner=owner, now=self._clock())
        self._tally(result, summary, extra)

    def _deliver(self, reminder: Reminder, key: str) -> DeliveryOutcome:
        try:
            message = self._renderer.render(reminder)
        except TemplateError as exc:
            log.exception("Could not render reminder %s", reminder.id)
            return DeliveryOutcome.failure(f"render failed: {exc}", permanent=True)

        try:
            self._notifier.send(message, key)
        except SendError as exc:
            log.warning(
                "Delivery of %s failed (%s): %s",
                reminder.id,
                "transient" if exc.retryable else "permanent",
                exc.detail,
                extra={"reminder_id": str(reminder.id), "attempt": reminder.attempt_count},
            )
            return DeliveryOutcome.failure(exc.detail, permanent=not exc.retryable)
        except StoreUnavailable:
            raise
        except Exception as exc:
            log.exception("Notifier raised unexpectedly for %s", reminder.id)
            return DeliveryOutcome.failure(f"{type(exc).__name__}: {exc}")

        self._reminders.confirm_sent_key(reminder.id, key)
        return DeliveryOutcome.ok()

    @staticmethod
    def _tally(result: Reminder | None, summary: DispatchSummary, extra: dict) -> None:
        if result is None:
            summary.discarded += 1
            log.info("Outcome discarded; reminder was superseded or re-leased", extra=extra)
        elif result.status is ReminderStatus.SENT:
            summary.sent += 1
        elif result.status is ReminderStatus.FAILED:
            summary.failed += 1
        elif result.status is ReminderStatus.ABANDONED:
            summary.abandoned += 1
