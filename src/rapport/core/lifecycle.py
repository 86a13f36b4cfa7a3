"""Pure reminder lifecycle transitions shared by every store.

The stores decide *which* rows to touch and make the touch atomic;
this module decides *what* a claimed, finished or superseded reminder
looks like afterwards.  Keeping the arithmetic here means the
PostgreSQL and in-memory stores cannot drift apart on backoff or
attempt accounting.

Usage::

    policy = RetryPolicy()
    claimed = claim(reminder, owner="dispatch-1a2b", now=now, policy=policy)
    done = apply_outcome(claimed, DeliveryOutcome.ok(), now=now, policy=policy)
"""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import datetime, timedelta
from typing import TYPE_CHECKING

from rapport.core.state import assert_transition
from rapport.core.types import ReminderStatus
from rapport.logging.sanitize import sanitize_error

if TYPE_CHECKING:
    from rapport.models.reminder import DeliveryOutcome, Reminder

DEFAULT_BACKOFF_MINUTES: tuple[int, ...] = (5, 30, 240)
DEFAULT_LEASE_SECONDS = 600


@dataclass(frozen=True)
class RetryPolicy:
    """Lease length and the fixed backoff table.

    ``backoff[n - 1]`` is the delay after the *n*-th failed attempt.
    The attempt after the last table entry is the final one; failing it
    abandons the reminder, so ``max_attempts == len(backoff) + 1``.
    """

    backoff: tuple[timedelta, ...] = tuple(timedelta(minutes=m) for m in DEFAULT_BACKOFF_MINUTES)
    lease: timedelta = timedelta(seconds=DEFAULT_LEASE_SECONDS)

    @classmethod
    def from_minutes(
        cls,
        backoff_minutes: tuple[int, ...] | list[int],
        lease_seconds: int = DEFAULT_LEASE_SECONDS,
    ) -> RetryPolicy:
        return cls(
            backoff=tuple(timedelta(minutes=m) for m in backoff_minutes),
            lease=timedelta(seconds=lease_seconds),
        )

    @property
    def max_attempts(self) -> int:
        return len(self.backoff) + 1

    def backoff_for(self, attempt: int) -> timedelta | None:
        """Delay after failed attempt number *attempt*, or None to abandon."""
        if 1 <= attempt <= len(self.backoff):
            return self.backoff[attempt - 1]
        return None


# ---------------------------------------------------------------------------
# Eligibility
# ---------------------------------------------------------------------------


def is_due(reminder: Reminder, now: datetime) -> bool:
    """Queued/failed and past ``next_attempt_at``."""
    return (
        reminder.status in (ReminderStatus.QUEUED, ReminderStatus.FAILED)
        and reminder.next_attempt_at <= now
    )


def is_stale(reminder: Reminder, now: datetime) -> bool:
    """In flight under a lease that has already expired."""
    return (
        reminder.status is ReminderStatus.SENDING
        and reminder.lock_expires_at is not None
        and reminder.lock_expires_at < now
    )


def is_claimable(reminder: Reminder, now: datetime, policy: RetryPolicy) -> bool:
    if is_due(reminder, now):
        return True
    return is_stale(reminder, now) and reminder.attempt_count < policy.max_attempts


def is_stale_exhausted(reminder: Reminder, now: datetime, policy: RetryPolicy) -> bool:
    """Stale lease whose attempt budget is already spent."""
    return is_stale(reminder, now) and reminder.attempt_count >= policy.max_attempts


def claim_order(reminder: Reminder) -> tuple:
    """Sort key: priority ascending, then oldest-due first."""
    return (reminder.priority, reminder.next_attempt_at, reminder.created_at)


# ---------------------------------------------------------------------------
# Transitions
# ---------------------------------------------------------------------------


def claim(reminder: Reminder, *, owner: str, now: datetime, policy: RetryPolicy) -> Reminder:
    """Move *reminder* to ``sending`` under a fresh lease held by *owner*.

    A stale lease keeps its idempotency key: the interrupted attempt
    may already have reached the notifier, so the retry must present
    the same key for downstream de-duplication.
    """
    assert_transition(reminder.status, ReminderStatus.SENDING)
    attempt = reminder.attempt_count + 1
    if reminder.status is ReminderStatus.SENDING and reminder.idempotency_key:
        key = reminder.idempotency_key
    else:
        key = reminder.key_for_attempt(attempt)
    return replace(
        reminder,
        status=ReminderStatus.SENDING,
        lock_owner=owner,
        lock_expires_at=now + policy.lease,
        attempt_count=attempt,
        idempotency_key=key,
    )


def apply_outcome(
    reminder: Reminder,
    outcome: DeliveryOutcome,
    *,
    now: datetime,
    policy: RetryPolicy,
) -> Reminder:
    """Return the reminder after its current attempt finished with *outcome*."""
    if outcome.success:
        assert_transition(reminder.status, ReminderStatus.SENT)
        sent_keys = reminder.sent_keys
        if reminder.idempotency_key and reminder.idempotency_key not in sent_keys:
            sent_keys = (*sent_keys, reminder.idempotency_key)
        return replace(
            reminder,
            status=ReminderStatus.SENT,
            sent_at=now,
            sent_keys=sent_keys,
            last_error=None,
            lock_owner=None,
            lock_expires_at=None,
        )

    prefix = "permanent" if outcome.permanent else "transient"
    error = sanitize_error(f"{prefix}: {outcome.error or 'delivery failed'}")
    delay = None if outcome.permanent else policy.backoff_for(reminder.attempt_count)

    if delay is None:
        assert_transition(reminder.status, ReminderStatus.ABANDONED)
        return replace(
            reminder,
            status=ReminderStatus.ABANDONED,
            last_error=error,
            lock_owner=None,
            lock_expires_at=None,
        )

    assert_transition(reminder.status, ReminderStatus.FAILED)
    return replace(
        reminder,
        status=ReminderStatus.FAILED,
        next_attempt_at=now + delay,
        last_error=error,
        lock_owner=None,
        lock_expires_at=None,
    )


def supersede(
    reminder: Reminder,
    reason: str,
    *,
    status: ReminderStatus = ReminderStatus.ABANDONED,
) -> Reminder:
    """Terminate an active reminder regardless of its lease."""
    assert_transition(reminder.status, status)
    return replace(
        reminder,
        status=status,
        last_error=reason,
        lock_owner=None,
        lock_expires_at=None,
    )


def add_sent_key(reminder: Reminder, key: str) -> Reminder:
    if key in reminder.sent_keys:
        return reminder
    return replace(reminder, sent_keys=(*reminder.sent_keys, key))


def release(reminder: Reminder) -> Reminder:
    """Hand back a lease that expired before its attempt was made.

    The reminder stays ``sending`` under its expired lease with the
    attempt refunded, so the next claim treats it as stale and reuses
    the same idempotency key.
    """
    assert_transition(reminder.status, ReminderStatus.SENDING)
    return replace(
        reminder,
        lock_owner=None,
        attempt_count=max(reminder.attempt_count - 1, 0),
    )
