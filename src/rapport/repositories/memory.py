"""In-process stores for development and tests.

A single :class:`threading.Lock` per store serialises every operation,
which gives the same compare-and-set semantics the PostgreSQL backend
gets from row locks and conditional ``UPDATE``.
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

from rapport.core import lifecycle
from rapport.core.errors import ActiveReminderExists, DuplicateKeyError
from rapport.core.lifecycle import RetryPolicy
from rapport.core.state import log_transition
from rapport.core.types import ReminderStatus, SupersedeReason
from rapport.repositories.base import ContactStore, ReminderStore, RunHistoryStore

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from rapport.models.contact import Contact
    from rapport.models.reminder import DeliveryOutcome, Reminder
    from rapport.models.run import RunRecord

log = logging.getLogger(__name__)


class InMemoryReminderStore(ReminderStore):
    def __init__(self, policy: RetryPolicy | None = None) -> None:
        self._policy = policy or RetryPolicy()
        self._rows: dict[UUID, Reminder] = {}
        self._lock = threading.Lock()

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    # -- helpers (lock held) -------------------------------------------------

    def _active_for(self, contact_email: str) -> Reminder | None:
        for row in self._rows.values():
            if row.contact_email == contact_email and row.is_active:
                return row
        return None

    def _insert_locked(self, reminder: Reminder) -> Reminder:
        if reminder.id in self._rows:
            msg = f"Reminder {reminder.id} already exists"
            raise DuplicateKeyError(msg)
        if reminder.is_active and self._active_for(reminder.contact_email) is not None:
            raise ActiveReminderExists(reminder.contact_email)
        self._rows[reminder.id] = reminder
        return reminder

    # -- writes --------------------------------------------------------------

    def insert(self, reminder: Reminder) -> Reminder:
        with self._lock:
            return self._insert_locked(reminder)

    def replace(
        self,
        old_id: UUID,
        reminder: Reminder,
        *,
        reason: str = SupersedeReason.SUPERSEDED,
        now: datetime,
    ) -> Reminder:
        with self._lock:
            old = self._rows.get(old_id)
            superseded = None
            if old is not None and old.is_active:
                superseded = lifecycle.supersede(old, reason)
                self._rows[old_id] = superseded
            try:
                inserted = self._insert_locked(reminder)
            except DuplicateKeyError:
                if superseded is not None:
                    self._rows[old_id] = old
                raise
        if superseded is not None:
            log_transition(
                old_id,
                old.status,
                superseded.status,
                reason=reason,
                contact_email=old.contact_email,
            )
        return inserted

    def claim_due(self, now: datetime, limit: int, owner: str) -> list[Reminder]:
        policy = self._policy
        claimed: list[Reminder] = []
        expired: list[Reminder] = []
        with self._lock:
            for row in list(self._rows.values()):
                if lifecycle.is_stale_exhausted(row, now, policy):
                    dead = lifecycle.supersede(row, SupersedeReason.LEASE_EXPIRED)
                    self._rows[row.id] = dead
                    expired.append(row)

            eligible = sorted(
                (r for r in self._rows.values() if lifecycle.is_claimable(r, now, policy)),
                key=lifecycle.claim_order,
            )
            for row in eligible[: max(limit, 0)]:
                leased = lifecycle.claim(row, owner=owner, now=now, policy=policy)
                self._rows[row.id] = leased
                claimed.append(leased)

        for row in expired:
            log_transition(
                row.id,
                row.status,
                ReminderStatus.ABANDONED,
                reason=SupersedeReason.LEASE_EXPIRED,
                contact_email=row.contact_email,
            )
        return claimed

    def confirm_sent_key(self, reminder_id: UUID, key: str) -> bool:
        with self._lock:
            row = self._rows.get(reminder_id)
            if row is None or row.status is not ReminderStatus.SENDING or key in row.sent_keys:
                return False
            self._rows[reminder_id] = lifecycle.add_sent_key(row, key)
            return True

    def release(self, reminder_id: UUID, *, owner: str) -> Reminder | None:
        with self._lock:
            row = self._rows.get(reminder_id)
            if row is None or row.status is not ReminderStatus.SENDING or row.lock_owner != owner:
                return None
            released = lifecycle.release(row)
            self._rows[reminder_id] = released
        log.info(
            "Released unattempted lease on %s",
            reminder_id,
            extra={"reminder_id": str(reminder_id), "contact_email": row.contact_email},
        )
        return released

    def record_outcome(
        self,
        reminder_id: UUID,
        outcome: DeliveryOutcome,
        *,
        owner: str,
        now: datetime,
    ) -> Reminder | None:
        with self._lock:
            row = self._rows.get(reminder_id)
            if row is None or row.status is not ReminderStatus.SENDING or row.lock_owner != owner:
                return None
            updated = lifecycle.apply_outcome(row, outcome, now=now, policy=self._policy)
            self._rows[reminder_id] = updated
        log_transition(
            reminder_id,
            row.status,
            updated.status,
            reason=updated.last_error,
            contact_email=row.contact_email,
        )
        return updated

    def supersede(
        self,
        reminder_id: UUID,
        reason: str,
        *,
        now: datetime,
        status: ReminderStatus | None = None,
    ) -> Reminder | None:
        with self._lock:
            row = self._rows.get(reminder_id)
            if row is None or not row.is_active:
                return None
            updated = lifecycle.supersede(row, reason, status=status or ReminderStatus.ABANDONED)
            self._rows[reminder_id] = updated
        log_transition(
            reminder_id,
            row.status,
            updated.status,
            reason=reason,
            contact_email=row.contact_email,
        )
        return updated

    # -- reads ---------------------------------------------------------------

    def find_by_id(self, reminder_id: UUID) -> Reminder | None:
        with self._lock:
            return self._rows.get(reminder_id)

    def find_active_by_contact(self, contact_email: str) -> Reminder | None:
        with self._lock:
            return self._active_for(contact_email)

    def find_by_contact(self, contact_email: str) -> list[Reminder]:
        with self._lock:
            rows = [r for r in self._rows.values() if r.contact_email == contact_email]
        return sorted(rows, key=lambda r: r.created_at)

    def find_by_status(self, status: ReminderStatus, limit: int = 100) -> list[Reminder]:
        with self._lock:
            rows = [r for r in self._rows.values() if r.status is status]
        return sorted(rows, key=lambda r: r.created_at, reverse=True)[:limit]

    def find_due(self, now: datetime, limit: int = 100) -> list[Reminder]:
        with self._lock:
            rows = [r for r in self._rows.values() if lifecycle.is_claimable(r, now, self._policy)]
        return sorted(rows, key=lifecycle.claim_order)[:limit]

    def find_all(self) -> list[Reminder]:
        with self._lock:
            return sorted(self._rows.values(), key=lambda r: r.created_at)

    def count_by_status(self) -> dict[str, int]:
        counts = {status.value: 0 for status in ReminderStatus}
        with self._lock:
            for row in self._rows.values():
                counts[row.status.value] += 1
        return counts


class InMemoryContactStore(ContactStore):
    def __init__(self) -> None:
        self._rows: dict[str, Contact] = {}
        self._lock = threading.Lock()

    def get(self, email: str) -> Contact | None:
        with self._lock:
            return self._rows.get(email)

    def upsert(self, contact: Contact) -> Contact:
        with self._lock:
            existing = self._rows.get(contact.email)
            merged = contact if existing is None else existing.merged_with(contact)
            self._rows[contact.email] = merged
            return merged

    def count(self) -> int:
        with self._lock:
            return len(self._rows)


class InMemoryRunHistoryStore(RunHistoryStore):
    def __init__(self) -> None:
        self._records: list[RunRecord] = []
        self._lock = threading.Lock()

    def append(self, record: RunRecord) -> None:
        with self._lock:
            self._records.append(record)

    def recent(self, limit: int = 20) -> list[RunRecord]:
        with self._lock:
            return list(reversed(self._records[-limit:])) if limit > 0 else []
