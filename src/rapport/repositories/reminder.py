"""Reminder repository (PostgreSQL)."""

from __future__ import annotations

import logging
from contextlib import contextmanager
from typing import TYPE_CHECKING

import psycopg
from psycopg import errors as pg_errors
from pypgkit import BaseRepository, Database

from rapport.core import lifecycle
from rapport.core.errors import ActiveReminderExists, DuplicateKeyError, StoreUnavailable
from rapport.core.lifecycle import RetryPolicy
from rapport.core.state import log_transition
from rapport.core.types import ReminderStatus, ReminderType, SupersedeReason
from rapport.db.unit_of_work import UnitOfWork
from rapport.models.reminder import Reminder, ReminderPayload
from rapport.repositories.base import ReminderStore

if TYPE_CHECKING:
    from collections.abc import Iterator
    from datetime import datetime
    from uuid import UUID

    from rapport.models.reminder import DeliveryOutcome

log = logging.getLogger(__name__)

ACTIVE_INDEX = "reminders_one_active_per_contact"

_ACTIVE = (
    ReminderStatus.QUEUED.value,
    ReminderStatus.SENDING.value,
    ReminderStatus.FAILED.value,
)


@contextmanager
def translate_errors(contact_email: str | None = None) -> Iterator[None]:
    """Map driver errors onto the store error hierarchy."""
    try:
        yield
    except pg_errors.UniqueViolation as exc:
        constraint = getattr(exc.diag, "constraint_name", None)
        if constraint == ACTIVE_INDEX and contact_email:
            raise ActiveReminderExists(contact_email) from exc
        raise DuplicateKeyError(str(exc)) from exc
    except (psycopg.OperationalError, psycopg.InterfaceError) as exc:
        raise StoreUnavailable(str(exc)) from exc


class ReminderRepository(BaseRepository[Reminder], ReminderStore):
    table_name = "reminders"
    primary_key = "id"

    def __init__(self, db: Database, policy: RetryPolicy | None = None) -> None:
        super().__init__(db)
        self._database = db
        self._policy = policy or RetryPolicy()

    @property
    def policy(self) -> RetryPolicy:
        return self._policy

    def _row_to_entity(self, row: dict) -> Reminder:
        return Reminder(
            id=row["id"],
            contact_email=row["contact_email"],
            contact_name=row.get("contact_name"),
            type=ReminderType(row["type"]),
            payload=ReminderPayload(
                subject=row.get("subject") or "",
                preview=row.get("preview") or "",
                deep_link=row.get("deep_link") or "",
                fallback_query=row.get("fallback_query") or "",
            ),
            status=ReminderStatus(row["status"]),
            next_attempt_at=row["next_attempt_at"],
            lock_owner=row.get("lock_owner"),
            lock_expires_at=row.get("lock_expires_at"),
            attempt_count=row.get("attempt_count", 0),
            last_error=row.get("last_error"),
            idempotency_key=row.get("idempotency_key"),
            sent_keys=tuple(row.get("sent_keys") or ()),
            created_at=row["created_at"],
            sent_at=row.get("sent_at"),
        )

    def _entity_to_row(self, entity: Reminder) -> dict:
        return {
            "id": entity.id,
            "contact_email": entity.contact_email,
            "contact_name": entity.contact_name,
            "type": entity.type.value,
            "priority": entity.priority,
            "status": entity.status.value,
            "next_attempt_at": entity.next_attempt_at,
            "lock_owner": entity.lock_owner,
            "lock_expires_at": entity.lock_expires_at,
            "attempt_count": entity.attempt_count,
            "last_error": entity.last_error,
            "idempotency_key": entity.idempotency_key,
            "sent_keys": list(entity.sent_keys),
            "subject": entity.payload.subject,
            "preview": entity.payload.preview,
            "deep_link": entity.payload.deep_link,
            "fallback_query": entity.payload.fallback_query,
            "created_at": entity.created_at,
            "sent_at": entity.sent_at,
        }

    @staticmethod
    def _mutable_columns(entity: Reminder) -> dict:
        return {
            "status": entity.status.value,
            "next_attempt_at": entity.next_attempt_at,
            "lock_owner": entity.lock_owner,
            "lock_expires_at": entity.lock_expires_at,
            "attempt_count": entity.attempt_count,
            "last_error": entity.last_error,
            "idempotency_key": entity.idempotency_key,
            "sent_keys": list(entity.sent_keys),
            "sent_at": entity.sent_at,
        }

    def _lock_row(self, uow: UnitOfWork, reminder_id: UUID) -> Reminder | None:
        row = uow.fetch_one("SELECT * FROM reminders WHERE id = %s FOR UPDATE", (reminder_id,))
        return self._row_to_entity(row) if row else None

    # -- writes --------------------------------------------------------------

    def insert(self, reminder: Reminder) -> Reminder:
        with translate_errors(reminder.contact_email), UnitOfWork(self._database) as uow:
            row = uow.insert("reminders", self._entity_to_row(reminder))
        return self._row_to_entity(row)

    def replace(
        self,
        old_id: UUID,
        reminder: Reminder,
        *,
        reason: str = SupersedeReason.SUPERSEDED,
        now: datetime,
    ) -> Reminder:
        """Supersede *old_id* and insert *reminder* on one transaction.

        The old row is locked first so a concurrent dispatcher cannot
        record an outcome between the two statements.
        """
        superseded = None
        with translate_errors(reminder.contact_email), UnitOfWork(self._database) as uow:
            old = self._lock_row(uow, old_id)
            if old is not None and old.is_active:
                superseded = lifecycle.supersede(old, reason)
                uow.update_where("reminders", self._mutable_columns(superseded), {"id": old_id})
            row = uow.insert("reminders", self._entity_to_row(reminder))
        if superseded is not None:
            log_transition(
                old_id,
                old.status,
                superseded.status,
                reason=reason,
                contact_email=old.contact_email,
            )
        return self._row_to_entity(row)

    def claim_due(self, now: datetime, limit: int, owner: str) -> list[Reminder]:
        """Lease eligible reminders with ``FOR UPDATE SKIP LOCKED``.

        Stale leases whose attempt budget is spent are abandoned first
        so they never reach the claim query.  A stale lease that is
        re-claimed keeps its idempotency key.
        """
        policy = self._policy
        with translate_errors():
            expired_rows = self._database.fetch_all(
                "UPDATE reminders "
                "SET status = %s, last_error = %s, "
                "    lock_owner = NULL, lock_expires_at = NULL "
                "WHERE status = %s "
                "  AND lock_expires_at < %s "
                "  AND attempt_count >= %s "
                "RETURNING *",
                (
                    ReminderStatus.ABANDONED.value,
                    SupersedeReason.LEASE_EXPIRED.value,
                    ReminderStatus.SENDING.value,
                    now,
                    policy.max_attempts,
                ),
                as_dict=True,
            )
            for row in expired_rows:
                log_transition(
                    row["id"],
                    ReminderStatus.SENDING,
                    ReminderStatus.ABANDONED,
                    reason=SupersedeReason.LEASE_EXPIRED,
                    contact_email=row["contact_email"],
                )

            if limit <= 0:
                return []

            rows = self._database.fetch_all(
                "WITH due AS ("
                "  SELECT id FROM reminders "
                "  WHERE (status IN (%s, %s) AND next_attempt_at <= %s) "
                "     OR (status = %s AND lock_expires_at < %s AND attempt_count < %s) "
                "  ORDER BY priority, next_attempt_at, created_at "
                "  LIMIT %s "
                "  FOR UPDATE SKIP LOCKED"
                ") "
                "UPDATE reminders r "
                "SET status = %s, lock_owner = %s, lock_expires_at = %s, "
                "    attempt_count = r.attempt_count + 1, "
                "    idempotency_key = CASE "
                "        WHEN r.status = %s AND r.idempotency_key IS NOT NULL "
                "        THEN r.idempotency_key "
                "        ELSE r.id::text || '-' || (r.attempt_count + 1)::text "
                "    END "
                "FROM due WHERE r.id = due.id "
                "RETURNING r.*",
                (
                    ReminderStatus.QUEUED.value,
                    ReminderStatus.FAILED.value,
                    now,
                    ReminderStatus.SENDING.value,
                    now,
                    policy.max_attempts,
                    limit,
                    ReminderStatus.SENDING.value,
                    owner,
                    now + policy.lease,
                    ReminderStatus.SENDING.value,
                ),
                as_dict=True,
            )
        claimed = [self._row_to_entity(r) for r in rows]
        return sorted(claimed, key=lifecycle.claim_order)

    def confirm_sent_key(self, reminder_id: UUID, key: str) -> bool:
        with translate_errors():
            row = self._database.fetch_one(
                "UPDATE reminders "
                "SET sent_keys = array_append(sent_keys, %s) "
                "WHERE id = %s AND status = %s AND NOT (%s = ANY(sent_keys)) "
                "RETURNING id",
                (key, reminder_id, ReminderStatus.SENDING.value, key),
                as_dict=True,
            )
        return row is not None

    def release(self, reminder_id: UUID, *, owner: str) -> Reminder | None:
        with translate_errors(), UnitOfWork(self._database) as uow:
            current = self._lock_row(uow, reminder_id)
            if (
                current is None
                or current.status is not ReminderStatus.SENDING
                or current.lock_owner != owner
            ):
                return None
            released = lifecycle.release(current)
            row = uow.update_where(
                "reminders",
                self._mutable_columns(released),
                {"id": reminder_id, "status": ReminderStatus.SENDING.value, "lock_owner": owner},
            )
        if row is None:
            return None
        log.info(
            "Released unattempted lease on %s",
            reminder_id,
            extra={"reminder_id": str(reminder_id), "contact_email": current.contact_email},
        )
        return self._row_to_entity(row)

    def record_outcome(
        self,
        reminder_id: UUID,
        outcome: DeliveryOutcome,
        *,
        owner: str,
        now: datetime,
    ) -> Reminder | None:
        with translate_errors(), UnitOfWork(self._database) as uow:
            current = self._lock_row(uow, reminder_id)
            if (
                current is None
                or current.status is not ReminderStatus.SENDING
                or current.lock_owner != owner
            ):
                return None
            updated = lifecycle.apply_outcome(current, outcome, now=now, policy=self._policy)
            row = uow.update_where(
                "reminders",
                self._mutable_columns(updated),
                {"id": reminder_id, "status": ReminderStatus.SENDING.value, "lock_owner": owner},
            )
        if row is None:
            return None
        log_transition(
            reminder_id,
            current.status,
            updated.status,
            reason=updated.last_error,
            contact_email=current.contact_email,
        )
        return self._row_to_entity(row)

    def supersede(
        self,
        reminder_id: UUID,
        reason: str,
        *,
        now: datetime,
        status: ReminderStatus | None = None,
    ) -> Reminder | None:
        with translate_errors(), UnitOfWork(self._database) as uow:
            current = self._lock_row(uow, reminder_id)
            if current is None or not current.is_active:
                return None
            updated = lifecycle.supersede(
                current, reason, status=status or ReminderStatus.ABANDONED
            )
            row = uow.update_where(
                "reminders", self._mutable_columns(updated), {"id": reminder_id}
            )
        log_transition(
            reminder_id,
            current.status,
            updated.status,
            reason=reason,
            contact_email=current.contact_email,
        )
        return self._row_to_entity(row) if row else None

    # -- reads ---------------------------------------------------------------

    def find_by_id(self, reminder_id: UUID) -> Reminder | None:
        with translate_errors():
            row = self._database.fetch_one(
                "SELECT * FROM reminders WHERE id = %s",
                (reminder_id,),
                as_dict=True,
            )
        return self._row_to_entity(row) if row else None

    def find_active_by_contact(self, contact_email: str) -> Reminder | None:
        with translate_errors():
            row = self._database.fetch_one(
                "SELECT * FROM reminders WHERE contact_email = %s AND status IN (%s, %s, %s)",
                (contact_email, *_ACTIVE),
                as_dict=True,
            )
        return self._row_to_entity(row) if row else None

    def find_by_contact(self, contact_email: str) -> list[Reminder]:
        with translate_errors():
            rows = self._database.fetch_all(
                "SELECT * FROM reminders WHERE contact_email = %s ORDER BY created_at",
                (contact_email,),
                as_dict=True,
            )
        return [self._row_to_entity(r) for r in rows]

    def find_by_status(self, status: ReminderStatus, limit: int = 100) -> list[Reminder]:
        with translate_errors():
            rows = self._database.fetch_all(
                "SELECT * FROM reminders WHERE status = %s ORDER BY created_at DESC LIMIT %s",
                (status.value, limit),
                as_dict=True,
            )
        return [self._row_to_entity(r) for r in rows]

    def find_due(self, now: datetime, limit: int = 100) -> list[Reminder]:
        with translate_errors():
            rows = self._database.fetch_all(
                "SELECT * FROM reminders "
                "WHERE (status IN (%s, %s) AND next_attempt_at <= %s) "
                "   OR (status = %s AND lock_expires_at < %s AND attempt_count < %s) "
                "ORDER BY priority, next_attempt_at, created_at "
                "LIMIT %s",
                (
                    ReminderStatus.QUEUED.value,
                    ReminderStatus.FAILED.value,
                    now,
                    ReminderStatus.SENDING.value,
                    now,
                    self._policy.max_attempts,
                    limit,
                ),
                as_dict=True,
            )
        return [self._row_to_entity(r) for r in rows]

    def count_by_status(self) -> dict[str, int]:
        with translate_errors():
            rows = self._database.fetch_all(
                "SELECT status, COUNT(*) AS n FROM reminders GROUP BY status",
                as_dict=True,
            )
        counts = {status.value: 0 for status in ReminderStatus}
        for row in rows:
            counts[row["status"]] = int(row["n"])
        return counts
