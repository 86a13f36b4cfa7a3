"""Abstract store interfaces shared by the PostgreSQL and in-memory backends.

Every operation that changes a reminder's status is an atomic
conditional update: the caller states what it expects the row to look
like (status, lock owner) and the store applies the change only if
that still holds.  Losing such a race is not an error; the operation
returns ``None``, ``False`` or an empty list.

Both backends are constructed with the same immutable
:class:`~rapport.core.lifecycle.RetryPolicy` and delegate the
arithmetic of a transition to :mod:`rapport.core.lifecycle`, so their
observable behaviour is identical.
"""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from datetime import datetime
    from uuid import UUID

    from rapport.core.types import ReminderStatus
    from rapport.models.contact import Contact
    from rapport.models.reminder import DeliveryOutcome, Reminder
    from rapport.models.run import RunRecord


class ReminderStore(abc.ABC):
    """Durable reminder table with lease-based claiming."""

    # -- writes --------------------------------------------------------------

    @abc.abstractmethod
    def insert(self, reminder: Reminder) -> Reminder:
        """Insert a new reminder.

        Raises
        ------
        DuplicateKeyError
            A reminder with the same id exists.
        ActiveReminderExists
            The contact already has an active reminder.

        """

    @abc.abstractmethod
    def replace(
        self,
        old_id: UUID,
        reminder: Reminder,
        *,
        reason: str,
        now: datetime,
    ) -> Reminder:
        """Supersede *old_id* (if still active) and insert *reminder* atomically."""

    @abc.abstractmethod
    def claim_due(self, now: datetime, limit: int, owner: str) -> list[Reminder]:
        """Lease up to *limit* eligible reminders to *owner*.

        Returns the claimed reminders ordered by priority, then
        ``next_attempt_at``.
        """

    @abc.abstractmethod
    def confirm_sent_key(self, reminder_id: UUID, key: str) -> bool:
        """Append *key* to ``sent_keys`` unless already present.

        Only a reminder still in ``sending`` accepts a key, whoever holds
        the lease; terminal rows are never touched.
        """

    @abc.abstractmethod
    def release(self, reminder_id: UUID, *, owner: str) -> Reminder | None:
        """Refund the attempt of a lease *owner* lost before sending.

        Returns ``None`` if the reminder is no longer leased to *owner*.
        """

    @abc.abstractmethod
    def record_outcome(
        self,
        reminder_id: UUID,
        outcome: DeliveryOutcome,
        *,
        owner: str,
        now: datetime,
    ) -> Reminder | None:
        """Finish the attempt held by *owner*; ``None`` if the lease was lost."""

    @abc.abstractmethod
    def supersede(
        self,
        reminder_id: UUID,
        reason: str,
        *,
        now: datetime,
        status: ReminderStatus | None = None,
    ) -> Reminder | None:
        """Terminate an active reminder regardless of its lease."""

    # -- reads ---------------------------------------------------------------

    @abc.abstractmethod
    def find_by_id(self, reminder_id: UUID) -> Reminder | None: ...

    @abc.abstractmethod
    def find_active_by_contact(self, contact_email: str) -> Reminder | None: ...

    @abc.abstractmethod
    def find_by_contact(self, contact_email: str) -> list[Reminder]: ...

    @abc.abstractmethod
    def find_by_status(self, status: ReminderStatus, limit: int = 100) -> list[Reminder]: ...

    @abc.abstractmethod
    def find_due(self, now: datetime, limit: int = 100) -> list[Reminder]:
        """Read-only preview of what :meth:`claim_due` would pick up."""

    @abc.abstractmethod
    def count_by_status(self) -> dict[str, int]: ...


class ContactStore(abc.ABC):
    """Contacts keyed by normalised email."""

    @abc.abstractmethod
    def get(self, email: str) -> Contact | None: ...

    @abc.abstractmethod
    def upsert(self, contact: Contact) -> Contact:
        """Insert or merge *contact*; activity timestamps never move backwards."""

    @abc.abstractmethod
    def count(self) -> int: ...


class RunHistoryStore(abc.ABC):
    """Append-only log of enrich/dispatch runs."""

    @abc.abstractmethod
    def append(self, record: RunRecord) -> None: ...

    @abc.abstractmethod
    def recent(self, limit: int = 20) -> list[RunRecord]: ...
