"""Enumerated types for the Rapport persistence layer.

All enums inherit from ``StrEnum`` so their ``.value`` is a plain
string that psycopg serialises as TEXT and JSON round-trips naturally.
"""

from __future__ import annotations

from enum import StrEnum

# ---------------------------------------------------------------------------
# Reminder
# ---------------------------------------------------------------------------


class ReminderType(StrEnum):
    EMAIL_RESPONSE = "email-response"
    MEETING_FOLLOWUP = "meeting-followup"

    @property
    def priority(self) -> int:
        """Dispatch priority; lower number wins."""
        return REMINDER_PRIORITY[self]


REMINDER_PRIORITY: dict[ReminderType, int] = {
    ReminderType.EMAIL_RESPONSE: 1,
    ReminderType.MEETING_FOLLOWUP: 2,
}


class ReminderStatus(StrEnum):
    QUEUED = "queued"
    SENDING = "sending"
    SENT = "sent"
    FAILED = "failed"
    ABANDONED = "abandoned"
    RESOLVED = "resolved"

    @property
    def is_terminal(self) -> bool:
        return self in TERMINAL_STATUSES

    @property
    def is_active(self) -> bool:
        return self in ACTIVE_STATUSES


ACTIVE_STATUSES: frozenset[ReminderStatus] = frozenset(
    {ReminderStatus.QUEUED, ReminderStatus.SENDING, ReminderStatus.FAILED}
)

TERMINAL_STATUSES: frozenset[ReminderStatus] = frozenset(
    {ReminderStatus.SENT, ReminderStatus.ABANDONED, ReminderStatus.RESOLVED}
)

# ---------------------------------------------------------------------------
# Events
# ---------------------------------------------------------------------------


class EmailDirection(StrEnum):
    SENT = "sent"
    RECEIVED = "received"


# ---------------------------------------------------------------------------
# Supersession / failure reasons recorded in ``last_error``
# ---------------------------------------------------------------------------


class SupersedeReason(StrEnum):
    SUPERSEDED = "superseded"
    USER_RESPONDED = "user-responded"
    LEASE_EXPIRED = "lease-expired"
    MANUAL = "marked-complete"


# ---------------------------------------------------------------------------
# Runs
# ---------------------------------------------------------------------------


class RunKind(StrEnum):
    ENRICH = "enrich"
    DISPATCH = "dispatch"
