"""Reminder state machine.

Defines the valid status transitions for reminders.  All transitions
performed by the stores are checked with :func:`assert_transition`.

Usage::

    from rapport.core.state import assert_transition
    from rapport.core.types import ReminderStatus

    assert_transition(ReminderStatus.QUEUED, ReminderStatus.SENDING)
"""

from __future__ import annotations

import logging

from rapport.core.errors import InvalidTransition
from rapport.core.types import ReminderStatus

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# queued → sending/abandoned/resolved
# sending → sent/failed/abandoned/resolved, sending → sending (stale re-claim)
# failed → sending/abandoned/resolved
# sent, abandoned & resolved are terminal.
# ---------------------------------------------------------------------------

REMINDER_TRANSITIONS: dict[ReminderStatus, frozenset[ReminderStatus]] = {
    ReminderStatus.QUEUED: frozenset(
        {
            ReminderStatus.SENDING,
            ReminderStatus.ABANDONED,
            ReminderStatus.RESOLVED,
        }
    ),
    ReminderStatus.SENDING: frozenset(
        {
            ReminderStatus.SENT,
            ReminderStatus.FAILED,
            ReminderStatus.ABANDONED,
            ReminderStatus.RESOLVED,
            ReminderStatus.SENDING,  # stale lease re-claim
        }
    ),
    ReminderStatus.FAILED: frozenset(
        {
            ReminderStatus.SENDING,
            ReminderStatus.ABANDONED,
            ReminderStatus.RESOLVED,
        }
    ),
    ReminderStatus.SENT: frozenset(),
    ReminderStatus.ABANDONED: frozenset(),
    ReminderStatus.RESOLVED: frozenset(),
}


def assert_transition(
    current: ReminderStatus,
    target: ReminderStatus,
    table: dict | None = None,
) -> None:
    """Raise :class:`InvalidTransition` if *current* → *target* is not allowed.

    Parameters
    ----------
    current:
        The current status of the reminder.
    target:
        The desired new status.
    table:
        Transition table, defaults to :data:`REMINDER_TRANSITIONS`.

    """
    allowed = (table or REMINDER_TRANSITIONS).get(current)
    if allowed is None:
        msg = f"Unknown status {current!r}"
        raise InvalidTransition(msg)
    if target not in allowed:
        msg = (
            f"Invalid transition {current.value!r} -> {target.value!r}; "
            f"allowed targets: {sorted(s.value for s in allowed) or '(terminal)'}"
        )
        raise InvalidTransition(msg)


def log_transition(
    resource_id,
    from_status,
    to_status,
    *,
    reason: str | None = None,
    contact_email: str | None = None,
) -> None:
    """Emit a structured log entry for a reminder state transition."""
    extra = {
        "event": "state_transition",
        "resource_type": "reminder",
        "resource_id": str(resource_id),
        "from_status": from_status.value if hasattr(from_status, "value") else str(from_status),
        "to_status": to_status.value if hasattr(to_status, "value") else str(to_status),
    }
    if reason:
        extra["reason"] = reason
    if contact_email:
        extra["contact_email"] = contact_email
    log.info(
        "reminder %s: %s -> %s%s",
        resource_id,
        extra["from_status"],
        extra["to_status"],
        f" ({reason})" if reason else "",
        extra=extra,
    )
