"""Inspection subcommands for reminders and contacts.

Usage::

    rapport -c config.yaml reminders list --status failed
    rapport -c config.yaml reminders show <uuid>
    rapport -c config.yaml reminders complete <email>
    rapport -c config.yaml contacts show <email>
"""

from __future__ import annotations

import json
import sys
from uuid import UUID

from rapport.core.types import ReminderStatus
from rapport.models.contact import normalize_email


def _fail(message: str) -> None:
    print(f"rapport: error: {message}", file=sys.stderr)  # noqa: T201
    sys.exit(1)


def _dump(obj) -> None:
    print(json.dumps(obj, indent=2, default=str))  # noqa: T201


def run_reminders(container, args) -> None:
    sub = getattr(args, "reminders_command", None)
    if sub == "list":
        _list(container, args.status, args.limit)
    elif sub == "show":
        _show(container, args.reminder_id)
    elif sub == "complete":
        resolved = container.enrichment.mark_complete(args.email)
        if resolved is None:
            _fail(f"no active reminder for {args.email}")
        _dump(resolved.to_record())
    else:
        _fail("expected a reminders subcommand (list, show, complete)")


def _list(container, status: str | None, limit: int) -> None:
    if status is None:
        statuses = list(ReminderStatus)
    else:
        try:
            statuses = [ReminderStatus(status)]
        except ValueError:
            _fail(f"unknown status {status!r}")
    rows = []
    for st in statuses:
        rows.extend(container.reminders.find_by_status(st, limit))
    rows.sort(key=lambda r: r.created_at, reverse=True)
    _dump([r.to_record() for r in rows[:limit]])


def _show(container, reminder_id: str) -> None:
    try:
        rid = UUID(reminder_id)
    except ValueError:
        _fail(f"invalid reminder id {reminder_id!r}")
    reminder = container.reminders.find_by_id(rid)
    if reminder is None:
        _fail(f"no reminder with id {reminder_id}")
    _dump(reminder.to_record())


def run_contacts(container, args) -> None:
    if getattr(args, "contacts_command", None) != "show":
        _fail("expected a contacts subcommand (show)")
    email = normalize_email(args.email)
    contact = container.contacts.get(email)
    if contact is None:
        _fail(f"unknown contact {email}")
    _dump(
        {
            "email": contact.email,
            "displayName": contact.display_name,
            "lastReceivedAt": contact.last_received_at,
            "lastSentAt": contact.last_sent_at,
            "lastMeetingAt": contact.last_meeting_at,
            "lastActivityAt": contact.last_activity_at,
            "reminders": [r.to_record() for r in container.reminders.find_by_contact(email)],
        }
    )
