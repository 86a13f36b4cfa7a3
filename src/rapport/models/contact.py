"""Contact entity."""

from __future__ import annotations

from dataclasses import dataclass, replace
from datetime import UTC, datetime

from rapport.core.types import EmailDirection
from rapport.models.events import EmailEvent, Event, MeetingEvent

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


def normalize_email(value: str) -> str:
    """Return the canonical contact key for *value* (trimmed, lowercase)."""
    return value.strip().lower()


def _later(current: datetime | None, candidate: datetime) -> datetime:
    if current is None or candidate > current:
        return candidate
    return current


@dataclass(frozen=True)
class Contact:
    email: str
    display_name: str | None = None
    last_received_at: datetime | None = None
    last_sent_at: datetime | None = None
    last_meeting_at: datetime | None = None
    last_activity_at: datetime | None = None
    created_at: datetime = _EPOCH
    updated_at: datetime = _EPOCH

    @classmethod
    def new(cls, email: str, *, now: datetime, display_name: str | None = None) -> Contact:
        return cls(
            email=normalize_email(email),
            display_name=display_name or None,
            created_at=now,
            updated_at=now,
        )

    def observe(self, event: Event, *, now: datetime) -> Contact:
        """Return a copy updated with the activity carried by *event*.

        Activity timestamps only move forward; the display name is
        last-write-wins over non-empty values.
        """
        changes: dict = {"updated_at": now}
        if event.contact_name:
            changes["display_name"] = event.contact_name

        if isinstance(event, EmailEvent):
            if event.direction is EmailDirection.RECEIVED:
                changes["last_received_at"] = _later(self.last_received_at, event.occurred_at)
            else:
                changes["last_sent_at"] = _later(self.last_sent_at, event.occurred_at)
            changes["last_activity_at"] = _later(self.last_activity_at, event.occurred_at)
        elif isinstance(event, MeetingEvent) and event.is_past:
            changes["last_meeting_at"] = _later(self.last_meeting_at, event.meeting_start)
            changes["last_activity_at"] = _later(self.last_activity_at, event.meeting_start)

        return replace(self, **changes)

    def merged_with(self, newer: Contact) -> Contact:
        """Combine a stored contact with a concurrently written copy."""
        return replace(
            self,
            display_name=newer.display_name or self.display_name,
            last_received_at=_max(self.last_received_at, newer.last_received_at),
            last_sent_at=_max(self.last_sent_at, newer.last_sent_at),
            last_meeting_at=_max(self.last_meeting_at, newer.last_meeting_at),
            last_activity_at=_max(self.last_activity_at, newer.last_activity_at),
            updated_at=max(self.updated_at, newer.updated_at),
        )


def _max(a: datetime | None, b: datetime | None) -> datetime | None:
    if a is None:
        return b
    if b is None:
        return a
    return max(a, b)
