"""Event normalizer: raw mailbox/calendar records to canonical events.

This is the only place that decides whether an email was *sent* or
*received*: a message whose sender is one of the owner's addresses is
``sent`` (one event per external recipient), anything else is
``received`` (one event for the sender).  Downstream code never looks
at raw headers again.

Raw message record::

    {"id": "18c2...", "threadId": "18c2...", "from": "Sarah <sarah@acme.io>",
     "to": ["me@example.com"], "cc": [], "subject": "Re: pricing",
     "date": "2026-03-02T09:15:00+00:00", "snippet": "Thanks for ..."}

Raw calendar record::

    {"id": "evt1", "summary": "Intro call", "start": "2026-03-01T15:00:00Z",
     "htmlLink": "https://calendar/...",
     "attendees": [{"email": "mike@vendor.com", "displayName": "Mike",
                    "responseStatus": "accepted"}, {"email": "me@example.com", "self": true}]}
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime, timedelta
from email.utils import getaddresses
from typing import TYPE_CHECKING, Any

from rapport.core.errors import RapportError
from rapport.core.types import EmailDirection
from rapport.models.contact import normalize_email
from rapport.models.events import EmailEvent, MeetingEvent

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from rapport.config.settings import OwnerSettings

log = logging.getLogger(__name__)


class EventFormatError(RapportError, ValueError):
    """A raw record is missing required fields or has unparseable values."""


def parse_timestamp(value: Any) -> datetime:  # noqa: ANN401
    """Parse an ISO-8601 string (or Google-style ``{"dateTime": ...}``) as aware UTC."""
    if isinstance(value, dict):
        value = value.get("dateTime") or value.get("date")
    if isinstance(value, datetime):
        parsed = value
    elif isinstance(value, str) and value:
        try:
            parsed = datetime.fromisoformat(value.replace("Z", "+00:00"))
        except ValueError as exc:
            msg = f"Invalid timestamp {value!r}"
            raise EventFormatError(msg) from exc
    else:
        msg = f"Missing timestamp: {value!r}"
        raise EventFormatError(msg)
    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=UTC)
    return parsed.astimezone(UTC)


def _addresses(values: Iterable[str] | str | None) -> list[tuple[str, str]]:
    """``[(display_name, normalized_email), ...]`` for header-style values."""
    if not values:
        return []
    if isinstance(values, str):
        values = [values]
    return [(name.strip(), normalize_email(addr)) for name, addr in getaddresses(list(values)) if addr]


class EventNormalizer:
    """Maps raw records to :class:`EmailEvent` / :class:`MeetingEvent`."""

    def __init__(
        self,
        owner: OwnerSettings,
        *,
        clock: Callable[[], datetime],
        meeting_lookback_days: int = 14,
        preview_length: int = 200,
    ) -> None:
        self._own = frozenset(owner.addresses)
        self._internal_domains = owner.internal_domains
        self._clock = clock
        self._lookback = timedelta(days=meeting_lookback_days)
        self._preview_length = preview_length

    def is_own(self, email: str) -> bool:
        return email in self._own

    def is_internal(self, email: str) -> bool:
        if self.is_own(email):
            return True
        domain = email.rpartition("@")[2]
        return any(domain == d or domain.endswith(f".{d}") for d in self._internal_domains)

    # -- email ---------------------------------------------------------------

    def from_message(self, raw: dict[str, Any]) -> list[EmailEvent]:
        senders = _addresses(raw.get("from"))
        if not senders:
            msg = f"Message {raw.get('id')!r} has no sender"
            raise EventFormatError(msg)
        sender_name, sender = senders[0]
        occurred_at = parse_timestamp(raw.get("date"))
        common = {
            "subject": raw.get("subject") or "",
            "occurred_at": occurred_at,
            "thread_id": raw.get("threadId") or None,
            "snippet": (raw.get("snippet") or "")[: self._preview_length],
            "message_id": raw.get("id"),
        }

        if not self.is_own(sender):
            return [
                EmailEvent(
                    contact_email=sender,
                    direction=EmailDirection.RECEIVED,
                    contact_name=sender_name or None,
                    **common,
                )
            ]

        events = []
        seen: set[str] = set()
        for name, addr in _addresses(raw.get("to")) + _addresses(raw.get("cc")):
            if self.is_own(addr) or addr in seen:
                continue
            seen.add(addr)
            events.append(
                EmailEvent(
                    contact_email=addr,
                    direction=EmailDirection.SENT,
                    contact_name=name or None,
                    **common,
                )
            )
        return events

    # -- calendar ------------------------------------------------------------

    def from_calendar_event(self, raw: dict[str, Any]) -> list[MeetingEvent]:
        """One event per external attendee; empty for old or internal-only meetings."""
        start = parse_timestamp(raw.get("start"))
        now = self._clock()
        if start < now - self._lookback:
            return []

        attendees = raw.get("attendees") or []
        if not isinstance(attendees, list):
            msg = f"Event {raw.get('id')!r} has a non-list attendees field"
            raise EventFormatError(msg)

        externals: list[tuple[str, str]] = []
        for attendee in attendees:
            if not isinstance(attendee, dict) or not isinstance(attendee.get("email") or "", str):
                msg = f"Event {raw.get('id')!r} has a malformed attendee: {attendee!r}"
                raise EventFormatError(msg)
            addr = normalize_email(attendee.get("email") or "")
            if not addr or attendee.get("self") or self.is_internal(addr):
                continue
            if attendee.get("responseStatus") == "declined":
                continue
            if addr not in {a for _, a in externals}:
                externals.append((attendee.get("displayName") or "", addr))

        participants = tuple(addr for _, addr in externals)
        is_past = start <= now
        return [
            MeetingEvent(
                contact_email=addr,
                meeting_start=start,
                is_past=is_past,
                external_participants=participants,
                contact_name=name or None,
                title=raw.get("summary") or "",
                link=raw.get("htmlLink"),
            )
            for name, addr in externals
        ]
