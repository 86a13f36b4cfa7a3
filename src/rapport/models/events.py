"""Canonical inbound events consumed by the priority resolver."""

from __future__ import annotations

import re
from dataclasses import dataclass, field
from datetime import datetime

from rapport.core.types import EmailDirection

_REPLY_PREFIX_RE = re.compile(
    r"^\s*(?:(?:re|fw|fwd|aw|sv|wg)\s*(?:\[\d+\])?\s*:\s*)+",
    re.IGNORECASE,
)


def subject_key(subject: str | None) -> str:
    """Normalise a subject for thread matching.

    Strips reply/forward prefixes (``Re:``, ``Fwd:``, ``RE[2]:`` ...),
    collapses whitespace and case-folds.
    """
    stripped = _REPLY_PREFIX_RE.sub("", subject or "")
    return " ".join(stripped.split()).casefold()


@dataclass(frozen=True)
class EmailEvent:
    contact_email: str
    direction: EmailDirection
    subject: str
    occurred_at: datetime
    thread_id: str | None = None
    contact_name: str | None = None
    snippet: str = ""
    message_id: str | None = None

    @property
    def thread_key(self) -> str:
        return self.thread_id or subject_key(self.subject)


@dataclass(frozen=True)
class MeetingEvent:
    contact_email: str
    meeting_start: datetime
    is_past: bool
    external_participants: tuple[str, ...] = field(default_factory=tuple)
    contact_name: str | None = None
    title: str = ""
    link: str | None = None

    @property
    def occurred_at(self) -> datetime:
        return self.meeting_start


Event = EmailEvent | MeetingEvent
