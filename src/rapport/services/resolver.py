"""Priority resolver: decide what one event means for a contact's reminder.

The resolver is pure.  It never touches a store or a clock; given the
contact as it was *before* the event, the event, and the contact's
active reminder (if any), it returns a :data:`ResolverAction` that the
enrichment service applies.  The same inputs always produce the same
action.

Rules, in order:

* excluded contacts (the owner's own addresses, excluded emails and
  domains) never get reminders;
* a received email asks for an ``email-response``: created when no
  reminder is active, replacing an active ``meeting-followup``, and
  ignored as a duplicate when an ``email-response`` for the same
  thread is already active;
* a sent email resolves an active ``email-response``;
* a past meeting asks for a ``meeting-followup`` only when nothing is
  active, so a meeting never pre-empts an email reminder.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass
from typing import TYPE_CHECKING

from rapport.core.types import EmailDirection, ReminderType
from rapport.models.events import EmailEvent, MeetingEvent, subject_key

if TYPE_CHECKING:
    from uuid import UUID

    from rapport.config.settings import RapportSettings
    from rapport.models.contact import Contact
    from rapport.models.events import Event
    from rapport.models.reminder import Reminder

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Actions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class CreateReminder:
    reminder_type: ReminderType


@dataclass(frozen=True)
class ReplaceReminder:
    old_id: UUID
    new_type: ReminderType


@dataclass(frozen=True)
class ResolveReminder:
    old_id: UUID


@dataclass(frozen=True)
class NoOp:
    reason: str


ResolverAction = CreateReminder | ReplaceReminder | ResolveReminder | NoOp


def thread_link(base_url: str, thread_id: str | None) -> str:
    """Deep link into the mail client for *thread_id* (empty when unknown)."""
    if not thread_id or not base_url:
        return ""
    return f"{base_url}{thread_id}"


def _domain_of(email: str) -> str:
    return email.rpartition("@")[2]


def _domain_matches(domain: str, patterns: tuple[str, ...]) -> bool:
    return any(domain == p or domain.endswith(f".{p}") for p in patterns)


class PriorityResolver:
    """Stateless policy object built from the immutable settings tree."""

    def __init__(self, settings: RapportSettings) -> None:
        self._own_addresses = frozenset(settings.owner.addresses)
        self._excluded_emails = frozenset(settings.exclusions.emails)
        self._excluded_domains = settings.exclusions.domains
        self._mail_base_url = settings.enrichment.mail_base_url

    def is_excluded(self, contact_email: str) -> bool:
        if contact_email in self._own_addresses or contact_email in self._excluded_emails:
            return True
        return _domain_matches(_domain_of(contact_email), self._excluded_domains)

    def resolve(
        self,
        contact: Contact,
        event: Event,
        active: Reminder | None,
    ) -> ResolverAction:
        if self.is_excluded(contact.email):
            return NoOp("excluded")
        if isinstance(event, EmailEvent):
            if event.direction is EmailDirection.RECEIVED:
                return self._on_received(contact, event, active)
            return self._on_sent(event, active)
        if isinstance(event, MeetingEvent):
            return self._on_meeting(contact, event, active)
        msg = f"Unsupported event type: {type(event).__name__}"
        raise TypeError(msg)

    # -- email ---------------------------------------------------------------

    def _on_received(
        self,
        contact: Contact,
        event: EmailEvent,
        active: Reminder | None,
    ) -> ResolverAction:
        if contact.last_sent_at is not None and contact.last_sent_at >= event.occurred_at:
            return NoOp("already-replied")
        if contact.last_received_at is not None and event.occurred_at <= contact.last_received_at:
            return NoOp("stale-event")

        if active is None:
            return CreateReminder(ReminderType.EMAIL_RESPONSE)
        if active.type is ReminderType.MEETING_FOLLOWUP:
            return ReplaceReminder(active.id, ReminderType.EMAIL_RESPONSE)
        if self._same_thread(active, event):
            return NoOp("duplicate")
        return NoOp("active-reminder")

    def _on_sent(self, event: EmailEvent, active: Reminder | None) -> ResolverAction:
        if active is not None and active.type is ReminderType.EMAIL_RESPONSE:
            return ResolveReminder(active.id)
        return NoOp("nothing-to-resolve")

    def _same_thread(self, active: Reminder, event: EmailEvent) -> bool:
        link = thread_link(self._mail_base_url, event.thread_id)
        if link and active.payload.deep_link == link:
            return True
        return subject_key(active.payload.subject) == subject_key(event.subject)

    # -- meetings ------------------------------------------------------------

    def _on_meeting(
        self,
        contact: Contact,
        event: MeetingEvent,
        active: Reminder | None,
    ) -> ResolverAction:
        if not event.is_past:
            return NoOp("future-meeting")
        if contact.email not in event.external_participants:
            return NoOp("internal-meeting")
        if active is not None:
            return NoOp("active-reminder")
        if contact.last_meeting_at is not None and event.meeting_start <= contact.last_meeting_at:
            return NoOp("stale-event")
        if contact.last_sent_at is not None and contact.last_sent_at >= event.meeting_start:
            return NoOp("already-followed-up")
        return CreateReminder(ReminderType.MEETING_FOLLOWUP)
