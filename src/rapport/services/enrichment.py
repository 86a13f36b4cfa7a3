"""Enrichment service: the ``enrich()`` entry point.

Pulls events from every configured source, keeps contacts up to date,
asks the :class:`~rapport.services.resolver.PriorityResolver` what each
event means and applies the answer to the reminder store.

Overlapping runs are safe.  Replayed events resolve to ``NoOp`` because
the contact's activity timestamps have already moved past them, and a
run that loses an insert race against another run (the store raises
:class:`~rapport.core.errors.ActiveReminderExists`) re-reads the active
reminder and resolves the event once more.
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from rapport.core.errors import ActiveReminderExists
from rapport.core.types import ReminderStatus, ReminderType, SupersedeReason
from rapport.models.contact import Contact, normalize_email
from rapport.models.events import EmailEvent, MeetingEvent
from rapport.models.reminder import Reminder, ReminderPayload
from rapport.models.run import EnrichmentSummary
from rapport.services.resolver import (
    CreateReminder,
    NoOp,
    ReplaceReminder,
    ResolveReminder,
    thread_link,
)

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from rapport.config.settings import RapportSettings
    from rapport.models.events import Event
    from rapport.repositories.base import ContactStore, ReminderStore
    from rapport.services.resolver import PriorityResolver, ResolverAction
    from rapport.sources.base import EventSource

log = logging.getLogger(__name__)

_MAX_RESOLVE_ATTEMPTS = 2


def utcnow() -> datetime:
    return datetime.now(UTC)


def build_payload(event: Event, reminder_type: ReminderType, mail_base_url: str) -> ReminderPayload:
    """Denormalise what the notifier needs to render the reminder."""
    email = normalize_email(event.contact_email)
    if isinstance(event, EmailEvent) and reminder_type is ReminderType.EMAIL_RESPONSE:
        searchable = event.subject.replace('"', "").strip()
        query = f'from:{email} subject:"{searchable}"' if searchable else f"from:{email}"
        return ReminderPayload(
            subject=event.subject,
            preview=event.snippet,
            deep_link=thread_link(mail_base_url, event.thread_id),
            fallback_query=query,
        )
    if isinstance(event, MeetingEvent):
        return ReminderPayload(
            subject=event.title,
            preview=f"Met on {event.meeting_start:%Y-%m-%d %H:%M} UTC",
            deep_link=event.link or "",
            fallback_query=f"from:{email} OR to:{email}",
        )
    msg = f"Cannot build {reminder_type} payload from {type(event).__name__}"
    raise TypeError(msg)


class EnrichmentService:
    """Applies resolver decisions for a stream of events."""

    def __init__(
        self,
        settings: RapportSettings,
        reminders: ReminderStore,
        contacts: ContactStore,
        resolver: PriorityResolver,
        *,
        clock: Callable[[], datetime] = utcnow,
    ) -> None:
        self._mail_base_url = settings.enrichment.mail_base_url
        self._reminders = reminders
        self._contacts = contacts
        self._resolver = resolver
        self._clock = clock

    # -- entry points --------------------------------------------------------

    def enrich(self, sources: Iterable[EventSource]) -> EnrichmentSummary:
        """Run one enrichment pass over *sources*.

        A failing source is logged and counted; the other sources are
        still processed.  Store unavailability propagates and aborts the
        pass.
        """
        summary = EnrichmentSummary()
        events: list[Event] = []
        for source in sources:
            try:
                produced = source.produce_events()
            except Exception:
                summary.source_errors += 1
                log.exception("Event source %s failed", source.name)
                continue
            log.info("Source %s produced %d events", source.name, len(produced))
            events.extend(produced)

        events.sort(key=lambda e: e.occurred_at)
        for event in events:
            self.apply_event(event, summary)
        return summary

    def apply_event(self, event: Event, summary: EnrichmentSummary | None = None) -> ResolverAction:
        """Resolve and apply a single event; returns the action taken."""
        summary = summary if summary is not None else EnrichmentSummary()
        summary.events += 1
        email = normalize_email(event.contact_email)
        now = self._clock()
        contact = self._contacts.get(email) or Contact.new(
            email, now=now, display_name=event.contact_name
        )

        action: ResolverAction = NoOp("unresolved")
        for attempt in range(1, _MAX_RESOLVE_ATTEMPTS + 1):
            active = self._reminders.find_active_by_contact(email)
            action = self._resolver.resolve(contact, event, active)
            try:
                self._apply(action, contact, event, now, summary)
                break
            except ActiveReminderExists:
                if attempt == _MAX_RESOLVE_ATTEMPTS:
                    summary.conflicts += 1
                    log.warning(
                        "Gave up resolving event for %s after a concurrent write",
                        email,
                        extra={"contact_email": email},
                    )
                    action = NoOp("conflict")
                    break
                log.info("Concurrent reminder for %s, re-resolving", email)

        if isinstance(action, NoOp) and action.reason == "excluded":
            return action
        self._contacts.upsert(contact.observe(event, now=now))
        return action

    def mark_complete(self, contact_email: str) -> Reminder | None:
        """Manually resolve the contact's active reminder, if any."""
        email = normalize_email(contact_email)
        active = self._reminders.find_active_by_contact(email)
        if active is None:
            return None
        return self._reminders.supersede(
            active.id,
            SupersedeReason.MANUAL,
            now=self._clock(),
            status=ReminderStatus.RESOLVED,
        )

    # -- helpers -------------------------------------------------------------

    def _new_reminder(
        self,
        contact: Contact,
        event: Event,
        reminder_type: ReminderType,
        now: datetime,
    ) -> Reminder:
        return Reminder.new(
            contact_email=contact.email,
            contact_name=event.contact_name or contact.display_name,
            reminder_type=reminder_type,
            payload=build_payload(event, reminder_type, self._mail_base_url),
            now=now,
        )

    def _apply(
        self,
        action: ResolverAction,
        contact: Contact,
        event: Event,
        now: datetime,
        summary: EnrichmentSummary,
    ) -> None:
        if isinstance(action, CreateReminder):
            reminder = self._reminders.insert(
                self._new_reminder(contact, event, action.reminder_type, now)
            )
            summary.created += 1
            log.info(
                "Queued %s reminder %s for %s",
                reminder.type.value,
                reminder.id,
                contact.email,
                extra={"contact_email": contact.email, "reminder_id": str(reminder.id)},
            )
        elif isinstance(action, ReplaceReminder):
            reminder = self._reminders.replace(
                action.old_id,
                self._new_reminder(contact, event, action.new_type, now),
                reason=SupersedeReason.SUPERSEDED,
                now=now,
            )
            summary.replaced += 1
            log.info(
                "Reminder %s superseded by %s reminder %s",
                action.old_id,
                reminder.type.value,
                reminder.id,
                extra={"contact_email": contact.email},
            )
        elif isinstance(action, ResolveReminder):
            resolved = self._reminders.supersede(
                action.old_id,
                SupersedeReason.USER_RESPONDED,
                now=now,
                status=ReminderStatus.RESOLVED,
            )
            if resolved is not None:
                summary.resolved += 1
            else:
                summary.skipped += 1
        else:
            summary.skipped += 1
            log.debug(
                "No reminder change for %s (%s)",
                contact.email,
                action.reason,
                extra={"contact_email": contact.email},
            )
