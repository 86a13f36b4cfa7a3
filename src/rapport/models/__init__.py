"""Entity models for the Rapport persistence layer.

All models are frozen dataclasses.  Use :func:`dataclasses.replace`
for modifications (copy-on-write).
"""

from rapport.models.contact import Contact, normalize_email
from rapport.models.events import EmailEvent, Event, MeetingEvent, subject_key
from rapport.models.reminder import (
    RECORD_FIELDS,
    DeliveryOutcome,
    Reminder,
    ReminderPayload,
)
from rapport.models.run import DispatchSummary, EnrichmentSummary, RunRecord

__all__ = [
    "RECORD_FIELDS",
    "Contact",
    "DeliveryOutcome",
    "DispatchSummary",
    "EmailEvent",
    "EnrichmentSummary",
    "Event",
    "MeetingEvent",
    "Reminder",
    "ReminderPayload",
    "RunRecord",
    "normalize_email",
    "subject_key",
]
