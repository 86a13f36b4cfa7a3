"""Reminder entity and its delivery payload."""

from __future__ import annotations

from dataclasses import dataclass
from datetime import UTC, datetime
from typing import Any
from uuid import UUID, uuid4

from rapport.core.types import ReminderStatus, ReminderType

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)

# Exact persisted field set, in storage order.
RECORD_FIELDS: tuple[str, ...] = (
    "id",
    "contactEmail",
    "contactName",
    "type",
    "priority",
    "status",
    "nextAttemptAt",
    "lockOwner",
    "lockExpiresAt",
    "attemptCount",
    "lastError",
    "idempotencyKey",
    "sentKeys",
    "subject",
    "preview",
    "deepLink",
    "fallbackQuery",
    "createdAt",
    "sentAt",
)


@dataclass(frozen=True)
class ReminderPayload:
    """Denormalised rendering data; never mutated after creation."""

    subject: str
    preview: str = ""
    deep_link: str = ""
    fallback_query: str = ""


@dataclass(frozen=True)
class Reminder:
    id: UUID
    contact_email: str
    type: ReminderType
    payload: ReminderPayload
    contact_name: str | None = None
    status: ReminderStatus = ReminderStatus.QUEUED
    next_attempt_at: datetime = _EPOCH
    lock_owner: str | None = None
    lock_expires_at: datetime | None = None
    attempt_count: int = 0
    last_error: str | None = None
    idempotency_key: str | None = None
    sent_keys: tuple[str, ...] = ()
    created_at: datetime = _EPOCH
    sent_at: datetime | None = None

    @classmethod
    def new(
        cls,
        *,
        contact_email: str,
        reminder_type: ReminderType,
        payload: ReminderPayload,
        now: datetime,
        contact_name: str | None = None,
    ) -> Reminder:
        """Build a freshly queued reminder, eligible immediately."""
        return cls(
            id=uuid4(),
            contact_email=contact_email,
            contact_name=contact_name,
            type=reminder_type,
            payload=payload,
            status=ReminderStatus.QUEUED,
            next_attempt_at=now,
            created_at=now,
        )

    @property
    def priority(self) -> int:
        return self.type.priority

    @property
    def is_active(self) -> bool:
        return self.status.is_active

    def key_for_attempt(self, attempt: int) -> str:
        return f"{self.id}-{attempt}"

    # -- record export ------------------------------------------------------

    def to_record(self) -> dict[str, Any]:
        """Export the persisted field set with camelCase names."""
        return {
            "id": str(self.id),
            "contactEmail": self.contact_email,
            "contactName": self.contact_name,
            "type": self.type.value,
            "priority": self.priority,
            "status": self.status.value,
            "nextAttemptAt": _iso(self.next_attempt_at),
            "lockOwner": self.lock_owner,
            "lockExpiresAt": _iso(self.lock_expires_at),
            "attemptCount": self.attempt_count,
            "lastError": self.last_error,
            "idempotencyKey": self.idempotency_key,
            "sentKeys": list(self.sent_keys),
            "subject": self.payload.subject,
            "preview": self.payload.preview,
            "deepLink": self.payload.deep_link,
            "fallbackQuery": self.payload.fallback_query,
            "createdAt": _iso(self.created_at),
            "sentAt": _iso(self.sent_at),
        }

    @classmethod
    def from_record(cls, record: dict[str, Any]) -> Reminder:
        """Inverse of :meth:`to_record`.  ``priority`` is derived, not read."""
        missing = set(RECORD_FIELDS) - set(record)
        if missing:
            msg = f"Reminder record is missing fields: {sorted(missing)}"
            raise ValueError(msg)
        return cls(
            id=UUID(str(record["id"])),
            contact_email=record["contactEmail"],
            contact_name=record["contactName"],
            type=ReminderType(record["type"]),
            payload=ReminderPayload(
                subject=record["subject"] or "",
                preview=record["preview"] or "",
                deep_link=record["deepLink"] or "",
                fallback_query=record["fallbackQuery"] or "",
            ),
            status=ReminderStatus(record["status"]),
            next_attempt_at=_parse(record["nextAttemptAt"]) or _EPOCH,
            lock_owner=record["lockOwner"],
            lock_expires_at=_parse(record["lockExpiresAt"]),
            attempt_count=int(record["attemptCount"]),
            last_error=record["lastError"],
            idempotency_key=record["idempotencyKey"],
            sent_keys=tuple(record["sentKeys"] or ()),
            created_at=_parse(record["createdAt"]) or _EPOCH,
            sent_at=_parse(record["sentAt"]),
        )


@dataclass(frozen=True)
class DeliveryOutcome:
    """Result of one delivery attempt, as reported to the store."""

    success: bool
    error: str | None = None
    permanent: bool = False

    @classmethod
    def ok(cls) -> DeliveryOutcome:
        return cls(success=True)

    @classmethod
    def failure(cls, reason: str, *, permanent: bool = False) -> DeliveryOutcome:
        return cls(success=False, error=reason, permanent=permanent)


def _iso(value: datetime | None) -> str | None:
    return value.isoformat() if value is not None else None


def _parse(value: str | datetime | None) -> datetime | None:
    if value is None or isinstance(value, datetime):
        return value
    return datetime.fromisoformat(value)
