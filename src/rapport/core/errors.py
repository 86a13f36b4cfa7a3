"""Exception hierarchy for Rapport.

Delivery failures carry a ``retryable`` flag so the dispatcher can tell
transient outages from permanent rejections.  Store failures are split
into per-row conflicts (handled by the caller) and store-wide
unavailability (aborts the current cycle).
"""

from __future__ import annotations


class RapportError(Exception):
    """Base class for all Rapport errors."""


# ---------------------------------------------------------------------------
# Delivery
# ---------------------------------------------------------------------------


class SendError(RapportError):
    """Raised by notifiers when a message could not be delivered.

    Parameters
    ----------
    detail:
        Human-readable description of the failure.
    retryable:
        Whether the failure is transient and the reminder may be retried.

    """

    def __init__(self, detail: str, *, retryable: bool = True) -> None:  # noqa: FBT001, FBT002
        self.detail = detail
        self.retryable = retryable
        super().__init__(detail)


class TransientSendError(SendError):
    """Network error, timeout or rate limit from the notifier."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail, retryable=True)


class PermanentSendError(SendError):
    """The notifier rejected the message outright (e.g. invalid recipient)."""

    def __init__(self, detail: str) -> None:
        super().__init__(detail, retryable=False)


# ---------------------------------------------------------------------------
# Store
# ---------------------------------------------------------------------------


class StoreError(RapportError):
    """Base class for reminder/contact store errors."""


class DuplicateKeyError(StoreError):
    """A reminder with the same id already exists."""


class ActiveReminderExists(DuplicateKeyError):  # noqa: N818
    """The contact already has an active reminder."""

    def __init__(self, contact_email: str) -> None:
        self.contact_email = contact_email
        super().__init__(f"Contact {contact_email} already has an active reminder")


class StoreUnavailable(StoreError):  # noqa: N818
    """The backing store cannot be reached; the whole cycle is aborted."""


# ---------------------------------------------------------------------------
# State machine
# ---------------------------------------------------------------------------


class InvalidTransition(RapportError, ValueError):  # noqa: N818
    """A status change not permitted by the reminder state machine."""
