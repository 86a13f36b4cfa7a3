"""Store implementations for the Rapport persistence layer.

The PostgreSQL repositories extend :class:`pypgkit.BaseRepository`; the
in-memory stores back development runs and tests.  Both satisfy the
interfaces in :mod:`rapport.repositories.base`.
"""

from rapport.repositories.base import ContactStore, ReminderStore, RunHistoryStore
from rapport.repositories.contact import ContactRepository
from rapport.repositories.memory import (
    InMemoryContactStore,
    InMemoryReminderStore,
    InMemoryRunHistoryStore,
)
from rapport.repositories.reminder import ReminderRepository
from rapport.repositories.run_history import RunHistoryRepository

__all__ = [
    "ContactRepository",
    "ContactStore",
    "InMemoryContactStore",
    "InMemoryReminderStore",
    "InMemoryRunHistoryStore",
    "ReminderRepository",
    "ReminderStore",
    "RunHistoryRepository",
    "RunHistoryStore",
]
