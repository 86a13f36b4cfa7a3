"""Event source interface.

An event source is a named adapter that yields canonical events.  The
enrichment service iterates over a list of sources and never branches
on their names, only on the type of each event produced.
"""

from __future__ import annotations

import abc
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from collections.abc import Iterable

    from rapport.models.events import Event


class EventSource(abc.ABC):
    """Base class for all event sources.

    Subclasses set :attr:`name` and implement :meth:`produce_events`.
    """

    name: str = "source"

    @abc.abstractmethod
    def produce_events(self) -> list[Event]:
        """Return the events currently observable from this source."""


class StaticEventSource(EventSource):
    """Serves a fixed list of events (fixtures, replays, the HTTP API)."""

    name = "static"

    def __init__(self, events: Iterable[Event], *, name: str | None = None) -> None:
        self._events = list(events)
        if name:
            self.name = name

    def produce_events(self) -> list[Event]:
        return list(self._events)
