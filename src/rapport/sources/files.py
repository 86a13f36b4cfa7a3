"""File-backed event sources reading JSON-lines exports.

Each line is one raw record in the shape documented in
:mod:`rapport.sources.normalizer`.  Malformed lines are logged and
skipped; an unreadable file raises :class:`OSError` so the enrichment
run records the source as failed.
"""

from __future__ import annotations

import abc
import json
import logging
from pathlib import Path
from typing import TYPE_CHECKING, Any

from rapport.sources.base import EventSource
from rapport.sources.normalizer import EventFormatError, EventNormalizer

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from datetime import datetime

    from rapport.config.settings import RapportSettings
    from rapport.models.events import Event

log = logging.getLogger(__name__)


class JsonLinesSource(EventSource):
    def __init__(self, path: str | Path, normalizer: EventNormalizer) -> None:
        self._path = Path(path)
        self._normalizer = normalizer
        self.skipped = 0

    @property
    def path(self) -> Path:
        return self._path

    def _records(self) -> Iterator[tuple[int, dict[str, Any]]]:
        with self._path.open(encoding="utf-8") as fh:
            for lineno, line in enumerate(fh, start=1):
                text = line.strip()
                if not text:
                    continue
                try:
                    record = json.loads(text)
                except json.JSONDecodeError as exc:
                    self._skip(lineno, f"invalid JSON: {exc.msg}")
                    continue
                if not isinstance(record, dict):
                    self._skip(lineno, "record is not an object")
                    continue
                yield lineno, record

    def _skip(self, lineno: int, reason: str) -> None:
        self.skipped += 1
        log.warning("%s:%d skipped: %s", self._path, lineno, reason, extra={"source": self.name})

    def produce_events(self) -> list[Event]:
        self.skipped = 0
        events: list[Event] = []
        for lineno, record in self._records():
            try:
                events.extend(self._convert(record))
            except EventFormatError as exc:
                self._skip(lineno, str(exc))
        log.debug("%s produced %d events from %s", self.name, len(events), self._path)
        return events

    @abc.abstractmethod
    def _convert(self, record: dict[str, Any]) -> list[Event]:
        """Normalise one raw record; raise :class:`EventFormatError` if malformed."""


class MailboxExportSource(JsonLinesSource):
    name = "mailbox"

    def _convert(self, record: dict[str, Any]) -> list[Event]:
        return list(self._normalizer.from_message(record))


class CalendarExportSource(JsonLinesSource):
    name = "calendar"

    def _convert(self, record: dict[str, Any]) -> list[Event]:
        return list(self._normalizer.from_calendar_event(record))


def build_sources(
    settings: RapportSettings,
    *,
    clock: Callable[[], datetime],
) -> list[EventSource]:
    """Instantiate the enabled sources from the ``sources`` section."""
    normalizer = EventNormalizer(
        settings.owner,
        clock=clock,
        meeting_lookback_days=settings.enrichment.meeting_lookback_days,
        preview_length=settings.enrichment.preview_length,
    )
    sources: list[EventSource] = []
    if settings.sources.mailbox.enabled and settings.sources.mailbox.path:
        sources.append(MailboxExportSource(settings.sources.mailbox.path, normalizer))
    if settings.sources.calendar.enabled and settings.sources.calendar.path:
        sources.append(CalendarExportSource(settings.sources.calendar.path, normalizer))
    return sources
