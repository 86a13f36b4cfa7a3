"""Event sources and the normalizer that feeds the priority resolver."""

from rapport.sources.base import EventSource, StaticEventSource
from rapport.sources.files import (
    CalendarExportSource,
    JsonLinesSource,
    MailboxExportSource,
    build_sources,
)
from rapport.sources.normalizer import EventFormatError, EventNormalizer, parse_timestamp

__all__ = [
    "CalendarExportSource",
    "EventFormatError",
    "EventNormalizer",
    "EventSource",
    "JsonLinesSource",
    "MailboxExportSource",
    "StaticEventSource",
    "build_sources",
    "parse_timestamp",
]
