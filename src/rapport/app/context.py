"""Dependency container for Rapport.

Built once per process from the immutable settings tree and shared by
the CLI and the Flask app (``app.extensions["container"]``).  Nothing
in here is global: two containers built from two configs are fully
independent, which is what the tests rely on.

Usage::

    container = create_container(config.settings)
    summary = container.run_dispatch()
"""

from __future__ import annotations

import logging
from datetime import UTC, datetime
from typing import TYPE_CHECKING

from flask import current_app

from rapport.core.lifecycle import RetryPolicy
from rapport.core.types import ReminderStatus, RunKind
from rapport.metrics.collector import MetricsCollector
from rapport.metrics.recorder import RunRecorder
from rapport.notifications.factory import build_notifier
from rapport.notifications.renderer import TemplateRenderer
from rapport.repositories.memory import (
    InMemoryContactStore,
    InMemoryReminderStore,
    InMemoryRunHistoryStore,
)
from rapport.services.dispatcher import Dispatcher
from rapport.services.enrichment import EnrichmentService
from rapport.services.resolver import PriorityResolver
from rapport.sources.files import build_sources

if TYPE_CHECKING:
    from collections.abc import Callable, Iterable

    from pypgkit import Database

    from rapport.config.settings import RapportSettings
    from rapport.models.run import DispatchSummary, EnrichmentSummary
    from rapport.notifications.base import Notifier
    from rapport.repositories.base import ContactStore, ReminderStore, RunHistoryStore
    from rapport.sources.base import EventSource

log = logging.getLogger(__name__)


def utcnow() -> datetime:
    return datetime.now(UTC)


class Container:
    """Application-wide dependency container."""

    def __init__(
        self,
        settings: RapportSettings,
        *,
        database: Database | None = None,
        clock: Callable[[], datetime] = utcnow,
        notifier: Notifier | None = None,
    ) -> None:
        self.settings = settings
        self.db = database
        self.clock = clock
        self.policy = RetryPolicy.from_minutes(
            settings.dispatcher.backoff_minutes,
            settings.dispatcher.lease_seconds,
        )

        self.reminders: ReminderStore
        self.contacts: ContactStore
        self.run_history: RunHistoryStore | None = None

        if settings.storage.backend == "memory":
            self.reminders = InMemoryReminderStore(self.policy)
            self.contacts = InMemoryContactStore()
            if settings.run_history.enabled:
                self.run_history = InMemoryRunHistoryStore()
        else:
            if database is None:
                msg = "storage.backend 'postgres' requires an initialised database"
                raise RuntimeError(msg)
            from rapport.repositories.contact import ContactRepository  # noqa: PLC0415
            from rapport.repositories.reminder import ReminderRepository  # noqa: PLC0415
            from rapport.repositories.run_history import RunHistoryRepository  # noqa: PLC0415

            self.reminders = ReminderRepository(database, self.policy)
            self.contacts = ContactRepository(database)
            if settings.run_history.enabled:
                self.run_history = RunHistoryRepository(database)

        self.metrics = MetricsCollector()
        self.recorder = RunRecorder(self.metrics, history=self.run_history)
        self.resolver = PriorityResolver(settings)
        self.renderer = TemplateRenderer(settings.notifier.templates_path)
        self.notifier = notifier or build_notifier(settings)

        self.enrichment = EnrichmentService(
            settings,
            self.reminders,
            self.contacts,
            self.resolver,
            clock=clock,
        )
        self.dispatcher = Dispatcher(
            self.reminders,
            self.notifier,
            self.renderer,
            batch_size=settings.dispatcher.batch_size,
            clock=clock,
        )

    # -- entry points --------------------------------------------------------

    def sources(self) -> list[EventSource]:
        return build_sources(self.settings, clock=self.clock)

    def run_enrich(self, sources: Iterable[EventSource] | None = None) -> EnrichmentSummary:
        """``enrich()``: one pass over the configured (or given) sources."""
        with self.recorder.track(RunKind.ENRICH, self.clock) as run:
            run.summary = self.enrichment.enrich(self.sources() if sources is None else sources)
        self.refresh_gauges()
        return run.summary

    def run_dispatch(self) -> DispatchSummary:
        """``dispatch()``: one dispatcher poll cycle."""
        with self.recorder.track(RunKind.DISPATCH, self.clock) as run:
            run.summary = self.dispatcher.dispatch()
        self.refresh_gauges()
        return run.summary

    def refresh_gauges(self) -> dict[str, int]:
        counts = self.reminders.count_by_status()
        for status in ReminderStatus:
            self.metrics.set_gauge(
                "reminders", counts.get(status.value, 0), labels={"status": status.value}
            )
        return counts


def create_container(
    settings: RapportSettings,
    *,
    clock: Callable[[], datetime] = utcnow,
    notifier: Notifier | None = None,
) -> Container:
    """Build a container, connecting to PostgreSQL when that backend is selected."""
    database = None
    if settings.storage.backend == "postgres":
        from rapport.db.init import init_database  # noqa: PLC0415

        database = init_database(settings.database)
    return Container(settings, database=database, clock=clock, notifier=notifier)


def get_container() -> Container:
    """Return the :class:`Container` from the current Flask app."""
    container = current_app.extensions.get("container")
    if container is None:
        msg = "Dependency container not available -- was create_app() given one?"
        raise RuntimeError(msg)
    return container
