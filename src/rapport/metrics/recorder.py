"""Run recorder: logs, counts and (optionally) persists each run summary.

Usage::

    recorder = RunRecorder(metrics, history=run_history_store)
    with recorder.track(RunKind.DISPATCH, clock) as run:
        run.summary = dispatcher.dispatch()
"""

from __future__ import annotations

import logging
from contextlib import contextmanager
from dataclasses import dataclass, field
from typing import TYPE_CHECKING
from uuid import uuid4

from rapport.logging.sanitize import sanitize_error
from rapport.logging.setup import run_context
from rapport.models.run import RunRecord

if TYPE_CHECKING:
    from collections.abc import Callable, Iterator
    from datetime import datetime

    from rapport.core.types import RunKind
    from rapport.metrics.collector import MetricsCollector
    from rapport.models.run import DispatchSummary, EnrichmentSummary
    from rapport.repositories.base import RunHistoryStore

log = logging.getLogger(__name__)


@dataclass
class ActiveRun:
    kind: RunKind
    started_at: datetime
    run_id: str = field(default_factory=lambda: uuid4().hex[:12])
    summary: EnrichmentSummary | DispatchSummary | None = None


class RunRecorder:
    """Aggregate counters for observability; never affects correctness."""

    def __init__(
        self,
        metrics: MetricsCollector | None = None,
        *,
        history: RunHistoryStore | None = None,
    ) -> None:
        self._metrics = metrics
        self._history = history

    @contextmanager
    def track(self, kind: RunKind, clock: Callable[[], datetime]) -> Iterator[ActiveRun]:
        """Time the enclosed run and record it on exit, including failures."""
        run = ActiveRun(kind=kind, started_at=clock())
        error: str | None = None
        with run_context(run.run_id, kind.value):
            log.info("%s run started", kind.value)
            try:
                yield run
            except Exception as exc:
                error = sanitize_error(f"{type(exc).__name__}: {exc}")
                raise
            finally:
                self.record(run, clock(), error)

    def record(self, run: ActiveRun, finished_at: datetime, error: str | None = None) -> RunRecord:
        counters = run.summary.counters() if run.summary is not None else {}
        record = RunRecord(
            kind=run.kind,
            started_at=run.started_at,
            finished_at=finished_at,
            counters=counters,
            error=error,
        )

        if error:
            log.error(
                "%s run failed after %.2fs: %s",
                run.kind.value,
                record.duration_seconds,
                error,
                extra={"counters": counters},
            )
        else:
            log.info(
                "%s run finished in %.2fs",
                run.kind.value,
                record.duration_seconds,
                extra={"counters": counters},
            )

        if self._metrics is not None:
            outcome = "error" if error else "ok"
            self._metrics.increment("runs_total", labels={"kind": run.kind.value, "outcome": outcome})
            for name, value in counters.items():
                if value:
                    self._metrics.increment(f"{run.kind.value}_{name}_total", value)

        if self._history is not None:
            try:
                self._history.append(record)
            except Exception:
                log.exception("Could not persist run history")
        return record
