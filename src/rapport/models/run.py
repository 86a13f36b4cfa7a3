"""Run summaries produced by the enrich and dispatch entry points."""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from uuid import UUID, uuid4

from rapport.core.types import RunKind

_EPOCH = datetime(1970, 1, 1, tzinfo=UTC)


@dataclass
class EnrichmentSummary:
    events: int = 0
    created: int = 0
    replaced: int = 0
    resolved: int = 0
    skipped: int = 0
    conflicts: int = 0
    source_errors: int = 0

    def counters(self) -> dict[str, int]:
        return asdict(self)


@dataclass
class DispatchSummary:
    claimed: int = 0
    sent: int = 0
    short_circuited: int = 0
    failed: int = 0
    abandoned: int = 0
    discarded: int = 0
    lease_lost: int = 0

    def counters(self) -> dict[str, int]:
        return asdict(self)


@dataclass(frozen=True)
class RunRecord:
    kind: RunKind
    started_at: datetime
    finished_at: datetime
    counters: dict[str, int] = field(default_factory=dict)
    error: str | None = None
    id: UUID = field(default_factory=uuid4)

    @property
    def duration_seconds(self) -> float:
        return (self.finished_at - self.started_at).total_seconds()
