"""Run history repository (PostgreSQL)."""

from __future__ import annotations

from psycopg.types.json import Jsonb
from pypgkit import BaseRepository, Database

from rapport.core.types import RunKind
from rapport.models.run import RunRecord
from rapport.repositories.base import RunHistoryStore
from rapport.repositories.reminder import translate_errors


class RunHistoryRepository(BaseRepository[RunRecord], RunHistoryStore):
    table_name = "run_history"
    primary_key = "id"

    def __init__(self, db: Database) -> None:
        super().__init__(db)
        self._database = db

    def _row_to_entity(self, row: dict) -> RunRecord:
        return RunRecord(
            id=row["id"],
            kind=RunKind(row["kind"]),
            started_at=row["started_at"],
            finished_at=row["finished_at"],
            counters=dict(row.get("counters") or {}),
            error=row.get("error"),
        )

    def _entity_to_row(self, entity: RunRecord) -> dict:
        return {
            "id": entity.id,
            "kind": entity.kind.value,
            "started_at": entity.started_at,
            "finished_at": entity.finished_at,
            "counters": Jsonb(entity.counters),
            "error": entity.error,
        }

    def append(self, record: RunRecord) -> None:
        row = self._entity_to_row(record)
        with translate_errors():
            self._database.execute(
                f"INSERT INTO run_history ({', '.join(row)}) "
                f"VALUES ({', '.join(['%s'] * len(row))})",
                tuple(row.values()),
            )

    def recent(self, limit: int = 20) -> list[RunRecord]:
        with translate_errors():
            rows = self._database.fetch_all(
                "SELECT * FROM run_history ORDER BY started_at DESC LIMIT %s",
                (limit,),
                as_dict=True,
            )
        return [self._row_to_entity(r) for r in rows]
