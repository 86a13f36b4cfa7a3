"""Unit of Work: several statements on one connection and one transaction.

:class:`pypgkit.BaseRepository` helpers each borrow their own pooled
connection.  Read-modify-write sequences such as "lock the reminder,
compute its next state, write it back" need a single transaction so
the row lock taken by ``SELECT ... FOR UPDATE`` is held until the
write commits.

Usage::

    with UnitOfWork(db) as uow:
        row = uow.fetch_one("SELECT * FROM reminders WHERE id = %s FOR UPDATE", (rid,))
        uow.update_where("reminders", {"status": "sent"}, {"id": rid})
        # COMMIT on clean exit; ROLLBACK on exception
"""

from __future__ import annotations

from typing import Any, Self

from psycopg.rows import dict_row
from pypgkit import Database


class UnitOfWork:
    """Transaction-scoped SQL helpers bound to a single connection."""

    def __init__(self, database: Database | None = None) -> None:
        self._db = database or Database.get_instance()
        self._conn = None

    def __enter__(self) -> Self:
        self._tx = self._db.transaction()
        self._conn = self._tx.__enter__()
        return self

    def __exit__(self, exc_type, exc_val, exc_tb) -> None:
        self._tx.__exit__(exc_type, exc_val, exc_tb)
        self._conn = None

    def _cursor(self, *, as_dict: bool = True):
        assert self._conn is not None, "UnitOfWork must be used as a context manager"
        if as_dict:
            return self._conn.cursor(row_factory=dict_row)
        return self._conn.cursor()

    def insert(self, table: str, row: dict[str, Any]) -> dict[str, Any]:
        """INSERT one row and return it via ``RETURNING *``."""
        columns = ", ".join(row)
        placeholders = ", ".join(["%s"] * len(row))
        sql = f"INSERT INTO {table} ({columns}) VALUES ({placeholders}) RETURNING *"
        with self._cursor() as cur:
            cur.execute(sql, list(row.values()))
            return cur.fetchone()

    def update_where(
        self,
        table: str,
        set_values: dict[str, Any],
        where: dict[str, Any],
    ) -> dict[str, Any] | None:
        """UPDATE rows matching every *where* pair; return the first or None."""
        set_clause = ", ".join(f"{col} = %s" for col in set_values)
        where_clause = " AND ".join(f"{col} = %s" for col in where)
        sql = f"UPDATE {table} SET {set_clause} WHERE {where_clause} RETURNING *"
        with self._cursor() as cur:
            cur.execute(sql, [*set_values.values(), *where.values()])
            return cur.fetchone()

    def execute(self, sql: str, params: tuple | list | None = None) -> int:
        """Run arbitrary SQL and return the rowcount."""
        with self._cursor(as_dict=False) as cur:
            cur.execute(sql, params)
            return cur.rowcount

    def fetch_one(self, sql: str, params: tuple | list | None = None) -> dict[str, Any] | None:
        with self._cursor() as cur:
            cur.execute(sql, params)
            return cur.fetchone()

    def fetch_all(self, sql: str, params: tuple | list | None = None) -> list[dict[str, Any]]:
        with self._cursor() as cur:
            cur.execute(sql, params)
            return cur.fetchall()
