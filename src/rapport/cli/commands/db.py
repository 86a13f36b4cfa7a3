"""Database management subcommands."""

from __future__ import annotations

import json
import logging
import sys

log = logging.getLogger(__name__)

_TABLES = ("contacts", "reminders", "run_history")


def run_db(config, args) -> None:
    """Handle db subcommands."""
    if args.db_command == "status":
        _db_status(config)
    else:
        print("rapport: error: expected a db subcommand (status)", file=sys.stderr)  # noqa: T201
        sys.exit(1)


def _db_status(config) -> None:
    """Check database connectivity and that every table exists."""
    if config.settings.storage.backend != "postgres":
        print(json.dumps({"backend": config.settings.storage.backend, "status": "n/a"}))  # noqa: T201
        return

    from rapport.db import init_database  # noqa: PLC0415

    try:
        db = init_database(config.settings.database)
        db.fetch_value("SELECT 1")
        present = db.fetch_value(
            "SELECT count(*) FROM information_schema.tables "
            "WHERE table_schema = 'public' AND table_name = ANY(%s)",
            (list(_TABLES),),
        )
    except Exception as exc:
        log.debug("Database status check failed", exc_info=True)
        print(f"rapport: error: database unreachable: {exc}", file=sys.stderr)  # noqa: T201
        sys.exit(1)

    status = {"backend": "postgres", "connected": True, "tables": f"{present}/{len(_TABLES)}"}
    print(json.dumps(status))  # noqa: T201
    if present != len(_TABLES):
        sys.exit(1)
