"""Rapport command-line entry point.

Usage::

    rapport -c /etc/rapport/config.yaml --validate-only
    rapport -c config.yaml enrich
    rapport -c config.yaml dispatch
    rapport -c config.yaml run
    rapport -c config.yaml serve --dev
    rapport -c config.yaml db status
    rapport -c config.yaml reminders list --status queued
    rapport -c config.yaml reminders show <uuid>
    rapport -c config.yaml reminders complete alice@example.com
    rapport -c config.yaml contacts show alice@example.com
    python -m rapport -c config.yaml enrich
"""

from __future__ import annotations

import argparse
import logging
import sys
from pathlib import Path

log = logging.getLogger(__name__)


def _get_version() -> str:
    from rapport import __version__  # noqa: PLC0415

    return __version__


def _build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="rapport",
        description="Rapport: follow-up reminders for email and meetings",
    )
    parser.add_argument(
        "-c",
        "--config",
        required=True,
        metavar="PATH",
        help="Path to the configuration file (YAML or JSON).",
    )
    parser.add_argument(
        "--debug",
        action="store_true",
        default=False,
        help="Enable debug output (full tracebacks, verbose logging).",
    )
    parser.add_argument(
        "--validate-only",
        action="store_true",
        default=False,
        help="Validate the configuration file and exit.",
    )
    parser.add_argument(
        "-v",
        "--version",
        action="version",
        version=f"%(prog)s {_get_version()}",
    )

    subparsers = parser.add_subparsers(dest="command")

    subparsers.add_parser("enrich", help="Run one enrichment pass")
    subparsers.add_parser("dispatch", help="Run one dispatcher poll cycle")
    subparsers.add_parser("run", help="Run enrich followed by dispatch")

    serve_parser = subparsers.add_parser("serve", help="Start the HTTP job server")
    serve_parser.add_argument("--dev", action="store_true", default=False, dest="dev")

    db_parser = subparsers.add_parser("db", help="Database management")
    db_sub = db_parser.add_subparsers(dest="db_command")
    db_sub.add_parser("status", help="Check database connectivity and schema")

    reminders_parser = subparsers.add_parser("reminders", help="Inspect reminders")
    reminders_sub = reminders_parser.add_subparsers(dest="reminders_command")
    list_parser = reminders_sub.add_parser("list", help="List reminders by status")
    list_parser.add_argument("--status", default=None, help="Only this status")
    list_parser.add_argument("--limit", type=int, default=50)
    show_parser = reminders_sub.add_parser("show", help="Show a reminder by UUID")
    show_parser.add_argument("reminder_id")
    complete_parser = reminders_sub.add_parser(
        "complete", help="Resolve a contact's active reminder"
    )
    complete_parser.add_argument("email")

    contacts_parser = subparsers.add_parser("contacts", help="Inspect contacts")
    contacts_sub = contacts_parser.add_subparsers(dest="contacts_command")
    contact_show = contacts_sub.add_parser("show", help="Show a contact and its reminders")
    contact_show.add_argument("email")

    return parser


def _print_error(message: str) -> None:
    """Print a user-facing error to stderr."""
    print(f"rapport: error: {message}", file=sys.stderr)  # noqa: T201


def main(argv: list[str] | None = None) -> None:
    """CLI entry point.  Parses arguments, loads config, runs the command."""
    parser = _build_parser()
    args = parser.parse_args(argv)

    config_path = Path(args.config)
    if not config_path.is_file():
        _print_error(f"configuration file not found: {config_path}")
        sys.exit(1)

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.WARNING,
        format="%(levelname)s: %(message)s",
        stream=sys.stderr,
    )

    from rapport.config import ConfigValidationError, RapportConfig  # noqa: PLC0415

    try:
        config = RapportConfig.load(config_path)
    except ConfigValidationError as exc:
        _print_error(str(exc))
        sys.exit(1)
    except Exception as exc:
        if args.debug:
            raise
        _print_error(f"failed to load configuration: {exc}")
        sys.exit(1)

    from rapport.logging import configure_logging  # noqa: PLC0415

    configure_logging(config.settings.logging)

    if args.validate_only:
        _print_settings_summary(config)
        sys.exit(0)

    command = args.command
    if command is None:
        parser.print_help(sys.stderr)
        sys.exit(2)

    if command == "serve":
        from rapport.cli.commands.serve import run_serve  # noqa: PLC0415

        run_serve(config, args)
        return

    if command == "db":
        from rapport.cli.commands.db import run_db  # noqa: PLC0415

        run_db(config, args)
        return

    container = _build_container(config, args)

    if command in ("enrich", "dispatch", "run"):
        from rapport.cli.commands.jobs import run_job  # noqa: PLC0415

        run_job(container, command)
    elif command == "reminders":
        from rapport.cli.commands.reminders import run_reminders  # noqa: PLC0415

        run_reminders(container, args)
    elif command == "contacts":
        from rapport.cli.commands.reminders import run_contacts  # noqa: PLC0415

        run_contacts(container, args)


def _build_container(config, args):
    from rapport.app.context import create_container  # noqa: PLC0415

    try:
        return create_container(config.settings)
    except Exception as exc:
        if args.debug:
            raise
        _print_error(f"initialisation failed: {exc}")
        sys.exit(1)


def _print_settings_summary(config) -> None:
    """Print a short summary of the loaded configuration."""
    s = config.settings
    enabled = [name for name in ("mailbox", "calendar") if getattr(s.sources, name).enabled]
    lines = [
        f"config:     {config.source}",
        f"storage:    {s.storage.backend}",
        f"notifier:   {s.notifier.backend} -> {s.notifier.recipient or '(none)'}",
        f"sources:    {', '.join(enabled) or '(none)'}",
        f"owner:      {', '.join(s.owner.addresses) or '(none)'}",
        f"dispatcher: batch={s.dispatcher.batch_size} lease={s.dispatcher.lease_seconds}s "
        f"backoff={list(s.dispatcher.backoff_minutes)}min",
    ]
    print("\n".join(lines))  # noqa: T201
