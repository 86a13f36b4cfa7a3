"""``serve`` subcommand: the HTTP job server."""

from __future__ import annotations

import logging
import sys

log = logging.getLogger(__name__)


def run_serve(config, args) -> None:
    from rapport.app import create_app  # noqa: PLC0415
    from rapport.app.context import create_container  # noqa: PLC0415

    try:
        container = create_container(config.settings)
    except Exception as exc:
        if args.debug:
            raise
        print(f"rapport: error: initialisation failed: {exc}", file=sys.stderr)  # noqa: T201
        sys.exit(1)

    app = create_app(config, container=container)
    server = config.settings.server

    if args.dev:
        log.info("Starting development server (not for production)")
        app.run(host=server.bind, port=server.port, debug=True, use_reloader=False)
        return

    from rapport.server.gunicorn_app import run_gunicorn  # noqa: PLC0415

    run_gunicorn(app, server)
