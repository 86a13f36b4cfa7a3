"""Flask application factory for Rapport.

Usage::

    from rapport.app import create_app
    from rapport.app.context import create_container
    from rapport.config import RapportConfig

    config = RapportConfig.load("rapport.yaml")
    app = create_app(config, container=create_container(config.settings))
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from flask import Flask, jsonify

if TYPE_CHECKING:
    from flask.typing import ResponseReturnValue

    from rapport.app.context import Container
    from rapport.config.loader import RapportConfig

log = logging.getLogger(__name__)


def create_app(config: RapportConfig, container: Container | None = None) -> Flask:
    """Create and configure the Rapport Flask application.

    Parameters
    ----------
    config:
        Loaded :class:`RapportConfig`.
    container:
        Dependency container.  When ``None`` only the health probe is
        served (useful for ``--validate-only``); the reminder and job
        endpoints answer 503.

    """
    settings = config.settings

    app = Flask("rapport")
    app.config["RAPPORT_SETTINGS"] = settings
    app.config["RAPPORT_CONFIG"] = config
    app.config["MAX_CONTENT_LENGTH"] = 1024 * 1024

    from rapport.app.errors import register_error_handlers  # noqa: PLC0415

    register_error_handlers(app)
    _register_health(app)

    if container is not None:
        app.extensions["container"] = container

    from rapport.api import register_blueprints  # noqa: PLC0415

    register_blueprints(app)

    log.info("Flask application created (storage=%s)", settings.storage.backend)
    return app


def _register_health(app: Flask) -> None:
    from rapport import __version__  # noqa: PLC0415

    @app.route("/healthz")
    def healthz() -> ResponseReturnValue:
        """Store reachability plus reminder counts per status."""
        result: dict = {"status": "ok", "version": __version__}
        container = app.extensions.get("container")
        if container is None:
            result["status"] = "degraded"
            result["checks"] = {"container": "missing"}
            return jsonify(result), 503

        try:
            result["reminders"] = container.reminders.count_by_status()
            result["checks"] = {"store": "connected"}
        except Exception:  # noqa: BLE001
            result["status"] = "degraded"
            result["checks"] = {"store": "unavailable"}

        return jsonify(result), 200 if result["status"] == "ok" else 503
