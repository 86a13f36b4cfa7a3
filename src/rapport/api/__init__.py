"""HTTP API layer: Flask blueprint registration.

Call :func:`register_blueprints` during application startup to wire
the job, reminder and metrics blueprints into the Flask app.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from flask import Flask

log = logging.getLogger(__name__)


def register_blueprints(app: Flask) -> None:
    """Register all Rapport blueprints on the Flask application."""
    from rapport.api.jobs import jobs_bp  # noqa: PLC0415
    from rapport.api.metrics import metrics_bp  # noqa: PLC0415
    from rapport.api.reminders import reminders_bp  # noqa: PLC0415

    app.register_blueprint(jobs_bp, url_prefix="/jobs")
    app.register_blueprint(reminders_bp, url_prefix="/reminders")
    app.register_blueprint(metrics_bp, url_prefix="/metrics")

    log.info("Registered API blueprints")
