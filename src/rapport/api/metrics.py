"""Prometheus-compatible metrics endpoint.

``GET /metrics`` returns metrics in text exposition format.  Reminder
gauges are refreshed from the store on every scrape.
"""

from __future__ import annotations

import logging

from flask import Blueprint, make_response

from rapport.app.context import get_container
from rapport.core.errors import StoreUnavailable

log = logging.getLogger(__name__)

metrics_bp = Blueprint("metrics", __name__)


@metrics_bp.route("", methods=["GET"])
def get_metrics():
    """Return metrics in Prometheus text exposition format."""
    container = get_container()
    try:
        container.refresh_gauges()
    except StoreUnavailable:
        log.warning("Store unavailable while refreshing reminder gauges")

    response = make_response(container.metrics.export())
    response.headers["Content-Type"] = "text/plain; version=0.0.4; charset=utf-8"
    return response
