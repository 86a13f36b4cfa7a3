"""Job-trigger endpoints for an external scheduler.

``POST /jobs/enrich`` and ``POST /jobs/dispatch`` each run one pass of
the corresponding entry point synchronously and return its counters.
``GET /jobs/runs`` lists recent run history when it is enabled.
"""

from __future__ import annotations

import logging

from flask import Blueprint, jsonify, request

from rapport.api.decorators import require_job_token
from rapport.app.context import get_container
from rapport.app.errors import BAD_REQUEST, NOT_FOUND, Problem

log = logging.getLogger(__name__)

jobs_bp = Blueprint("jobs", __name__)


@jobs_bp.route("/enrich", methods=["POST"])
@require_job_token
def run_enrich():
    container = get_container()
    summary = container.run_enrich()
    return jsonify({"kind": "enrich", "counters": summary.counters()})


@jobs_bp.route("/dispatch", methods=["POST"])
@require_job_token
def run_dispatch():
    container = get_container()
    summary = container.run_dispatch()
    return jsonify({"kind": "dispatch", "counters": summary.counters()})


@jobs_bp.route("/runs", methods=["GET"])
@require_job_token
def list_runs():
    container = get_container()
    if container.run_history is None:
        raise Problem(NOT_FOUND, "Run history is not enabled", 404)
    try:
        limit = int(request.args.get("limit", "20"))
    except ValueError:
        raise Problem(BAD_REQUEST, "limit must be an integer") from None
    if not 1 <= limit <= 500:
        raise Problem(BAD_REQUEST, "limit must be between 1 and 500")

    runs = container.run_history.recent(limit)
    return jsonify(
        [
            {
                "id": str(run.id),
                "kind": run.kind.value,
                "startedAt": run.started_at.isoformat(),
                "finishedAt": run.finished_at.isoformat(),
                "durationSeconds": run.duration_seconds,
                "counters": run.counters,
                "error": run.error,
            }
            for run in runs
        ]
    )
