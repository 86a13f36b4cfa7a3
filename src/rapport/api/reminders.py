"""Read-only reminder inspection plus manual completion.

``GET /reminders?status=queued&limit=50``
``GET /reminders/<id>``
``GET /reminders/by-contact/<email>``
``POST /reminders/by-contact/<email>/complete``
"""

from __future__ import annotations

from uuid import UUID

from flask import Blueprint, jsonify, request

from rapport.api.decorators import require_job_token
from rapport.app.context import get_container
from rapport.app.errors import BAD_REQUEST, NOT_FOUND, Problem
from rapport.core.types import ReminderStatus
from rapport.models.contact import normalize_email

reminders_bp = Blueprint("reminders", __name__)

_MAX_LIMIT = 500


def _limit() -> int:
    raw = request.args.get("limit", "100")
    try:
        limit = int(raw)
    except ValueError:
        raise Problem(BAD_REQUEST, f"limit must be an integer, got {raw!r}") from None
    if not 1 <= limit <= _MAX_LIMIT:
        raise Problem(BAD_REQUEST, f"limit must be between 1 and {_MAX_LIMIT}")
    return limit


@reminders_bp.route("", methods=["GET"])
@require_job_token
def list_reminders():
    container = get_container()
    raw_status = request.args.get("status")
    limit = _limit()

    if raw_status is None:
        statuses = list(ReminderStatus)
    else:
        try:
            statuses = [ReminderStatus(raw_status)]
        except ValueError:
            allowed = ", ".join(s.value for s in ReminderStatus)
            raise Problem(BAD_REQUEST, f"Unknown status {raw_status!r}; expected one of {allowed}") from None

    found = []
    for status in statuses:
        found.extend(container.reminders.find_by_status(status, limit))
    found.sort(key=lambda r: r.created_at, reverse=True)
    return jsonify([r.to_record() for r in found[:limit]])


@reminders_bp.route("/<reminder_id>", methods=["GET"])
@require_job_token
def get_reminder(reminder_id: str):
    try:
        rid = UUID(reminder_id)
    except ValueError:
        raise Problem(BAD_REQUEST, f"Invalid reminder id {reminder_id!r}") from None

    reminder = get_container().reminders.find_by_id(rid)
    if reminder is None:
        raise Problem(NOT_FOUND, f"No reminder with id {reminder_id}", 404)
    return jsonify(reminder.to_record())


@reminders_bp.route("/by-contact/<email>", methods=["GET"])
@require_job_token
def reminders_for_contact(email: str):
    container = get_container()
    reminders = container.reminders.find_by_contact(normalize_email(email))
    return jsonify([r.to_record() for r in reminders])


@reminders_bp.route("/by-contact/<email>/complete", methods=["POST"])
@require_job_token
def complete_for_contact(email: str):
    resolved = get_container().enrichment.mark_complete(email)
    if resolved is None:
        raise Problem(NOT_FOUND, f"No active reminder for {email}", 404)
    return jsonify(resolved.to_record())
