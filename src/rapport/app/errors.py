"""RFC 7807 Problem Details for the HTTP surface.

Usage::

    raise Problem(NOT_FOUND, "No reminder with that id", 404)
"""

from __future__ import annotations

import logging
from typing import Any

from flask import Flask, jsonify
from werkzeug.exceptions import HTTPException

from rapport.core.errors import StoreUnavailable

log = logging.getLogger(__name__)

_P = "urn:rapport:error:"

BAD_REQUEST = _P + "badRequest"
NOT_FOUND = _P + "notFound"
SERVER_INTERNAL = _P + "serverInternal"
STORE_UNAVAILABLE = _P + "storeUnavailable"
UNAUTHORIZED = _P + "unauthorized"

PROBLEM_CONTENT_TYPE = "application/problem+json"


class Problem(Exception):  # noqa: N818
    """An RFC 7807 *problem details* object that doubles as an exception."""

    def __init__(
        self,
        error_type: str,
        detail: str,
        status: int = 400,
        *,
        title: str | None = None,
        headers: dict[str, str] | None = None,
    ) -> None:
        self.error_type = error_type
        self.detail = detail
        self.status = status
        self.title = title
        self.extra_headers = headers or {}
        super().__init__(detail)

    def to_dict(self) -> dict[str, Any]:
        body: dict[str, Any] = {
            "type": self.error_type,
            "detail": self.detail,
            "status": self.status,
        }
        if self.title is not None:
            body["title"] = self.title
        return body

    def to_response(self):
        resp = jsonify(self.to_dict())
        resp.status_code = self.status
        resp.headers["Content-Type"] = PROBLEM_CONTENT_TYPE
        resp.headers["Cache-Control"] = "no-store"
        for key, value in self.extra_headers.items():
            resp.headers[key] = value
        return resp


def register_error_handlers(app: Flask) -> None:
    """Attach handlers that produce RFC 7807 responses for all errors."""

    @app.errorhandler(Problem)
    def _handle_problem(exc: Problem):
        return exc.to_response()

    @app.errorhandler(StoreUnavailable)
    def _handle_store_unavailable(exc: StoreUnavailable):
        log.error("Reminder store unavailable: %s", exc)
        return Problem(
            STORE_UNAVAILABLE,
            "The reminder store is unavailable; retry later",
            503,
            headers={"Retry-After": "60"},
        ).to_response()

    @app.errorhandler(HTTPException)
    def _handle_http_exception(exc: HTTPException):
        return Problem(
            "about:blank",
            exc.description or "An error occurred",
            exc.code or 500,
            title=exc.name,
        ).to_response()

    @app.errorhandler(Exception)
    def _handle_unhandled(exc: Exception):
        log.exception("Unhandled exception during request")
        return Problem(SERVER_INTERNAL, "An unexpected internal error occurred", 500).to_response()
