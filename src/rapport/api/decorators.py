"""Route decorators shared by the API blueprints."""

from __future__ import annotations

import functools
import hmac

from flask import current_app, request

from rapport.app.errors import UNAUTHORIZED, Problem


def require_job_token(view):
    """Require ``Authorization: Bearer <api.job_token>``.

    With no token configured the protected endpoints are disabled and
    answer 403.
    """

    @functools.wraps(view)
    def wrapper(*args, **kwargs):
        settings = current_app.config["RAPPORT_SETTINGS"]
        expected = settings.api.job_token
        if not expected:
            raise Problem(UNAUTHORIZED, "Job endpoints are disabled: api.job_token is not set", 403)

        auth_header = request.headers.get("Authorization", "")
        if not auth_header.startswith("Bearer "):
            raise Problem(
                UNAUTHORIZED,
                "Job endpoints require a bearer token",
                401,
                headers={"WWW-Authenticate": "Bearer"},
            )
        if not hmac.compare_digest(auth_header[7:].encode(), expected.encode()):
            raise Problem(UNAUTHORIZED, "Invalid bearer token", 401)
        return view(*args, **kwargs)

    return wrapper
