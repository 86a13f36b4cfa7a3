"""Logging subsystem for Rapport.

Public API::

    from rapport.logging import configure_logging, run_context

    configure_logging(settings.logging)
"""

from rapport.logging.sanitize import sanitize_error, sanitize_for_logs
from rapport.logging.setup import configure_logging, run_context

__all__ = ["configure_logging", "run_context", "sanitize_error", "sanitize_for_logs"]
