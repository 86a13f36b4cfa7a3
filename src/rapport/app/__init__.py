"""Flask application package for Rapport.

Public API::

    from rapport.app import create_app
"""

from rapport.app.factory import create_app

__all__ = ["create_app"]
