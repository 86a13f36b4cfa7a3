"""WSGI entry point for external servers (gunicorn, uWSGI, etc.).

The config file path is read from the ``RAPPORT_CONFIG`` environment
variable.

Example::

    export RAPPORT_CONFIG=/etc/rapport/config.yaml
    gunicorn "rapport.server.wsgi:app"
"""

from __future__ import annotations

import os
import sys

_config_path = os.environ.get("RAPPORT_CONFIG")
if _config_path is None:
    sys.exit("RAPPORT_CONFIG is not set")

from rapport.config import RapportConfig  # noqa: E402

_config = RapportConfig.load(_config_path)

from rapport.logging import configure_logging  # noqa: E402

configure_logging(_config.settings.logging)

from rapport.app.context import create_container  # noqa: E402

_container = create_container(_config.settings)

from rapport.app import create_app  # noqa: E402

app = create_app(_config, container=_container)
