"""Tests for the ``serve`` subcommand."""

from __future__ import annotations

from types import SimpleNamespace
from unittest.mock import MagicMock, patch

import pytest

from rapport.cli.commands.serve import run_serve
from rapport.config.loader import RapportConfig


@pytest.fixture
def config(minimal_config_data):
    return RapportConfig.from_dict(minimal_config_data)


class TestRunServe:
    @patch("rapport.app.create_app")
    def test_dev_server(self, mock_create_app, config):
        app = MagicMock()
        mock_create_app.return_value = app

        run_serve(config, SimpleNamespace(dev=True, debug=False))

        server = config.settings.server
        app.run.assert_called_once_with(
            host=server.bind, port=server.port, debug=True, use_reloader=False
        )

    @patch("rapport.server.gunicorn_app.run_gunicorn")
    def test_production_server(self, mock_run_gunicorn, config):
        run_serve(config, SimpleNamespace(dev=False, debug=False))
        app, server = mock_run_gunicorn.call_args[0]
        assert server is config.settings.server
        assert "container" in app.extensions

    @patch("rapport.app.context.create_container", side_effect=RuntimeError("db down"))
    def test_initialisation_failure(self, _mock_create, config, capsys):
        with pytest.raises(SystemExit) as exc_info:
            run_serve(config, SimpleNamespace(dev=True, debug=False))
        assert exc_info.value.code == 1
        assert "initialisation failed: db down" in capsys.readouterr().err
