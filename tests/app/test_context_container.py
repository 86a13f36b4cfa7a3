"""Tests for rapport.app.context: the dependency container."""

from __future__ import annotations

from dataclasses import replace
from unittest.mock import MagicMock, patch

import pytest

from rapport.app.context import Container, create_container
from rapport.config.settings import build_settings
from rapport.core.types import RunKind
from rapport.notifications.log import LogNotifier
from rapport.repositories.memory import InMemoryReminderStore
from rapport.repositories.reminder import ReminderRepository


class TestMemoryBackend:
    def test_wires_memory_stores(self, settings, clock):
        c = Container(settings, clock=clock)
        assert isinstance(c.reminders, InMemoryReminderStore)
        assert c.run_history is None
        assert isinstance(c.notifier, LogNotifier)

    def test_policy_follows_dispatcher_settings(self, minimal_config_data, clock):
        data = dict(
            minimal_config_data,
            dispatcher={"backoff_minutes": [1, 2], "lease_seconds": 30},
        )
        c = Container(build_settings(data), clock=clock)
        assert c.policy.max_attempts == 3
        assert c.policy.lease.total_seconds() == 30
        assert c.reminders.policy is c.policy

    def test_containers_are_independent(self, settings, clock):
        a = Container(settings, clock=clock)
        b = Container(settings, clock=clock)
        assert a.reminders is not b.reminders
        assert a.metrics is not b.metrics


class TestPostgresBackend:
    def _pg_settings(self, minimal_config_data):
        data = dict(minimal_config_data, storage={"backend": "postgres"})
        return build_settings(data)

    def test_requires_database(self, minimal_config_data):
        with pytest.raises(RuntimeError, match="requires an initialised database"):
            Container(self._pg_settings(minimal_config_data))

    def test_uses_repositories(self, minimal_config_data):
        c = Container(self._pg_settings(minimal_config_data), database=MagicMock())
        assert isinstance(c.reminders, ReminderRepository)

    def test_create_container_initialises_database(self, minimal_config_data):
        settings = self._pg_settings(minimal_config_data)
        with patch("rapport.db.init.init_database") as mock_init:
            mock_init.return_value = MagicMock()
            c = create_container(settings)
        mock_init.assert_called_once_with(settings.database)
        assert c.db is mock_init.return_value


class TestEntryPoints:
    def test_run_dispatch_records_metrics_and_gauges(self, settings, clock):
        c = Container(settings, clock=clock)
        summary = c.run_dispatch()
        assert summary.claimed == 0
        assert c.metrics.get("runs_total", {"kind": "dispatch", "outcome": "ok"}) == 1
        assert c.metrics.get_gauge("reminders", {"status": "queued"}) == 0

    def test_run_history_recorded_when_enabled(self, settings, clock):
        settings = replace(settings, run_history=replace(settings.run_history, enabled=True))
        c = Container(settings, clock=clock)
        c.run_enrich([])
        (record,) = c.run_history.recent()
        assert record.kind is RunKind.ENRICH
