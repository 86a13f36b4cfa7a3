"""Tests for RapportConfig loading, env resolution and validation.

Invalid combinations that must be rejected:
- notifier timeout not shorter than the dispatcher lease
- a full batch of notifier timeouts not shorter than the lease
- smtp/webhook backends without their connection settings
- enabled sources without a path
- database pool min > max
- unknown keys anywhere in the tree
"""

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest
import yaml

from rapport.config import ConfigValidationError, RapportConfig


def _write_config(tmp_path: Path, data: dict, name: str = "config.yaml") -> Path:
    path = tmp_path / name
    if name.endswith(".json"):
        path.write_text(json.dumps(data), encoding="utf-8")
    else:
        path.write_text(yaml.safe_dump(data, sort_keys=False), encoding="utf-8")
    return path


# ---------------------------------------------------------------------------
# Loading
# ---------------------------------------------------------------------------


class TestLoad:
    def test_yaml_file(self, tmp_config_file):
        config = RapportConfig.load(tmp_config_file)
        assert config.settings.storage.backend == "memory"
        assert config.settings.owner.addresses == ("me@example.com",)
        assert config.source == str(tmp_config_file)

    def test_json_file(self, tmp_path, minimal_config_data):
        config = RapportConfig.load(_write_config(tmp_path, minimal_config_data, "c.json"))
        assert config.settings.notifier.recipient == "me@example.com"

    def test_empty_file_uses_defaults(self, tmp_path):
        path = tmp_path / "empty.yaml"
        path.write_text("", encoding="utf-8")
        s = RapportConfig.load(path).settings
        assert s.storage.backend == "postgres"
        assert s.dispatcher.batch_size == 10
        assert s.dispatcher.lease_seconds == 600
        assert s.dispatcher.backoff_minutes == (5, 30, 240)
        assert s.dispatcher.max_attempts == 4
        assert s.notifier.backend == "log"
        assert s.enrichment.meeting_lookback_days == 14

    def test_missing_file(self, tmp_path):
        with pytest.raises(ConfigValidationError, match="Cannot read"):
            RapportConfig.load(tmp_path / "nope.yaml")

    def test_invalid_yaml(self, tmp_path):
        path = tmp_path / "bad.yaml"
        path.write_text("owner: [unclosed", encoding="utf-8")
        with pytest.raises(ConfigValidationError, match="Cannot parse"):
            RapportConfig.load(path)

    def test_top_level_must_be_mapping(self, tmp_path):
        path = tmp_path / "list.yaml"
        path.write_text("- a\n- b\n", encoding="utf-8")
        with pytest.raises(ConfigValidationError, match="mapping"):
            RapportConfig.load(path)

    def test_dotted_get(self, minimal_config_data):
        config = RapportConfig.from_dict(minimal_config_data)
        assert config.get("notifier.backend") == "log"
        assert config.get("dispatcher.batch_size", 10) == 10
        assert config.get("owner.addresses.0") is None

    def test_from_dict_does_not_mutate_input(self, minimal_config_data, monkeypatch):
        monkeypatch.setenv("RAPPORT_TEST_TOKEN", "from-env")
        minimal_config_data["api"]["job_token"] = "${RAPPORT_TEST_TOKEN}"
        config = RapportConfig.from_dict(minimal_config_data)
        assert config.settings.api.job_token == "from-env"
        assert minimal_config_data["api"]["job_token"] == "${RAPPORT_TEST_TOKEN}"

    def test_lowercases_owner_and_exclusions(self):
        s = RapportConfig.from_dict(
            {
                "owner": {"addresses": ["Me@Example.COM"]},
                "exclusions": {"domains": ["@MailChimp.com"]},
            }
        ).settings
        assert s.owner.addresses == ("me@example.com",)
        assert s.exclusions.domains == ("mailchimp.com",)


# ---------------------------------------------------------------------------
# Environment variables
# ---------------------------------------------------------------------------


class TestEnvResolution:
    def test_default_used_when_unset(self, monkeypatch):
        monkeypatch.delenv("RAPPORT_DB_HOST", raising=False)
        config = RapportConfig.from_dict({"database": {"host": "${RAPPORT_DB_HOST:-db.local}"}})
        assert config.settings.database.host == "db.local"

    def test_env_wins_over_default(self, monkeypatch):
        monkeypatch.setenv("RAPPORT_DB_HOST", "pg.internal")
        config = RapportConfig.from_dict({"database": {"host": "${RAPPORT_DB_HOST:-db.local}"}})
        assert config.settings.database.host == "pg.internal"

    def test_missing_without_default(self, monkeypatch):
        monkeypatch.delenv("RAPPORT_SMTP_PASSWORD", raising=False)
        with pytest.raises(ConfigValidationError, match="smtp.password"):
            RapportConfig.from_dict({"smtp": {"password": "${RAPPORT_SMTP_PASSWORD}"}})

    def test_list_items_resolved(self, monkeypatch):
        monkeypatch.setenv("RAPPORT_OWNER", "boss@example.com")
        config = RapportConfig.from_dict({"owner": {"addresses": ["${RAPPORT_OWNER}"]}})
        assert config.settings.owner.addresses == ("boss@example.com",)


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


class TestValidation:
    def test_unknown_key_rejected(self):
        with pytest.raises(ConfigValidationError, match="dispatcher"):
            RapportConfig.from_dict({"dispatcher": {"batchsize": 10}})

    def test_wrong_type_rejected(self):
        with pytest.raises(ConfigValidationError, match="batch_size"):
            RapportConfig.from_dict({"dispatcher": {"batch_size": "ten"}})

    def test_timeout_must_be_shorter_than_lease(self):
        with pytest.raises(ConfigValidationError, match="lease_seconds"):
            RapportConfig.from_dict(
                {"dispatcher": {"lease_seconds": 30}, "notifier": {"timeout_seconds": 30}}
            )

    def test_full_batch_of_timeouts_must_fit_in_lease(self):
        with pytest.raises(ConfigValidationError, match="batch_size") as exc_info:
            RapportConfig.from_dict({"dispatcher": {"batch_size": 25}})
        assert any("x notifier.timeout_seconds (30)" in e for e in exc_info.value.errors)

    def test_batch_fitting_in_lease_accepted(self):
        config = RapportConfig.from_dict(
            {"dispatcher": {"batch_size": 25, "lease_seconds": 900}, "notifier": {"timeout_seconds": 20}}
        )
        assert config.settings.dispatcher.batch_size == 25

    def test_smtp_requires_settings(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            RapportConfig.from_dict({"notifier": {"backend": "smtp"}})
        errors = exc_info.value.errors
        assert any("smtp.host" in e for e in errors)
        assert any("smtp.from_address" in e for e in errors)
        assert any("notifier.recipient" in e for e in errors)

    def test_webhook_requires_http_url(self):
        with pytest.raises(ConfigValidationError, match="webhook.url"):
            RapportConfig.from_dict(
                {"notifier": {"backend": "webhook"}, "webhook": {"url": "ftp://x"}}
            )

    def test_enabled_source_requires_path(self):
        with pytest.raises(ConfigValidationError, match="sources.calendar.path"):
            RapportConfig.from_dict({"sources": {"calendar": {"enabled": True}}})

    def test_pool_bounds(self):
        with pytest.raises(ConfigValidationError, match="min_connections"):
            RapportConfig.from_dict({"database": {"min_connections": 10, "max_connections": 2}})

    def test_empty_backoff_rejected(self):
        with pytest.raises(ConfigValidationError):
            RapportConfig.from_dict({"dispatcher": {"backoff_minutes": []}})

    def test_unsorted_backoff_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="rapport.config.loader"):
            config = RapportConfig.from_dict({"dispatcher": {"backoff_minutes": [30, 5]}})
        assert config.settings.dispatcher.backoff_minutes == (30, 5)
        assert "non-decreasing" in caplog.text

    def test_empty_job_token_warns(self, caplog):
        with caplog.at_level(logging.WARNING, logger="rapport.config.loader"):
            RapportConfig.from_dict({"storage": {"backend": "memory"}})
        assert "job_token" in caplog.text

    def test_error_lists_every_problem(self):
        with pytest.raises(ConfigValidationError) as exc_info:
            RapportConfig.from_dict(
                {
                    "database": {"min_connections": 10, "max_connections": 2},
                    "sources": {"mailbox": {"enabled": True}},
                }
            )
        assert len(exc_info.value.errors) == 2
        assert "Configuration validation failed" in str(exc_info.value)
