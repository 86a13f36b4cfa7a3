"""Root conftest for the Rapport test suite."""

from __future__ import annotations

import sys
from datetime import UTC, datetime, timedelta
from pathlib import Path

import pytest
import yaml

# ---------------------------------------------------------------------------
# Make ``src/`` importable without installing the package
# ---------------------------------------------------------------------------
_SRC = str(Path(__file__).resolve().parent.parent / "src")
if _SRC not in sys.path:
    sys.path.insert(0, _SRC)

from rapport.config.settings import build_settings  # noqa: E402
from rapport.core.lifecycle import RetryPolicy  # noqa: E402
from rapport.repositories.memory import (  # noqa: E402
    InMemoryContactStore,
    InMemoryReminderStore,
)

T0 = datetime(2026, 3, 2, 9, 0, tzinfo=UTC)
OWNER = "me@example.com"


# ---------------------------------------------------------------------------
# Clock
# ---------------------------------------------------------------------------


class FakeClock:
    """Manually advanced clock; call it to read the time."""

    def __init__(self, start: datetime = T0) -> None:
        self.now = start

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> datetime:
        self.now += timedelta(**kwargs)
        return self.now


@pytest.fixture()
def clock() -> FakeClock:
    return FakeClock()


# ---------------------------------------------------------------------------
# Config data shared by multiple test modules
# ---------------------------------------------------------------------------


@pytest.fixture()
def minimal_config_data() -> dict:
    """Return a config dict for the in-memory backend and log notifier."""
    return {
        "owner": {"addresses": [OWNER], "internal_domains": ["example.com"]},
        "exclusions": {"emails": ["noreply@github.com"], "domains": ["mailchimp.com"]},
        "storage": {"backend": "memory"},
        "notifier": {"backend": "log", "recipient": OWNER},
        "api": {"job_token": "s3cret-job-token"},
    }


@pytest.fixture()
def settings(minimal_config_data):
    return build_settings(minimal_config_data)


@pytest.fixture()
def tmp_config_file(tmp_path: Path, minimal_config_data: dict) -> Path:
    """Write *minimal_config_data* to a temp YAML file and return its path."""
    cfg = tmp_path / "config.yaml"
    cfg.write_text(
        yaml.safe_dump(minimal_config_data, default_flow_style=False, sort_keys=False),
        encoding="utf-8",
    )
    return cfg


# ---------------------------------------------------------------------------
# Stores
# ---------------------------------------------------------------------------


@pytest.fixture()
def policy() -> RetryPolicy:
    return RetryPolicy()


@pytest.fixture()
def reminder_store(policy) -> InMemoryReminderStore:
    return InMemoryReminderStore(policy)


@pytest.fixture()
def contact_store() -> InMemoryContactStore:
    return InMemoryContactStore()


# ---------------------------------------------------------------------------
# Logging cleanup: configure_logging() detaches "rapport" from the root
# logger, which would hide records from caplog in later tests.
# ---------------------------------------------------------------------------


@pytest.fixture(autouse=True)
def _reset_rapport_logger():
    yield
    import logging  # noqa: PLC0415

    root = logging.getLogger("rapport")
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
    root.propagate = True
    root.setLevel(logging.NOTSET)
