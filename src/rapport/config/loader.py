"""Rapport configuration loader.

Lifecycle::

    # 1. Entry points load the file once
    config = RapportConfig.load("/etc/rapport/rapport.yaml")

    # 2. The immutable value is passed to whatever needs it
    dispatcher = build_dispatcher(config.settings, ...)

    # 3. Dynamic access for diagnostics
    config.get("dispatcher.batch_size", default=10)

There is no module-level singleton: two configs can coexist in one
process, which is what the tests rely on.
"""

from __future__ import annotations

import json
import logging
import os
import re
from pathlib import Path
from typing import Any

import yaml
from jsonschema import Draft202012Validator

from rapport.config.settings import RapportSettings, build_settings

SCHEMA_PATH = Path(__file__).parent / "schema.json"

_ENV_RE = re.compile(
    r"^\$\{([^}:]+?)(?::-(.*))?\}$",
    re.DOTALL,
)

_NOTIFIER_BACKENDS = frozenset({"log", "smtp", "webhook"})

log = logging.getLogger(__name__)


class ConfigValidationError(Exception):
    """Raised when schema or cross-field validation finds one or more problems."""

    def __init__(self, errors: list[str]) -> None:
        self.errors = errors
        body = "\n".join(f"  - {e}" for e in errors)
        super().__init__(f"Configuration validation failed:\n{body}")


# ---------------------------------------------------------------------------
# Environment variable resolution
# ---------------------------------------------------------------------------


def _resolve_value(value: str, path: str) -> str:
    """Replace ``${VAR}`` or ``${VAR:-default}`` with the env var value."""
    match = _ENV_RE.match(value)
    if match is None:
        return value
    var_name, fallback = match.group(1), match.group(2)
    resolved = os.environ.get(var_name)
    if resolved is not None:
        return resolved
    if fallback is not None:
        return fallback
    raise ConfigValidationError(
        [
            f"Environment variable '${{{var_name}}}' referenced "
            f"at '{path}' is not set and has no default",
        ],
    )


def _resolve_env_vars(data: Any, path: str = "") -> None:  # noqa: ANN401
    """Walk *data* in place and resolve ``${VAR}``/``${VAR:-default}`` strings."""
    if isinstance(data, dict):
        for key in data:
            child_path = f"{path}.{key}" if path else key
            if isinstance(data[key], str):
                data[key] = _resolve_value(data[key], child_path)
            elif isinstance(data[key], (dict, list)):
                _resolve_env_vars(data[key], child_path)
    elif isinstance(data, list):
        for idx, item in enumerate(data):
            child_path = f"{path}[{idx}]"
            if isinstance(item, str):
                data[idx] = _resolve_value(item, child_path)
            elif isinstance(item, (dict, list)):
                _resolve_env_vars(item, child_path)


def _read_file(path: Path) -> dict:
    try:
        text = path.read_text(encoding="utf-8")
    except OSError as exc:
        raise ConfigValidationError([f"Cannot read config file {path}: {exc}"]) from exc
    try:
        if path.suffix in (".yaml", ".yml"):
            data = yaml.safe_load(text)
        else:
            data = json.loads(text)
    except (yaml.YAMLError, json.JSONDecodeError) as exc:
        raise ConfigValidationError([f"Cannot parse config file {path}: {exc}"]) from exc
    if data is None:
        return {}
    if not isinstance(data, dict):
        raise ConfigValidationError([f"Config file {path} must contain a mapping at top level"])
    return data


def _load_schema() -> dict:
    return json.loads(SCHEMA_PATH.read_text(encoding="utf-8"))


# ---------------------------------------------------------------------------
# Config value
# ---------------------------------------------------------------------------


class RapportConfig:
    """Validated configuration: raw data plus the typed settings tree."""

    def __init__(self, data: dict[str, Any], *, source: str | None = None) -> None:
        self._data = data
        self._source = source
        self._settings: RapportSettings = build_settings(data)

    # -- construction --------------------------------------------------------

    @classmethod
    def load(cls, path: str | Path) -> RapportConfig:
        """Read, env-resolve and validate the YAML/JSON file at *path*."""
        path = Path(path)
        data = _read_file(path)
        return cls.from_dict(data, source=str(path))

    @classmethod
    def from_dict(cls, data: dict[str, Any], *, source: str | None = None) -> RapportConfig:
        """Validate an in-memory mapping.  *data* is copied, never mutated."""
        data = json.loads(json.dumps(data))
        _resolve_env_vars(data)
        validate(data)
        return cls(data, source=source)

    # -- access --------------------------------------------------------------

    @property
    def settings(self) -> RapportSettings:
        """Fully-typed, frozen settings tree."""
        return self._settings

    @property
    def data(self) -> dict[str, Any]:
        return self._data

    @property
    def source(self) -> str | None:
        return self._source

    def get(self, dotted: str, default: Any = None) -> Any:  # noqa: ANN401
        node: Any = self._data
        for part in dotted.split("."):
            if not isinstance(node, dict) or part not in node:
                return default
            node = node[part]
        return node

    def __repr__(self) -> str:
        return f"<RapportConfig config_file={self._source or '?'}>"


# ---------------------------------------------------------------------------
# Validation
# ---------------------------------------------------------------------------


def validate(data: dict[str, Any]) -> None:
    """Schema validation followed by cross-field checks.

    Raises :class:`ConfigValidationError` listing every problem found.
    """
    validator = Draft202012Validator(_load_schema())
    schema_errors = sorted(validator.iter_errors(data), key=lambda e: list(e.absolute_path))
    if schema_errors:
        raise ConfigValidationError(
            [
                f"{'.'.join(str(p) for p in err.absolute_path) or '(root)'}: {err.message}"
                for err in schema_errors
            ]
        )
    additional_checks(data)


def additional_checks(data: dict[str, Any]) -> None:  # noqa: C901, PLR0912
    """Semantic and cross-field validation run after the schema passes."""
    errors: list[str] = []
    warnings: list[str] = []

    dispatcher = data.get("dispatcher") or {}
    notifier = data.get("notifier") or {}
    lease = dispatcher.get("lease_seconds", 600)
    timeout = notifier.get("timeout_seconds", 30)
    batch = dispatcher.get("batch_size", 10)

    # -- Notifier timeout vs lease --
    if timeout >= lease:
        errors.append(
            f"notifier.timeout_seconds ({timeout}) must be shorter than "
            f"dispatcher.lease_seconds ({lease})",
        )
    elif batch * timeout >= lease:
        errors.append(
            f"dispatcher.batch_size ({batch}) x notifier.timeout_seconds ({timeout}) "
            f"must be shorter than dispatcher.lease_seconds ({lease})",
        )

    backoff = dispatcher.get("backoff_minutes", [5, 30, 240])
    if list(backoff) != sorted(backoff):
        warnings.append(
            f"dispatcher.backoff_minutes {backoff} is not non-decreasing",
        )

    # -- Notifier backend --
    backend = notifier.get("backend", "log")
    if backend not in _NOTIFIER_BACKENDS:
        errors.append(f"notifier.backend {backend!r} is not one of {sorted(_NOTIFIER_BACKENDS)}")
    if backend == "smtp":
        smtp = data.get("smtp") or {}
        if not smtp.get("host"):
            errors.append("smtp.host is required when notifier.backend is 'smtp'")
        if not smtp.get("from_address"):
            errors.append("smtp.from_address is required when notifier.backend is 'smtp'")
        if not notifier.get("recipient"):
            errors.append("notifier.recipient is required when notifier.backend is 'smtp'")
    if backend == "webhook":
        url = (data.get("webhook") or {}).get("url", "")
        if not url.startswith(("http://", "https://")):
            errors.append("webhook.url must be an http(s) URL when notifier.backend is 'webhook'")

    # -- Sources --
    sources = data.get("sources") or {}
    for name in ("mailbox", "calendar"):
        src = sources.get(name) or {}
        if src.get("enabled") and not src.get("path"):
            errors.append(f"sources.{name}.path is required when sources.{name}.enabled is true")

    # -- Database pool --
    database = data.get("database") or {}
    min_conn = database.get("min_connections", 1)
    max_conn = database.get("max_connections", 5)
    if min_conn > max_conn:
        errors.append(
            f"database.min_connections ({min_conn}) must be <= "
            f"database.max_connections ({max_conn})",
        )

    # -- Run history needs a database --
    storage = (data.get("storage") or {}).get("backend", "postgres")
    if (data.get("run_history") or {}).get("enabled") and storage != "postgres":
        warnings.append(
            "run_history.enabled is true with storage.backend "
            f"{storage!r}; runs are kept in memory only",
        )

    # -- Owner & API --
    if not (data.get("owner") or {}).get("addresses"):
        warnings.append(
            "owner.addresses is empty; messages you send cannot be told apart from received ones",
        )
    if not (data.get("api") or {}).get("job_token"):
        warnings.append("api.job_token is empty; job endpoints will reject every request")

    for w in warnings:
        log.warning("Config warning: %s", w)

    if errors:
        raise ConfigValidationError(errors)
