"""Typed, frozen dataclasses for every configuration section.

This module is the **single source of truth** for default values.
JSON Schema defaults exist only for documentation; these builders are
what the application actually reads.

Access pattern::

    from rapport.config import RapportConfig

    settings = RapportConfig.load("rapport.yaml").settings
    print(settings.dispatcher.batch_size, settings.dispatcher.backoff_minutes)
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

# ---------------------------------------------------------------------------
# Owner & exclusions
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class OwnerSettings:
    """The mailbox owner: their addresses are never contacts."""

    addresses: tuple[str, ...]
    name: str
    internal_domains: tuple[str, ...]


def _lower_tuple(values: list | tuple | None) -> tuple[str, ...]:
    return tuple(str(v).strip().lower() for v in (values or ()) if str(v).strip())


def _build_owner(data: dict | None) -> OwnerSettings:
    d = data or {}
    return OwnerSettings(
        addresses=_lower_tuple(d.get("addresses")),
        name=d.get("name", ""),
        internal_domains=_lower_tuple(d.get("internal_domains")),
    )


@dataclass(frozen=True)
class ExclusionSettings:
    """Addresses and domains that never get reminders (newsletters, bots)."""

    emails: tuple[str, ...]
    domains: tuple[str, ...]


def _build_exclusions(data: dict | None) -> ExclusionSettings:
    d = data or {}
    return ExclusionSettings(
        emails=_lower_tuple(d.get("emails")),
        domains=tuple(dom.lstrip("@") for dom in _lower_tuple(d.get("domains"))),
    )


# ---------------------------------------------------------------------------
# Storage
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class StorageSettings:
    backend: str


def _build_storage(data: dict | None) -> StorageSettings:
    d = data or {}
    return StorageSettings(backend=d.get("backend", "postgres"))


@dataclass(frozen=True)
class DatabaseSettings:
    """PostgreSQL connection and pool settings."""

    host: str
    port: int
    database: str
    user: str
    password: str
    sslmode: str
    min_connections: int
    max_connections: int
    connection_timeout: float
    auto_setup: bool


def _build_database(data: dict | None) -> DatabaseSettings:
    d = data or {}
    return DatabaseSettings(
        host=d.get("host", "localhost"),
        port=d.get("port", 5432),
        database=d.get("database", "rapport"),
        user=d.get("user", "rapport"),
        password=d.get("password", ""),
        sslmode=d.get("sslmode", "prefer"),
        min_connections=d.get("min_connections", 1),
        max_connections=d.get("max_connections", 5),
        connection_timeout=d.get("connection_timeout", 30.0),
        auto_setup=d.get("auto_setup", False),
    )


# ---------------------------------------------------------------------------
# Dispatcher & enrichment
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class DispatcherSettings:
    """Poll-claim-send loop tuning."""

    batch_size: int
    lease_seconds: int
    backoff_minutes: tuple[int, ...]

    @property
    def max_attempts(self) -> int:
        return len(self.backoff_minutes) + 1


def _build_dispatcher(data: dict | None) -> DispatcherSettings:
    d = data or {}
    return DispatcherSettings(
        batch_size=d.get("batch_size", 10),
        lease_seconds=d.get("lease_seconds", 600),
        backoff_minutes=tuple(d.get("backoff_minutes", (5, 30, 240))),
    )


@dataclass(frozen=True)
class EnrichmentSettings:
    meeting_lookback_days: int
    mail_base_url: str
    preview_length: int


def _build_enrichment(data: dict | None) -> EnrichmentSettings:
    d = data or {}
    return EnrichmentSettings(
        meeting_lookback_days=d.get("meeting_lookback_days", 14),
        mail_base_url=d.get("mail_base_url", "https://mail.google.com/mail/u/0/#all/"),
        preview_length=d.get("preview_length", 200),
    )


# ---------------------------------------------------------------------------
# Event sources
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class FileSourceSettings:
    """A JSON-lines export consumed by a file-backed event source."""

    enabled: bool
    path: str | None


def _build_file_source(data: dict | None) -> FileSourceSettings:
    d = data or {}
    return FileSourceSettings(
        enabled=d.get("enabled", False),
        path=d.get("path"),
    )


@dataclass(frozen=True)
class SourceSettings:
    mailbox: FileSourceSettings
    calendar: FileSourceSettings


def _build_sources(data: dict | None) -> SourceSettings:
    d = data or {}
    return SourceSettings(
        mailbox=_build_file_source(d.get("mailbox")),
        calendar=_build_file_source(d.get("calendar")),
    )


# ---------------------------------------------------------------------------
# Notifier
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class NotifierSettings:
    """Which delivery backend sends reminders, and to whom."""

    backend: str
    recipient: str
    templates_path: str | None
    timeout_seconds: int


def _build_notifier(data: dict | None) -> NotifierSettings:
    d = data or {}
    return NotifierSettings(
        backend=d.get("backend", "log"),
        recipient=d.get("recipient", ""),
        templates_path=d.get("templates_path"),
        timeout_seconds=d.get("timeout_seconds", 30),
    )


@dataclass(frozen=True)
class SmtpSettings:
    """Outbound SMTP relay."""

    host: str
    port: int
    username: str
    password: str
    use_tls: bool
    from_address: str


def _build_smtp(data: dict | None) -> SmtpSettings:
    d = data or {}
    return SmtpSettings(
        host=d.get("host", ""),
        port=d.get("port", 587),
        username=d.get("username", ""),
        password=d.get("password", ""),
        use_tls=d.get("use_tls", True),
        from_address=d.get("from_address", ""),
    )


@dataclass(frozen=True)
class WebhookSettings:
    url: str
    headers: dict[str, str] = field(default_factory=dict)


def _build_webhook(data: dict | None) -> WebhookSettings:
    d = data or {}
    return WebhookSettings(
        url=d.get("url", ""),
        headers={str(k): str(v) for k, v in (d.get("headers") or {}).items()},
    )


# ---------------------------------------------------------------------------
# Logging
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class LoggingSettings:
    """Application logging configuration (level, format, optional file)."""

    level: str
    format: str
    file: str | None
    max_file_size_bytes: int
    backup_count: int


def _build_logging(data: dict | None) -> LoggingSettings:
    d = data or {}
    return LoggingSettings(
        level=d.get("level", "INFO"),
        format=d.get("format", "json"),
        file=d.get("file"),
        max_file_size_bytes=d.get("max_file_size_bytes", 10485760),
        backup_count=d.get("backup_count", 5),
    )


# ---------------------------------------------------------------------------
# HTTP surface
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class ServerSettings:
    """HTTP server configuration (bind address, workers, timeouts)."""

    bind: str
    port: int
    workers: int
    timeout: int
    graceful_timeout: int
    keepalive: int
    max_requests: int
    max_requests_jitter: int


def _build_server(data: dict | None) -> ServerSettings:
    d = data or {}
    return ServerSettings(
        bind=d.get("bind", "127.0.0.1"),
        port=d.get("port", 8080),
        workers=d.get("workers", 2),
        timeout=d.get("timeout", 120),
        graceful_timeout=d.get("graceful_timeout", 30),
        keepalive=d.get("keepalive", 2),
        max_requests=d.get("max_requests", 0),
        max_requests_jitter=d.get("max_requests_jitter", 0),
    )


@dataclass(frozen=True)
class ApiSettings:
    """Bearer token guarding the job-trigger endpoints."""

    job_token: str


def _build_api(data: dict | None) -> ApiSettings:
    d = data or {}
    return ApiSettings(job_token=d.get("job_token", ""))


@dataclass(frozen=True)
class RunHistorySettings:
    enabled: bool


def _build_run_history(data: dict | None) -> RunHistorySettings:
    d = data or {}
    return RunHistorySettings(enabled=d.get("enabled", False))


# ---------------------------------------------------------------------------
# Root
# ---------------------------------------------------------------------------


@dataclass(frozen=True)
class RapportSettings:
    owner: OwnerSettings
    exclusions: ExclusionSettings
    storage: StorageSettings
    database: DatabaseSettings
    dispatcher: DispatcherSettings
    enrichment: EnrichmentSettings
    sources: SourceSettings
    notifier: NotifierSettings
    smtp: SmtpSettings
    webhook: WebhookSettings
    logging: LoggingSettings
    server: ServerSettings
    api: ApiSettings
    run_history: RunHistorySettings


def build_settings(data: dict[str, Any] | None) -> RapportSettings:
    """Build the full typed settings tree from raw (validated) config data."""
    data = data or {}
    return RapportSettings(
        owner=_build_owner(data.get("owner")),
        exclusions=_build_exclusions(data.get("exclusions")),
        storage=_build_storage(data.get("storage")),
        database=_build_database(data.get("database")),
        dispatcher=_build_dispatcher(data.get("dispatcher")),
        enrichment=_build_enrichment(data.get("enrichment")),
        sources=_build_sources(data.get("sources")),
        notifier=_build_notifier(data.get("notifier")),
        smtp=_build_smtp(data.get("smtp")),
        webhook=_build_webhook(data.get("webhook")),
        logging=_build_logging(data.get("logging")),
        server=_build_server(data.get("server")),
        api=_build_api(data.get("api")),
        run_history=_build_run_history(data.get("run_history")),
    )
