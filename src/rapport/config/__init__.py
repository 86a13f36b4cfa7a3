"""Configuration subsystem for Rapport.

Public API::

    from rapport.config import RapportConfig

    config = RapportConfig.load("rapport.yaml")
    config.settings.dispatcher.batch_size      # typed access
    config.get("notifier.backend")             # dynamic dot-path
"""

from rapport.config.loader import ConfigValidationError, RapportConfig
from rapport.config.settings import (
    ApiSettings,
    DatabaseSettings,
    DispatcherSettings,
    EnrichmentSettings,
    ExclusionSettings,
    FileSourceSettings,
    LoggingSettings,
    NotifierSettings,
    OwnerSettings,
    RapportSettings,
    RunHistorySettings,
    ServerSettings,
    SmtpSettings,
    SourceSettings,
    StorageSettings,
    WebhookSettings,
    build_settings,
)

__all__ = [
    "ApiSettings",
    "ConfigValidationError",
    "DatabaseSettings",
    "DispatcherSettings",
    "EnrichmentSettings",
    "ExclusionSettings",
    "FileSourceSettings",
    "LoggingSettings",
    "NotifierSettings",
    "OwnerSettings",
    "RapportConfig",
    "RapportSettings",
    "RunHistorySettings",
    "ServerSettings",
    "SmtpSettings",
    "SourceSettings",
    "StorageSettings",
    "WebhookSettings",
    "build_settings",
]
