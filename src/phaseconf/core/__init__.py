# src/phaseconf/core/__init__.py
"""Core infrastructure: settings, logging, redaction and retry."""

from phaseconf.core.config import (
    CacheSettings,
    ClientSettings,
    LoggingSettings,
    MonitorSettings,
    PhaseConfSettings,
    RetrySettings,
    TokenSettings,
    discover_app_name,
    load_settings,
)
from phaseconf.core.logging import configure_from_settings, configure_logging, get_logger
from phaseconf.core.redaction import REDACTED, redact_sensitive, redact_value
from phaseconf.core.retry import MaxRetriesExceeded, RetryConfig, RetryManager

__all__ = [
    "REDACTED",
    "CacheSettings",
    "ClientSettings",
    "LoggingSettings",
    "MaxRetriesExceeded",
    "MonitorSettings",
    "PhaseConfSettings",
    "RetryConfig",
    "RetryManager",
    "RetrySettings",
    "TokenSettings",
    "configure_from_settings",
    "configure_logging",
    "discover_app_name",
    "get_logger",
    "load_settings",
    "redact_sensitive",
    "redact_value",
]
