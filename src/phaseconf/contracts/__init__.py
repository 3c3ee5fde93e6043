# src/phaseconf/contracts/__init__.py
"""Shared contracts for the phaseconf resolution subsystem.

This is a leaf package: it imports nothing from the rest of phaseconf, so
every component can depend on it without cycles.
"""

from phaseconf.contracts.diagnostics import (
    ActiveToken,
    CheckedSource,
    ConfigDiagnostics,
    FallbackDiagnostics,
    InitializationDiagnostics,
    RetrievalDiagnostics,
    TokenLoadingDiagnostics,
)
from phaseconf.contracts.enums import (
    ErrorCode,
    FallbackStrategy,
    LogLevel,
    OperationName,
    ResultSource,
    TokenOrigin,
)
from phaseconf.contracts.errors import ResolutionError, SettingsError
from phaseconf.contracts.types import (
    CacheEntry,
    PerformanceRecord,
    ResolvedConfig,
    SourceCheck,
    TokenNotFound,
    TokenSource,
)

__all__ = [
    # enums
    "ErrorCode",
    "FallbackStrategy",
    "LogLevel",
    "OperationName",
    "ResultSource",
    "TokenOrigin",
    # errors
    "ResolutionError",
    "SettingsError",
    # value objects
    "CacheEntry",
    "PerformanceRecord",
    "ResolvedConfig",
    "SourceCheck",
    "TokenNotFound",
    "TokenSource",
    # diagnostics
    "ActiveToken",
    "CheckedSource",
    "ConfigDiagnostics",
    "FallbackDiagnostics",
    "InitializationDiagnostics",
    "RetrievalDiagnostics",
    "TokenLoadingDiagnostics",
]
