# src/phaseconf/__init__.py
"""phaseconf: service-credential discovery and remote secrets resolution.

Locates PHASE_SERVICE_TOKEN across the process environment and local /
workspace-root .env files, fetches the application's secrets from the
Phase secrets provider, and caches, monitors and explains the result.
"""

from phaseconf.advice import Advice, ErrorAdvisor
from phaseconf.contracts import (
    ConfigDiagnostics,
    ErrorCode,
    FallbackStrategy,
    ResolutionError,
    ResolvedConfig,
    ResultSource,
    TokenOrigin,
    TokenSource,
)
from phaseconf.core.config import PhaseConfSettings, load_settings
from phaseconf.service import (
    ConfigurationService,
    ConnectivityReport,
    EnvironmentSnapshot,
    FailedResolution,
)

__version__ = "0.1.0"

__all__ = [
    "Advice",
    "ConfigDiagnostics",
    "ConfigurationService",
    "ConnectivityReport",
    "EnvironmentSnapshot",
    "ErrorAdvisor",
    "ErrorCode",
    "FailedResolution",
    "FallbackStrategy",
    "PhaseConfSettings",
    "ResolutionError",
    "ResolvedConfig",
    "ResultSource",
    "TokenOrigin",
    "TokenSource",
    "__version__",
    "load_settings",
]
