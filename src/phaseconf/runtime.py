# src/phaseconf/runtime.py
"""Process-wide default ConfigurationService.

The only global state in phaseconf. Components never reach for it; host
applications that want a shared instance do, and tests call
reset_default_service() for isolation.
"""

from __future__ import annotations

import threading
from pathlib import Path

from phaseconf.core.config import discover_app_name, load_settings
from phaseconf.core.logging import configure_from_settings
from phaseconf.resolution.probe import find_workspace_root
from phaseconf.service import ConfigurationService

_lock = threading.Lock()
_default_service: ConfigurationService | None = None


def build_service(config_path: Path | None = None, *, cwd: Path | None = None) -> ConfigurationService:
    """Assemble a service the way a host process would.

    Loads settings, applies the ``logging`` section, and when no app name
    was configured reads ``[tool.phaseconf] app_name`` from the workspace
    root's pyproject.toml.
    """
    settings = load_settings(config_path)
    configure_from_settings(settings.logging)
    if "app_name" not in settings.model_fields_set:
        root = find_workspace_root((cwd if cwd is not None else Path.cwd()).resolve(), settings.token.workspace_indicators)
        settings = settings.model_copy(update={"app_name": discover_app_name(root, settings.app_name)})
    return ConfigurationService(settings, cwd=cwd)


def get_default_service(config_path: Path | None = None) -> ConfigurationService:
    """Return the shared service, creating and starting it on first use.

    ``config_path`` is only consulted when the service is created.
    """
    global _default_service
    with _lock:
        if _default_service is None:
            service = build_service(config_path)
            service.start()
            _default_service = service
        return _default_service


def configure_default_service(service: ConfigurationService) -> None:
    """Install ``service`` as the shared instance, closing any previous one."""
    global _default_service
    with _lock:
        previous, _default_service = _default_service, service
    if previous is not None and previous is not service:
        previous.close()


def reset_default_service() -> None:
    """Close and drop the shared service (its cache and monitor go with it)."""
    global _default_service
    with _lock:
        previous, _default_service = _default_service, None
    if previous is not None:
        previous.cache.clear()
        previous.monitor.clear()
        previous.close()
