# src/phaseconf/local_env.py
"""Local .env loading for the LOCAL_ENV_ONLY fallback.

Load order (later overrides earlier):
    <workspace root>/.env
    <workspace root>/.env.<environment>
    <workspace root>/.env.local
    <cwd>/.env
    <cwd>/.env.<environment>
    <cwd>/.env.local

The workspace root is skipped when it is the current directory. Files are
parsed with python-dotenv without touching os.environ; a file that cannot be
read is reported in ``errors`` and loading continues.
"""

from __future__ import annotations

import re
from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType

import structlog
from dotenv import dotenv_values

from phaseconf.core.config import TokenSettings
from phaseconf.resolution.probe import find_workspace_root

logger = structlog.get_logger(__name__)

_SAFE_ENV_NAME = re.compile(r"^[A-Za-z0-9_-]+$")


@dataclass(frozen=True, slots=True)
class LocalEnvironment:
    """Variables read from local .env files.

    Attributes:
        variables: Merged key -> value (empty-valued keys kept)
        loaded_files: Files that were parsed, in load order
        errors: (file, message) for each file that could not be read
    """

    variables: Mapping[str, str] = field(default_factory=dict)
    loaded_files: tuple[Path, ...] = ()
    errors: tuple[tuple[Path, str], ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "variables", MappingProxyType(dict(self.variables)))


def env_file_names(environment: str) -> list[str]:
    """.env, .env.<environment> (when the name is file-safe), .env.local."""
    names = [".env"]
    env = environment.strip()
    if env and _SAFE_ENV_NAME.match(env) and env != "local":
        names.append(f".env.{env}")
    names.append(".env.local")
    return names


class LocalEnvironmentLoader:
    """Reads local .env files for an environment.

    Args:
        settings: Token settings (workspace indicators)
        cwd: Current directory (default: Path.cwd() at load time)
    """

    def __init__(self, settings: TokenSettings | None = None, *, cwd: Path | None = None) -> None:
        self._settings = settings or TokenSettings()
        self._cwd = cwd

    def load(self, environment: str, workspace_root: Path | None = None) -> LocalEnvironment:
        cwd = (self._cwd if self._cwd is not None else Path.cwd()).resolve()
        root = (
            workspace_root.resolve()
            if workspace_root is not None
            else find_workspace_root(cwd, self._settings.workspace_indicators)
        )
        directories = [cwd] if root == cwd else [root, cwd]

        variables: dict[str, str] = {}
        loaded: list[Path] = []
        errors: list[tuple[Path, str]] = []
        for directory in directories:
            for name in env_file_names(environment):
                path = directory / name
                if not path.is_file():
                    continue
                try:
                    parsed = dotenv_values(path, interpolate=True)
                except (OSError, UnicodeDecodeError, ValueError) as e:
                    errors.append((path, f"{type(e).__name__}: {e}"))
                    logger.warning("local env file unreadable", path=str(path), error_type=type(e).__name__)
                    continue
                variables.update({k: v for k, v in parsed.items() if v is not None})
                loaded.append(path)

        logger.debug(
            "local environment loaded",
            environment=environment,
            files=[str(p) for p in loaded],
            variable_count=len(variables),
        )
        return LocalEnvironment(variables=variables, loaded_files=tuple(loaded), errors=tuple(errors))


def merge_with_local_env(remote: Mapping[str, str], local: Mapping[str, str]) -> dict[str, str]:
    """Local variables overlaid by remote secrets (remote wins on conflict)."""
    merged = dict(local)
    overridden = sum(1 for key in remote if key in merged)
    merged.update(remote)
    if overridden:
        logger.debug("remote secrets overrode local variables", overridden=overridden)
    return merged
