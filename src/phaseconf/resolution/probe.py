# src/phaseconf/resolution/probe.py
"""SourceProbe: report which candidate credential locations exist.

Probe order (highest priority first):
    1. Process environment
    2. <cwd>/.env.local
    3. <cwd>/.env
    4. <workspace root>/.env.local
    5. <workspace root>/.env

A missing file is a normal state, not an error. Unreadable or malformed
files are logged and treated as holding no credential. The probe never
raises and never mutates anything.
"""

from __future__ import annotations

import os
from collections.abc import Iterable, Mapping
from pathlib import Path

import structlog
from dotenv import dotenv_values

from phaseconf.contracts import SourceCheck, TokenOrigin, TokenSource
from phaseconf.core.config import TokenSettings

logger = structlog.get_logger(__name__)

# (origin, file name, relative to root?) - process environment is handled separately
_FILE_ORIGINS: tuple[tuple[TokenOrigin, str, bool], ...] = (
    (TokenOrigin.LOCAL_ENV_LOCAL, ".env.local", False),
    (TokenOrigin.LOCAL_ENV, ".env", False),
    (TokenOrigin.ROOT_ENV_LOCAL, ".env.local", True),
    (TokenOrigin.ROOT_ENV, ".env", True),
)

_ORIGIN_DESCRIPTIONS: dict[TokenOrigin, str] = {
    TokenOrigin.PROCESS_ENVIRONMENT: "environment variable",
    TokenOrigin.LOCAL_ENV_LOCAL: "local .env.local file",
    TokenOrigin.LOCAL_ENV: "local .env file",
    TokenOrigin.ROOT_ENV_LOCAL: "workspace root .env.local file",
    TokenOrigin.ROOT_ENV: "workspace root .env file",
}


def describe_origin(origin: TokenOrigin, variable_name: str = "PHASE_SERVICE_TOKEN") -> str:
    """Human-readable name of a token origin, for user-facing messages."""
    if origin is TokenOrigin.PROCESS_ENVIRONMENT:
        return f"{_ORIGIN_DESCRIPTIONS[origin]} {variable_name}"
    return _ORIGIN_DESCRIPTIONS[origin]


def find_workspace_root(start: Path, indicators: Iterable[str]) -> Path:
    """Ascend from ``start`` to the first directory holding a workspace indicator.

    Returns ``start`` itself when no ancestor qualifies.
    """
    names = tuple(indicators)
    for candidate in (start, *start.parents):
        if any((candidate / name).exists() for name in names):
            return candidate
    return start


def read_credential(path: Path, variable_name: str) -> str | None:
    """Read ``variable_name`` from a KEY=VALUE file, best effort.

    Comments, blank lines and quoted values are handled by python-dotenv;
    malformed lines are skipped. Returns None for a missing file, an
    unreadable file, or a missing/blank value.
    """
    if not path.is_file():
        return None
    try:
        values = dotenv_values(path, interpolate=False)
    except (OSError, UnicodeDecodeError, ValueError) as e:
        logger.warning("credential file unreadable", path=str(path), error_type=type(e).__name__)
        return None
    value = values.get(variable_name)
    if value is None:
        return None
    value = value.strip()
    return value or None


class SourceProbe:
    """Checks the five fixed credential locations in priority order.

    Args:
        settings: Token lookup settings (variable name, workspace indicators)
        environ: Process environment mapping (default: os.environ)
        cwd: Current directory (default: Path.cwd() at probe time)
    """

    def __init__(
        self,
        settings: TokenSettings | None = None,
        *,
        environ: Mapping[str, str] | None = None,
        cwd: Path | None = None,
    ) -> None:
        self._settings = settings or TokenSettings()
        self._environ = environ
        self._cwd = cwd

    @property
    def variable_name(self) -> str:
        return self._settings.variable_name

    def _current_dir(self) -> Path:
        return (self._cwd if self._cwd is not None else Path.cwd()).resolve()

    def _environment(self) -> Mapping[str, str]:
        return os.environ if self._environ is None else self._environ

    def locate(self, workspace_root: Path | None = None) -> list[tuple[SourceCheck, str | None]]:
        """Probe every origin, pairing each check with the credential found there.

        Only the resolver sees the credential half of each pair; everything
        else consumes the SourceCheck.
        """
        cwd = self._current_dir()
        root = (
            workspace_root.resolve()
            if workspace_root is not None
            else find_workspace_root(cwd, self._settings.workspace_indicators)
        )

        env_value = self._environment().get(self.variable_name, "").strip() or None
        results: list[tuple[SourceCheck, str | None]] = [
            (
                SourceCheck(
                    origin=TokenOrigin.PROCESS_ENVIRONMENT,
                    path=None,
                    exists=self.variable_name in self._environment(),
                    has_credential=env_value is not None,
                ),
                env_value,
            )
        ]

        for origin, file_name, under_root in _FILE_ORIGINS:
            path = (root if under_root else cwd) / file_name
            if under_root and root == cwd:
                # Same file was already probed as a local origin
                results.append((SourceCheck(origin=origin, path=path, exists=False, has_credential=False), None))
                continue
            credential = read_credential(path, self.variable_name)
            results.append(
                (
                    SourceCheck(
                        origin=origin,
                        path=path,
                        exists=path.is_file(),
                        has_credential=credential is not None,
                    ),
                    credential,
                )
            )

        logger.debug(
            "credential sources probed",
            workspace_root=str(root),
            found=[str(check.origin) for check, value in results if value is not None],
        )
        return results

    def probe(self, workspace_root: Path | None = None) -> list[SourceCheck]:
        """Report all five origins in priority order. Never raises."""
        return [check for check, _ in self.locate(workspace_root)]

    def first_source(self, workspace_root: Path | None = None) -> tuple[TokenSource | None, list[SourceCheck]]:
        """Highest-priority credential (if any) plus the full probe list."""
        located = self.locate(workspace_root)
        checks = [check for check, _ in located]
        for check, credential in located:
            if credential is not None:
                return TokenSource(origin=check.origin, credential=credential, path=check.path), checks
        return None, checks
