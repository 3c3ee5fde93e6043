# src/phaseconf/contracts/types.py
"""Value objects passed between resolution components.

All of these are frozen dataclasses. Anything holding a raw credential keeps
it out of ``repr`` - the only credential facts that may ever be surfaced are
its length and whether it is present.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from pathlib import Path
from types import MappingProxyType
from typing import Any

from phaseconf.contracts.enums import ErrorCode, ResultSource, TokenOrigin


@dataclass(frozen=True, slots=True)
class TokenSource:
    """The active credential and where it came from.

    Attributes:
        origin: Which of the five fixed locations held the credential
        credential: Raw credential value (never logged, never in repr)
        path: File path for file-based origins, None for the process environment
    """

    origin: TokenOrigin
    credential: str = field(repr=False)
    path: Path | None = None

    @property
    def has_credential(self) -> bool:
        return bool(self.credential)

    @property
    def credential_length(self) -> int:
        return len(self.credential)

    def describe(self) -> dict[str, Any]:
        """Log-safe view: origin, path, presence and length only."""
        return {
            "origin": str(self.origin),
            "path": str(self.path) if self.path is not None else None,
            "has_credential": self.has_credential,
            "credential_length": self.credential_length,
        }


@dataclass(frozen=True, slots=True)
class SourceCheck:
    """Probe result for one candidate location."""

    origin: TokenOrigin
    path: Path | None
    exists: bool
    has_credential: bool

    @property
    def check_order(self) -> int:
        """1-based position in the probe order."""
        return self.origin.priority + 1


@dataclass(frozen=True, slots=True)
class TokenNotFound:
    """No candidate location held a credential.

    Carries the complete ordered probe list so diagnostics can show exactly
    what was looked at.
    """

    checks: tuple[SourceCheck, ...]


@dataclass(frozen=True, slots=True)
class ResolvedConfig:
    """Secrets for one (app, environment) pair.

    Immutable once built. A later successful resolution produces a new
    instance instead of mutating this one.
    """

    app_name: str
    environment: str
    secrets: Mapping[str, str]
    source: ResultSource
    token_origin: TokenOrigin | None = None

    def __post_init__(self) -> None:
        app_name = self.app_name.strip()
        environment = self.environment.strip()
        if not app_name:
            raise ValueError("app_name must be a non-empty string")
        if not environment:
            raise ValueError("environment must be a non-empty string")
        object.__setattr__(self, "app_name", app_name)
        object.__setattr__(self, "environment", environment)
        object.__setattr__(self, "secrets", MappingProxyType(dict(self.secrets)))

    @property
    def secret_count(self) -> int:
        return len(self.secrets)


@dataclass(frozen=True, slots=True)
class CacheEntry:
    """One ResultCache slot. ``stored_at`` is in the cache clock's seconds."""

    key: tuple[str, str, TokenOrigin]
    value: Mapping[str, str]
    stored_at: float
    ttl_seconds: float

    def is_expired(self, now: float) -> bool:
        return now - self.stored_at > self.ttl_seconds


@dataclass(frozen=True, slots=True)
class PerformanceRecord:
    """One completed, monitored operation.

    Timestamps are epoch seconds from the monitor's clock.
    """

    operation: str
    started_at: float
    ended_at: float
    success: bool
    error_code: ErrorCode | None = None
    token_origin: TokenOrigin | None = None
    secret_count: int | None = None
    cache_hit: bool | None = None
    retry_count: int | None = None

    @property
    def latency_ms(self) -> float:
        return (self.ended_at - self.started_at) * 1000.0
