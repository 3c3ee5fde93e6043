# src/phaseconf/contracts/diagnostics.py
"""Diagnostic report shapes returned to host applications.

These are snapshots: the service builds a new ConfigDiagnostics after every
resolution and hands out that immutable object. Nothing here ever holds a
credential value.
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from typing import Any

from phaseconf.contracts.enums import ErrorCode, FallbackStrategy, TokenOrigin
from phaseconf.contracts.types import SourceCheck


@dataclass(frozen=True, slots=True)
class CheckedSource:
    """A probe result annotated with whether it supplied the active token."""

    origin: TokenOrigin
    path: str | None
    exists: bool
    has_credential: bool
    is_active: bool
    check_order: int

    @classmethod
    def from_check(cls, check: SourceCheck, active_origin: TokenOrigin | None) -> CheckedSource:
        return cls(
            origin=check.origin,
            path=str(check.path) if check.path is not None else None,
            exists=check.exists,
            has_credential=check.has_credential,
            is_active=check.origin == active_origin,
            check_order=check.check_order,
        )


@dataclass(frozen=True, slots=True)
class ActiveToken:
    origin: TokenOrigin
    path: str | None
    credential_length: int
    is_valid: bool


@dataclass(frozen=True, slots=True)
class TokenLoadingDiagnostics:
    checked_sources: tuple[CheckedSource, ...] = ()
    active_token: ActiveToken | None = None
    loading_time_ms: float = 0.0


@dataclass(frozen=True, slots=True)
class InitializationDiagnostics:
    attempted: bool = False
    success: bool = False
    duration_ms: float | None = None
    app_name: str | None = None
    environment: str | None = None
    error: str | None = None
    error_code: ErrorCode | None = None


@dataclass(frozen=True, slots=True)
class RetrievalDiagnostics:
    attempted: bool = False
    success: bool = False
    duration_ms: float | None = None
    secret_count: int | None = None
    cache_hit: bool = False
    error: str | None = None
    error_code: ErrorCode | None = None


@dataclass(frozen=True, slots=True)
class FallbackDiagnostics:
    triggered: bool = False
    strategy: FallbackStrategy | None = None
    reason: str | None = None


@dataclass(frozen=True, slots=True)
class ConfigDiagnostics:
    """Combined report: probe results, last init, last fetch, fallback."""

    timestamp: str
    token_loading: TokenLoadingDiagnostics = field(default_factory=TokenLoadingDiagnostics)
    initialization: InitializationDiagnostics = field(default_factory=InitializationDiagnostics)
    retrieval: RetrievalDiagnostics = field(default_factory=RetrievalDiagnostics)
    fallback: FallbackDiagnostics = field(default_factory=FallbackDiagnostics)

    def to_dict(self) -> dict[str, Any]:
        """JSON-ready dict (enums render as their string values)."""
        return asdict(self)
