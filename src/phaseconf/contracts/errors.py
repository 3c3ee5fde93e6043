# src/phaseconf/contracts/errors.py
"""Typed failures that cross component boundaries.

ResolutionError is the ONLY exception type the secrets client lets escape.
Provider SDK errors, httpx errors, timeouts - all of them are classified into
an ErrorCode and re-raised as ResolutionError (chained with ``from``) before
leaving the client.
"""

from __future__ import annotations

from collections.abc import Mapping
from typing import Any

from phaseconf.contracts.enums import ErrorCode, TokenOrigin


class ResolutionError(Exception):
    """A failed resolution attempt.

    Attributes:
        code: Closed ErrorCode classification
        message: Human-readable description (already redacted)
        token_origin: Origin of the credential, when one was found
        details: Extra non-sensitive context (app name, environment, ...)
    """

    def __init__(
        self,
        code: ErrorCode,
        message: str,
        *,
        token_origin: TokenOrigin | None = None,
        details: Mapping[str, Any] | None = None,
    ) -> None:
        self.code = ErrorCode(code)
        self.message = message
        self.token_origin = token_origin
        self.details: dict[str, Any] = dict(details) if details else {}
        super().__init__(f"[{self.code}] {message}")

    @property
    def is_retryable(self) -> bool:
        """Derived solely from the code."""
        return self.code.is_retryable

    def __repr__(self) -> str:
        return f"ResolutionError(code={self.code!s}, is_retryable={self.is_retryable}, token_origin={self.token_origin})"


class SettingsError(Exception):
    """Raised when phaseconf settings cannot be loaded or validated."""
