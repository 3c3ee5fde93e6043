# src/phaseconf/client/protocols.py
"""Structural contract for remote secrets providers.

SecretsClient only needs three things from a provider: open a session with a
credential, list the applications that session can see, and fetch the
secrets of one (application, environment). Anything satisfying these
Protocols can be plugged in - the httpx adapter in phase_http, or the
in-memory FakeProvider used by tests.
"""

from __future__ import annotations

from collections.abc import Sequence
from dataclasses import dataclass
from typing import Any, Protocol, runtime_checkable


@dataclass(frozen=True, slots=True)
class AppRecord:
    """An application visible to the provider session.

    Attributes:
        id: Provider-side application identifier
        name: Application name (matched exactly against the requested name)
        environments: Environment names, or None when the provider does not list them
    """

    id: str
    name: str
    environments: tuple[str, ...] | None = None


@runtime_checkable
class ProviderSession(Protocol):
    """An authenticated session against the provider."""

    @property
    def applications(self) -> Sequence[AppRecord]:
        """Applications visible to this session."""
        ...

    def fetch_secrets(self, app_id: str, environment: str) -> Any:
        """Fetch raw secrets for one application environment.

        The response shape is provider-defined: a mapping of key -> value, or
        a sequence of mappings/objects exposing ``key`` and ``value``.
        """
        ...

    def close(self) -> None:
        """Release any resources held by the session."""
        ...


@runtime_checkable
class ProviderAdapter(Protocol):
    """Factory for provider sessions."""

    def open_session(self, credential: str) -> ProviderSession:
        """Authenticate with ``credential``.

        Raises:
            Exception: Any provider/transport failure. The caller classifies it.
        """
        ...
