# src/phaseconf/client/__init__.py
"""Remote secrets provider access."""

from phaseconf.client.classify import classify_provider_error
from phaseconf.client.phase_http import PhaseHTTPAdapter, PhaseHTTPSession
from phaseconf.client.protocols import AppRecord, ProviderAdapter, ProviderSession
from phaseconf.client.secrets_client import SecretsClient, Session, transform_secrets

__all__ = [
    "AppRecord",
    "PhaseHTTPAdapter",
    "PhaseHTTPSession",
    "ProviderAdapter",
    "ProviderSession",
    "SecretsClient",
    "Session",
    "classify_provider_error",
    "transform_secrets",
]
