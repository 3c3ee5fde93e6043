# src/phaseconf/client/phase_http.py
"""Phase provider adapter over httpx.

Covers exactly the three calls SecretsClient needs: authenticate with a
service token (listing visible applications), and fetch the decrypted
secrets of one application environment. HTTP errors surface as httpx
exceptions; classification happens in SecretsClient.
"""

from __future__ import annotations

from collections.abc import Sequence
from typing import Any

import httpx
import structlog

from phaseconf.client.protocols import AppRecord

logger = structlog.get_logger(__name__)

DEFAULT_HOST = "https://api.phase.dev"
_TOKENS_PATH = "/service/secrets/tokens/"
_SECRETS_PATH = "/v1/secrets/"


def _parse_apps(payload: Any) -> tuple[AppRecord, ...]:
    """Build AppRecords from the token-info payload.

    Apps without an id or name are skipped. Environments are taken from
    ``environment_keys[].environment.name`` when present.
    """
    apps_raw = payload.get("apps", []) if isinstance(payload, dict) else []
    apps: list[AppRecord] = []
    for item in apps_raw:
        if not isinstance(item, dict):
            continue
        app_id, name = item.get("id"), item.get("name")
        if not isinstance(app_id, str) or not isinstance(name, str):
            continue
        env_keys = item.get("environment_keys")
        environments: tuple[str, ...] | None = None
        if isinstance(env_keys, list):
            environments = tuple(
                key["environment"]["name"]
                for key in env_keys
                if isinstance(key, dict)
                and isinstance(key.get("environment"), dict)
                and isinstance(key["environment"].get("name"), str)
            )
        apps.append(AppRecord(id=app_id, name=name, environments=environments))
    return tuple(apps)


class PhaseHTTPSession:
    """Authenticated session holding a pooled httpx.Client."""

    def __init__(self, client: httpx.Client, applications: tuple[AppRecord, ...]) -> None:
        self._client = client
        self._applications = applications

    @property
    def applications(self) -> Sequence[AppRecord]:
        return self._applications

    def fetch_secrets(self, app_id: str, environment: str) -> Any:
        response = self._client.get(_SECRETS_PATH, params={"app_id": app_id, "env": environment})
        response.raise_for_status()
        return response.json()

    def close(self) -> None:
        self._client.close()


class PhaseHTTPAdapter:
    """ProviderAdapter for the Phase HTTP API.

    Args:
        host: API base URL
        timeout_seconds: Per-request httpx timeout (SecretsClient adds its own deadline)
        transport: Optional httpx transport (tests pass httpx.MockTransport)
    """

    def __init__(
        self,
        host: str = DEFAULT_HOST,
        *,
        timeout_seconds: float = 5.0,
        transport: httpx.BaseTransport | None = None,
    ) -> None:
        self._host = host.rstrip("/")
        self._timeout = timeout_seconds
        self._transport = transport

    def open_session(self, credential: str) -> PhaseHTTPSession:
        client = httpx.Client(
            base_url=self._host,
            headers={
                "Authorization": f"Bearer Service {credential}",
                "Accept": "application/json",
                "User-Agent": "phaseconf",
            },
            timeout=self._timeout,
            transport=self._transport,
        )
        try:
            response = client.get(_TOKENS_PATH)
            response.raise_for_status()
            applications = _parse_apps(response.json())
        except Exception:
            client.close()
            raise
        logger.debug("phase session opened", host=self._host, applications=len(applications))
        return PhaseHTTPSession(client, applications)
