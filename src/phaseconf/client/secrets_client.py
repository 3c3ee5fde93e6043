# src/phaseconf/client/secrets_client.py
"""SecretsClient: authenticated access to the remote secrets provider.

Two phases, each bracketed by a Monitor operation:

    session = client.initialize(token_source, "demo", "production")
    config = client.fetch_secrets(session)

Every remote call runs under a bounded deadline. Whatever goes wrong -
provider errors, transport errors, timeouts, malformed responses - leaves
this module as a ResolutionError chained to the original exception, with
the credential scrubbed from its message.
"""

from __future__ import annotations

import queue
import threading
import time
import uuid
from collections.abc import Callable, Mapping
from dataclasses import dataclass, field
from typing import Any, TypeVar

import structlog

from phaseconf.client.classify import classify_provider_error
from phaseconf.client.protocols import AppRecord, ProviderAdapter, ProviderSession
from phaseconf.contracts import (
    ErrorCode,
    OperationName,
    ResolutionError,
    ResolvedConfig,
    ResultSource,
    TokenSource,
)
from phaseconf.core.redaction import redact_sensitive
from phaseconf.monitoring.monitor import Monitor

logger = structlog.get_logger(__name__)

T = TypeVar("T")


@dataclass(frozen=True, slots=True)
class Session:
    """An initialized provider session for one (app, environment)."""

    app_name: str
    environment: str
    token_source: TokenSource
    provider: ProviderSession = field(repr=False)


def _entry_key_value(entry: Any) -> tuple[Any, Any]:
    if isinstance(entry, Mapping):
        return entry.get("key"), entry.get("value")
    return getattr(entry, "key", None), getattr(entry, "value", None)


def transform_secrets(raw: Any) -> dict[str, str]:
    """Flatten a provider response into ``{key: value}``.

    Accepts a mapping, or an iterable of mappings/objects with ``key`` and
    ``value``. Entries with a missing or non-string key, or a non-string
    value, are skipped.

    Raises:
        TypeError: If the response is neither a mapping nor an iterable of entries
    """
    if raw is None:
        return {}
    if isinstance(raw, Mapping):
        pairs = list(raw.items())
    elif isinstance(raw, (str, bytes)) or not hasattr(raw, "__iter__"):
        raise TypeError(f"Unexpected secrets response type: {type(raw).__name__}")
    else:
        pairs = [_entry_key_value(entry) for entry in raw]

    secrets: dict[str, str] = {}
    skipped = 0
    for key, value in pairs:
        if isinstance(key, str) and key and isinstance(value, str):
            secrets[key] = value
        else:
            skipped += 1
    if skipped:
        logger.debug("skipped malformed secret entries", skipped=skipped, kept=len(secrets))
    return secrets


class SecretsClient:
    """Provider client with deadlines, classification and monitoring.

    Args:
        adapter: Provider adapter (PhaseHTTPAdapter, FakeProvider, ...)
        monitor: Monitor that brackets every call
        timeout_seconds: Deadline applied to each remote call
    """

    def __init__(
        self,
        adapter: ProviderAdapter,
        monitor: Monitor,
        *,
        timeout_seconds: float = 5.0,
    ) -> None:
        if timeout_seconds <= 0:
            raise ValueError(f"timeout_seconds must be > 0, got {timeout_seconds}")
        self._adapter = adapter
        self._monitor = monitor
        self._timeout = timeout_seconds

    @property
    def timeout_seconds(self) -> float:
        return self._timeout

    def _call_with_deadline(self, fn: Callable[[], T], what: str) -> T:
        """Run ``fn`` on a daemon thread and wait at most timeout_seconds.

        A timed-out worker is abandoned, not cancelled; as a daemon thread it
        cannot block interpreter shutdown. If it finishes after the deadline,
        whatever it produced is closed instead of handed back.
        """
        result_queue: queue.Queue[tuple[Any, BaseException | None]] = queue.Queue()
        handoff = threading.Lock()
        abandoned = threading.Event()

        def _worker() -> None:
            value: Any = None
            error: BaseException | None = None
            try:
                value = fn()
            except BaseException as exc:
                error = exc
            with handoff:
                if not abandoned.is_set():
                    result_queue.put((value, error))
                    return
            if error is None:
                _close_late_result(value, what)

        thread = threading.Thread(target=_worker, daemon=True, name=f"phaseconf-{what.replace(' ', '-')}")
        thread.start()

        try:
            value, error = result_queue.get(timeout=self._timeout)
        except queue.Empty:
            with handoff:
                abandoned.set()
            try:
                # the worker may have delivered between the timeout and the flag
                value, error = result_queue.get_nowait()
            except queue.Empty:
                raise ResolutionError(
                    ErrorCode.NETWORK_ERROR,
                    f"Timed out after {self._timeout}s during {what}",
                    details={"timeout_seconds": self._timeout},
                ) from None

        if error is not None:
            raise error
        result: T = value
        return result

    def _convert(
        self,
        exc: Exception,
        what: str,
        token_source: TokenSource,
        details: Mapping[str, Any],
    ) -> ResolutionError:
        code = classify_provider_error(exc)
        raw = exc.message if isinstance(exc, ResolutionError) else str(exc) or type(exc).__name__
        merged = dict(details)
        if isinstance(exc, ResolutionError):
            merged.update(exc.details)
        retry_after = _retry_after(exc)
        if retry_after is not None:
            merged["retry_after"] = retry_after
        return ResolutionError(
            code,
            redact_sensitive(f"{what} failed: {raw}", known_secrets=(token_source.credential,)),
            token_origin=token_source.origin,
            details=merged,
        )

    # -- initialize -----------------------------------------------------------

    def initialize(self, token_source: TokenSource | None, app_name: str, environment: str) -> Session:
        """Open a provider session.

        Raises:
            ResolutionError: TOKEN_NOT_FOUND without a token source, SDK_ERROR
                for blank names (no remote call made), otherwise the classified
                provider failure
        """
        operation_id = f"{OperationName.SDK_INITIALIZATION}-{uuid.uuid4().hex}"
        self._monitor.start_operation(operation_id, OperationName.SDK_INITIALIZATION, token_source)
        started = time.perf_counter()
        try:
            session = self._open_session(token_source, app_name, environment)
        except ResolutionError as err:
            duration_ms = (time.perf_counter() - started) * 1000.0
            self._monitor.end_operation(operation_id, False, error=err)
            self._monitor.log_initialization(
                app_name,
                environment,
                success=False,
                duration_ms=duration_ms,
                token_source=token_source,
                error=err,
            )
            raise

        duration_ms = (time.perf_counter() - started) * 1000.0
        self._monitor.end_operation(operation_id, True)
        self._monitor.log_initialization(
            session.app_name,
            session.environment,
            success=True,
            duration_ms=duration_ms,
            token_source=token_source,
        )
        return session

    def _open_session(self, token_source: TokenSource | None, app_name: str, environment: str) -> Session:
        if token_source is None or not token_source.has_credential:
            raise ResolutionError(
                ErrorCode.TOKEN_NOT_FOUND,
                "No service token available; cannot open a provider session",
            )

        app = (app_name or "").strip()
        env = (environment or "").strip()
        if not app:
            raise ResolutionError(
                ErrorCode.SDK_ERROR,
                "Application name must be a non-empty string",
                token_origin=token_source.origin,
                details={"app_name": app_name},
            )
        if not env:
            raise ResolutionError(
                ErrorCode.SDK_ERROR,
                "Environment must be a non-empty string",
                token_origin=token_source.origin,
                details={"environment": environment},
            )

        details = {"app_name": app, "environment": env}
        try:
            provider = self._call_with_deadline(
                lambda: self._adapter.open_session(token_source.credential),
                "session initialization",
            )
        except Exception as e:
            raise self._convert(e, "Session initialization", token_source, details) from e

        return Session(app_name=app, environment=env, token_source=token_source, provider=provider)

    # -- fetch ----------------------------------------------------------------

    def fetch_secrets(self, session: Session) -> ResolvedConfig:
        """Fetch the session's (app, environment) secrets.

        Raises:
            ResolutionError: APP_NOT_FOUND, ENVIRONMENT_NOT_FOUND, or the
                classified provider failure
        """
        operation_id = f"{OperationName.SECRET_RETRIEVAL}-{uuid.uuid4().hex}"
        token_source = session.token_source
        self._monitor.start_operation(operation_id, OperationName.SECRET_RETRIEVAL, token_source)
        started = time.perf_counter()
        try:
            config = self._fetch(session)
        except ResolutionError as err:
            duration_ms = (time.perf_counter() - started) * 1000.0
            self._monitor.end_operation(operation_id, False, error=err)
            self._monitor.log_secret_retrieval(
                success=False,
                duration_ms=duration_ms,
                token_source=token_source,
                error=err,
            )
            raise

        duration_ms = (time.perf_counter() - started) * 1000.0
        self._monitor.end_operation(
            operation_id,
            True,
            result={"secret_count": config.secret_count, "cache_hit": False},
        )
        self._monitor.log_secret_retrieval(
            success=True,
            duration_ms=duration_ms,
            secret_count=config.secret_count,
            token_source=token_source,
        )
        return config

    def _find_app(self, session: Session) -> AppRecord:
        details = {"app_name": session.app_name, "environment": session.environment}
        try:
            apps = self._call_with_deadline(lambda: list(session.provider.applications), "application lookup")
        except Exception as e:
            raise self._convert(e, "Application lookup", session.token_source, details) from e

        for app in apps:
            if app.name == session.app_name:
                return app
        raise ResolutionError(
            ErrorCode.APP_NOT_FOUND,
            f'Application "{session.app_name}" not found among {len(apps)} visible applications',
            token_origin=session.token_source.origin,
            details=details,
        )

    def _fetch(self, session: Session) -> ResolvedConfig:
        app = self._find_app(session)
        details = {"app_name": session.app_name, "environment": session.environment, "app_id": app.id}

        if app.environments is not None and session.environment not in app.environments:
            raise ResolutionError(
                ErrorCode.ENVIRONMENT_NOT_FOUND,
                f'Environment "{session.environment}" does not exist in application "{session.app_name}"',
                token_origin=session.token_source.origin,
                details={**details, "available_environments": list(app.environments)},
            )

        try:
            raw = self._call_with_deadline(
                lambda: session.provider.fetch_secrets(app.id, session.environment),
                "secret retrieval",
            )
            secrets = transform_secrets(raw)
        except Exception as e:
            raise self._convert(e, "Secret retrieval", session.token_source, details) from e

        return ResolvedConfig(
            app_name=session.app_name,
            environment=session.environment,
            secrets=secrets,
            source=ResultSource.REMOTE,
            token_origin=session.token_source.origin,
        )

    def close_session(self, session: Session) -> None:
        """Close the provider session; failures are logged, not raised."""
        try:
            session.provider.close()
        except Exception as e:
            logger.warning("provider session close failed", error_type=type(e).__name__)


def _retry_after(exc: BaseException) -> int | None:
    response = getattr(exc, "response", None)
    headers = getattr(response, "headers", None)
    if headers is None:
        return None
    value = headers.get("retry-after")
    if value is None:
        return None
    try:
        return int(value)
    except (TypeError, ValueError):
        return None


def _close_late_result(value: Any, what: str) -> None:
    close = getattr(value, "close", None)
    if not callable(close):
        return
    try:
        close()
    except Exception as e:
        logger.warning("closing late provider result failed", operation=what, error_type=type(e).__name__)
    else:
        logger.debug("closed provider result that arrived after the deadline", operation=what)
