# src/phaseconf/service.py
"""ConfigurationService: the composition root host applications talk to.

Flow for one resolve_configuration() call:

    TokenResolver (via SourceProbe) -> ResultCache -> SecretsClient
        success: cache populated, ResolvedConfig returned
        failure: ErrorAdvisor picks a strategy, local .env variables are
                 attached when it says to fall back, FailedResolution returned

The Monitor brackets the whole attempt regardless of outcome, and the latest
ConfigDiagnostics snapshot is kept for get_diagnostics().
"""

from __future__ import annotations

import threading
import time
import uuid
from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from pathlib import Path
from types import MappingProxyType, TracebackType
from typing import Any

import structlog

from phaseconf.advice import Advice, ErrorAdvisor
from phaseconf.cache.result_cache import ResultCache
from phaseconf.cache.sweeper import CacheSweeper
from phaseconf.client.phase_http import PhaseHTTPAdapter
from phaseconf.client.protocols import ProviderAdapter
from phaseconf.client.secrets_client import SecretsClient
from phaseconf.contracts import (
    ActiveToken,
    CheckedSource,
    ConfigDiagnostics,
    ErrorCode,
    FallbackDiagnostics,
    InitializationDiagnostics,
    LogLevel,
    OperationName,
    ResolutionError,
    ResolvedConfig,
    ResultSource,
    RetrievalDiagnostics,
    SourceCheck,
    TokenLoadingDiagnostics,
    TokenNotFound,
    TokenSource,
)
from phaseconf.core.config import PhaseConfSettings
from phaseconf.core.retry import MaxRetriesExceeded, RetryConfig, RetryManager
from phaseconf.local_env import LocalEnvironmentLoader, merge_with_local_env
from phaseconf.monitoring.monitor import Monitor
from phaseconf.resolution.probe import SourceProbe
from phaseconf.resolution.resolver import TokenResolver, validate_token_format

logger = structlog.get_logger(__name__)


@dataclass(frozen=True, slots=True)
class FailedResolution:
    """A resolution that did not produce remote secrets.

    Attributes:
        error: Classified, redacted failure
        advice: Recommended strategy and guidance
        fallback_variables: Local .env variables, present when advice.should_fallback
    """

    error: ResolutionError
    advice: Advice
    fallback_variables: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "fallback_variables", MappingProxyType(dict(self.fallback_variables)))

    @property
    def code(self) -> ErrorCode:
        return self.error.code


Outcome = ResolvedConfig | FailedResolution


@dataclass(frozen=True, slots=True)
class EnvironmentSnapshot:
    """Local .env variables overlaid with remote secrets (remote wins)."""

    app_name: str
    environment: str
    variables: Mapping[str, str]
    loaded_files: tuple[Path, ...]
    outcome: Outcome

    @property
    def remote_success(self) -> bool:
        return isinstance(self.outcome, ResolvedConfig)


@dataclass(frozen=True, slots=True)
class ConnectivityReport:
    success: bool
    response_time_ms: float
    secret_count: int | None = None
    error_code: ErrorCode | None = None
    message: str | None = None


@dataclass(slots=True)
class _AttemptState:
    """Per-call bookkeeping for the remote phase (mutated across retries)."""

    attempts: int = 0
    init_ms: float | None = None
    init_success: bool = False
    init_error: ResolutionError | None = None
    fetch_ms: float | None = None
    fetch_attempted: bool = False
    fetch_error: ResolutionError | None = None


def _now_iso() -> str:
    return datetime.now(UTC).isoformat()


class ConfigurationService:
    """Resolves (app, environment) configuration from the secrets provider.

    Args:
        settings: phaseconf settings (default: built-in defaults)
        adapter: Provider adapter (default: PhaseHTTPAdapter for settings.client.host)
        environ: Process environment mapping (default: os.environ)
        cwd: Current directory override (default: Path.cwd())
        monitor: Shared Monitor (default: a new one)
        cache: Shared ResultCache (default: a new one from settings)
        retry_config: Backoff for retryable failures (default: from settings)

    Example:
        with ConfigurationService(load_settings()) as service:
            outcome = service.resolve_configuration("demo", "production")
            if isinstance(outcome, ResolvedConfig):
                db_url = outcome.secrets["DATABASE_URL"]
    """

    def __init__(
        self,
        settings: PhaseConfSettings | None = None,
        *,
        adapter: ProviderAdapter | None = None,
        environ: Mapping[str, str] | None = None,
        cwd: Path | None = None,
        monitor: Monitor | None = None,
        cache: ResultCache | None = None,
        retry_config: RetryConfig | None = None,
    ) -> None:
        self._settings = settings or PhaseConfSettings()
        self._environ = environ
        s = self._settings

        self._probe = SourceProbe(s.token, environ=environ, cwd=cwd)
        self._resolver = TokenResolver(self._probe)
        self._monitor = monitor or Monitor(s.monitor)
        self._cache = cache or ResultCache(s.cache.max_entries, s.cache.ttl_seconds)
        self._sweeper = CacheSweeper(self._cache, s.cache.sweep_interval_seconds)
        self._client = SecretsClient(
            adapter or PhaseHTTPAdapter(s.client.host, timeout_seconds=s.client.timeout_seconds),
            self._monitor,
            timeout_seconds=s.client.timeout_seconds,
        )
        self._retry = RetryManager(retry_config or RetryConfig.from_settings(s.retry))
        self._advisor = ErrorAdvisor(variable_name=s.token.variable_name, retry_config=self._retry.config)
        self._local = LocalEnvironmentLoader(s.token, cwd=cwd)

        self._lock = threading.Lock()
        self._diagnostics: ConfigDiagnostics | None = None

    # -- accessors -------------------------------------------------------------

    @property
    def settings(self) -> PhaseConfSettings:
        return self._settings

    @property
    def monitor(self) -> Monitor:
        return self._monitor

    @property
    def cache(self) -> ResultCache:
        return self._cache

    @property
    def advisor(self) -> ErrorAdvisor:
        return self._advisor

    @property
    def resolver(self) -> TokenResolver:
        return self._resolver

    # -- lifecycle -------------------------------------------------------------

    def start(self) -> None:
        """Start the background cache sweeper."""
        self._sweeper.start()

    def close(self) -> None:
        """Stop the background cache sweeper. Idempotent."""
        self._sweeper.stop()

    def __enter__(self) -> ConfigurationService:
        self.start()
        return self

    def __exit__(
        self,
        exc_type: type[BaseException] | None,
        exc_val: BaseException | None,
        exc_tb: TracebackType | None,
    ) -> None:
        self.close()

    # -- resolution ------------------------------------------------------------

    def _names(self, app_name: str | None, environment: str | None) -> tuple[str, str]:
        app = self._settings.app_name if app_name is None else app_name
        env = self._settings.default_environment_name(self._environ) if environment is None else environment
        return app, env

    def resolve_configuration(
        self,
        app_name: str | None = None,
        environment: str | None = None,
        workspace_root: Path | None = None,
        *,
        force_reload: bool = False,
        allow_fallback: bool = True,
    ) -> Outcome:
        """Resolve secrets for (app_name, environment).

        Args:
            app_name: Application name (default: settings.app_name)
            environment: Environment name (default: APP_ENV / NODE_ENV / settings)
            workspace_root: Workspace root override for credential and .env lookup
            force_reload: Skip the cache read (the result is still cached)
            allow_fallback: False forces FAIL_FAST advice and disables retries

        Returns:
            ResolvedConfig on success, FailedResolution otherwise. Provider
            failures never raise.
        """
        app, env = self._names(app_name, environment)
        operation_id = f"{OperationName.CONFIGURATION_RESOLUTION}-{uuid.uuid4().hex}"
        self._monitor.start_operation(operation_id, OperationName.CONFIGURATION_RESOLUTION)

        load_started = time.perf_counter()
        outcome, checks = self._resolver.resolve_with_checks(workspace_root)
        load_ms = (time.perf_counter() - load_started) * 1000.0
        token_source = outcome if isinstance(outcome, TokenSource) else None
        self._monitor.log_token_loading(checks, token_source, load_ms)
        token_loading = self._token_loading_diagnostics(checks, token_source, load_ms)

        if token_source is not None and not force_reload:
            cached = self._cache.get(app, env, token_source.origin)
            if cached is not None:
                config = ResolvedConfig(
                    app_name=app,
                    environment=env,
                    secrets=cached,
                    source=ResultSource.CACHE,
                    token_origin=token_source.origin,
                )
                self._monitor.log_secret_retrieval(
                    success=True,
                    duration_ms=0.0,
                    secret_count=config.secret_count,
                    cache_hit=True,
                    token_source=token_source,
                )
                self._monitor.end_operation(
                    operation_id,
                    True,
                    result={"secret_count": config.secret_count, "cache_hit": True},
                )
                self._store_diagnostics(
                    ConfigDiagnostics(
                        timestamp=_now_iso(),
                        token_loading=token_loading,
                        retrieval=RetrievalDiagnostics(
                            attempted=True,
                            success=True,
                            duration_ms=0.0,
                            secret_count=config.secret_count,
                            cache_hit=True,
                        ),
                    )
                )
                return config

        state = _AttemptState()
        try:
            config = self._run_remote(token_source, app, env, state, allow_fallback=allow_fallback)
        except ResolutionError as err:
            return self._handle_failure(
                operation_id,
                err,
                token_source,
                app,
                env,
                workspace_root,
                state,
                token_loading,
                allow_fallback=allow_fallback,
            )

        if token_source is None:
            raise RuntimeError("remote resolution succeeded without a token source")
        self._cache.set(config.app_name, config.environment, token_source.origin, config.secrets)
        self._monitor.end_operation(
            operation_id,
            True,
            result={
                "secret_count": config.secret_count,
                "cache_hit": False,
                "retry_count": max(0, state.attempts - 1),
            },
        )
        self._store_diagnostics(
            ConfigDiagnostics(
                timestamp=_now_iso(),
                token_loading=token_loading,
                initialization=self._init_diagnostics(state, app, env),
                retrieval=RetrievalDiagnostics(
                    attempted=True,
                    success=True,
                    duration_ms=state.fetch_ms,
                    secret_count=config.secret_count,
                ),
            )
        )
        return config

    def _attempt(self, token_source: TokenSource | None, app: str, env: str, state: _AttemptState) -> ResolvedConfig:
        state.attempts += 1
        state.init_error = None
        state.fetch_error = None

        started = time.perf_counter()
        try:
            session = self._client.initialize(token_source, app, env)
        except ResolutionError as err:
            state.init_ms = (time.perf_counter() - started) * 1000.0
            state.init_success = False
            state.init_error = err
            raise
        state.init_ms = (time.perf_counter() - started) * 1000.0
        state.init_success = True

        state.fetch_attempted = True
        started = time.perf_counter()
        try:
            return self._client.fetch_secrets(session)
        except ResolutionError as err:
            state.fetch_error = err
            raise
        finally:
            state.fetch_ms = (time.perf_counter() - started) * 1000.0
            self._client.close_session(session)

    def _run_remote(
        self,
        token_source: TokenSource | None,
        app: str,
        env: str,
        state: _AttemptState,
        *,
        allow_fallback: bool,
    ) -> ResolvedConfig:
        if not allow_fallback:
            return self._attempt(token_source, app, env, state)

        def _on_retry(attempt: int, error: BaseException) -> None:
            code = error.code if isinstance(error, ResolutionError) else ErrorCode.SDK_ERROR
            self._monitor.log(
                LogLevel.WARN,
                OperationName.CONFIGURATION_RESOLUTION,
                f"Attempt {attempt} failed with {code}, retrying with backoff",
                token_source=token_source,
                error=error,
            )

        try:
            return self._retry.execute_with_retry(
                lambda: self._attempt(token_source, app, env, state),
                is_retryable=lambda e: isinstance(e, ResolutionError) and e.is_retryable,
                on_retry=_on_retry,
            )
        except MaxRetriesExceeded as e:
            if isinstance(e.last_error, ResolutionError):
                raise e.last_error from e
            raise

    def _handle_failure(
        self,
        operation_id: str,
        err: ResolutionError,
        token_source: TokenSource | None,
        app: str,
        env: str,
        workspace_root: Path | None,
        state: _AttemptState,
        token_loading: TokenLoadingDiagnostics,
        *,
        allow_fallback: bool,
    ) -> FailedResolution:
        advice = self._advisor.advise(
            err,
            token_source,
            operation=str(OperationName.CONFIGURATION_RESOLUTION),
            allow_fallback=allow_fallback,
        )

        fallback_variables: Mapping[str, str] = {}
        if advice.should_fallback:
            fallback_variables = self._local.load(env, workspace_root).variables
            self._monitor.log_fallback_usage(advice.strategy, advice.log_message, token_source=token_source, error=err)

        self._monitor.end_operation(
            operation_id,
            False,
            result={"retry_count": max(0, state.attempts - 1)},
            error=err,
        )
        logger.warning(
            "configuration resolution failed",
            app_name=app,
            environment=env,
            error_code=str(err.code),
            strategy=str(advice.strategy),
            token_origin=str(token_source.origin) if token_source is not None else None,
        )

        self._store_diagnostics(
            ConfigDiagnostics(
                timestamp=_now_iso(),
                token_loading=token_loading,
                initialization=self._init_diagnostics(state, app, env),
                retrieval=RetrievalDiagnostics(
                    attempted=state.fetch_attempted,
                    success=False,
                    duration_ms=state.fetch_ms,
                    error=state.fetch_error.message if state.fetch_error is not None else None,
                    error_code=state.fetch_error.code if state.fetch_error is not None else None,
                ),
                fallback=FallbackDiagnostics(
                    triggered=advice.should_fallback,
                    strategy=advice.strategy,
                    reason=advice.log_message,
                ),
            )
        )
        return FailedResolution(error=err, advice=advice, fallback_variables=fallback_variables)

    # -- diagnostics -----------------------------------------------------------

    def _token_loading_diagnostics(
        self,
        checks: tuple[SourceCheck, ...],
        token_source: TokenSource | None,
        load_ms: float,
    ) -> TokenLoadingDiagnostics:
        active_origin = token_source.origin if token_source is not None else None
        active = None
        if token_source is not None:
            active = ActiveToken(
                origin=token_source.origin,
                path=str(token_source.path) if token_source.path is not None else None,
                credential_length=token_source.credential_length,
                is_valid=validate_token_format(token_source.credential),
            )
        return TokenLoadingDiagnostics(
            checked_sources=tuple(CheckedSource.from_check(c, active_origin) for c in checks),
            active_token=active,
            loading_time_ms=load_ms,
        )

    def _init_diagnostics(self, state: _AttemptState, app: str, env: str) -> InitializationDiagnostics:
        if state.attempts == 0:
            return InitializationDiagnostics()
        return InitializationDiagnostics(
            attempted=True,
            success=state.init_success,
            duration_ms=state.init_ms,
            app_name=app,
            environment=env,
            error=state.init_error.message if state.init_error is not None else None,
            error_code=state.init_error.code if state.init_error is not None else None,
        )

    def _store_diagnostics(self, diagnostics: ConfigDiagnostics) -> None:
        with self._lock:
            self._diagnostics = diagnostics

    def get_diagnostics(self, workspace_root: Path | None = None) -> ConfigDiagnostics:
        """Latest diagnostics snapshot.

        Before any resolution, a probe-only report (token loading section
        filled, nothing attempted) is built. Either way the report is also
        written to the Monitor log.
        """
        with self._lock:
            diagnostics = self._diagnostics
        if diagnostics is None:
            started = time.perf_counter()
            outcome, checks = self._resolver.resolve_with_checks(workspace_root)
            load_ms = (time.perf_counter() - started) * 1000.0
            token_source = outcome if not isinstance(outcome, TokenNotFound) else None
            diagnostics = ConfigDiagnostics(
                timestamp=_now_iso(),
                token_loading=self._token_loading_diagnostics(checks, token_source, load_ms),
            )
        self._monitor.log_configuration_diagnostics(diagnostics)
        return diagnostics

    # -- extras ----------------------------------------------------------------

    def load_with_fallback(
        self,
        app_name: str | None = None,
        environment: str | None = None,
        workspace_root: Path | None = None,
        *,
        force_reload: bool = False,
    ) -> EnvironmentSnapshot:
        """Local .env variables merged with remote secrets when available."""
        app, env = self._names(app_name, environment)
        outcome = self.resolve_configuration(app, env, workspace_root, force_reload=force_reload)
        local = self._local.load(env, workspace_root)
        if isinstance(outcome, ResolvedConfig):
            variables = merge_with_local_env(outcome.secrets, local.variables)
        else:
            variables = dict(local.variables)
        return EnvironmentSnapshot(
            app_name=app,
            environment=env,
            variables=MappingProxyType(variables),
            loaded_files=local.loaded_files,
            outcome=outcome,
        )

    def check_connectivity(
        self,
        app_name: str | None = None,
        environment: str | None = None,
        workspace_root: Path | None = None,
    ) -> ConnectivityReport:
        """Single forced, no-retry resolution; reports success and response time."""
        started = time.perf_counter()
        outcome = self.resolve_configuration(
            app_name,
            environment,
            workspace_root,
            force_reload=True,
            allow_fallback=False,
        )
        elapsed_ms = (time.perf_counter() - started) * 1000.0
        if isinstance(outcome, ResolvedConfig):
            return ConnectivityReport(success=True, response_time_ms=elapsed_ms, secret_count=outcome.secret_count)
        return ConnectivityReport(
            success=False,
            response_time_ms=elapsed_ms,
            error_code=outcome.code,
            message=outcome.advice.user_message,
        )

    def status(self) -> dict[str, Any]:
        """Cache and monitor state for host health endpoints."""
        summary = self._monitor.get_performance_summary()
        return {
            "cache": self._cache.status(),
            "cache_metrics": self._cache.get_metrics(),
            "sweeper_running": self._sweeper.is_running,
            "operations": summary.count,
            "success_rate": summary.success_rate,
        }
