# src/phaseconf/advice.py
"""ErrorAdvisor: turn a failed resolution into actionable guidance.

Pure: no I/O, no shared state, never raises. Every message it produces is
run through redaction with the active credential as a known secret, so the
advice can be shown to users and written to logs as-is.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

from phaseconf.contracts import ErrorCode, FallbackStrategy, ResolutionError, TokenSource
from phaseconf.core.redaction import redact_sensitive, redact_value
from phaseconf.core.retry import RetryConfig
from phaseconf.resolution.probe import describe_origin

_DEFAULT_STRATEGIES: dict[ErrorCode, FallbackStrategy] = {
    ErrorCode.TOKEN_NOT_FOUND: FallbackStrategy.LOCAL_ENV_ONLY,
    ErrorCode.AUTHENTICATION_FAILED: FallbackStrategy.LOCAL_ENV_ONLY,
    ErrorCode.INVALID_TOKEN: FallbackStrategy.LOCAL_ENV_ONLY,
    ErrorCode.APP_NOT_FOUND: FallbackStrategy.LOCAL_ENV_ONLY,
    ErrorCode.ENVIRONMENT_NOT_FOUND: FallbackStrategy.LOCAL_ENV_ONLY,
    ErrorCode.NETWORK_ERROR: FallbackStrategy.RETRY_WITH_BACKOFF,
    ErrorCode.RATE_LIMIT_EXCEEDED: FallbackStrategy.RETRY_WITH_BACKOFF,
    ErrorCode.SDK_ERROR: FallbackStrategy.GRACEFUL_DEGRADATION,
}

_CREDENTIAL_STEPS = (
    "Check the service token in the Phase console",
    "Generate a new service token if the current one was revoked",
    "Confirm the token's scope covers this application and environment",
    "Make sure the token was copied without surrounding quotes or whitespace",
)

_TROUBLESHOOTING: dict[ErrorCode, tuple[str, ...]] = {
    ErrorCode.TOKEN_NOT_FOUND: (
        "Export PHASE_SERVICE_TOKEN in the process environment",
        "Or add PHASE_SERVICE_TOKEN=<token> to a .env.local file",
        "Make sure the value is not empty or whitespace",
        "Check that the .env files are readable by this process",
    ),
    ErrorCode.AUTHENTICATION_FAILED: _CREDENTIAL_STEPS,
    ErrorCode.INVALID_TOKEN: _CREDENTIAL_STEPS,
    ErrorCode.APP_NOT_FOUND: (
        "Create the application in the Phase console",
        "Check the spelling and case of the application name",
        "Confirm the service token has access to the application",
        "Make sure the application has not been deleted or archived",
    ),
    ErrorCode.ENVIRONMENT_NOT_FOUND: (
        "Create the environment in the Phase console",
        "Check the spelling and case of the environment name",
        "Confirm the environment belongs to the requested application",
        "Confirm the service token has access to the environment",
    ),
    ErrorCode.NETWORK_ERROR: (
        "Check network connectivity to the provider host",
        "Check the provider's service status",
        "Review firewall and proxy settings",
        "Retry after a few minutes",
    ),
    ErrorCode.RATE_LIMIT_EXCEEDED: (
        "Wait for the rate limit window to reset",
        "Retry with exponential backoff",
        "Reduce how often configuration is resolved",
        "Lengthen the result cache TTL to cut provider calls",
    ),
    ErrorCode.SDK_ERROR: (
        "Check the provider's service status",
        "Review the phaseconf settings and application name",
        "Consult the provider documentation for the reported error",
        "Contact provider support if the problem persists",
    ),
}

DEFAULT_RETRY_AFTER_SECONDS = 60

# Codes whose message already names where the token came from
_GUIDED_CODES = frozenset({ErrorCode.TOKEN_NOT_FOUND, ErrorCode.AUTHENTICATION_FAILED, ErrorCode.INVALID_TOKEN})


def default_strategy(code: ErrorCode) -> FallbackStrategy:
    """Strategy recommended for ``code`` when the caller allows fallback."""
    return _DEFAULT_STRATEGIES.get(code, FallbackStrategy.GRACEFUL_DEGRADATION)


def troubleshooting_steps(code: ErrorCode | str) -> list[str]:
    """Fixed four-step checklist for an error code (SDK_ERROR steps for unknown codes)."""
    try:
        known = ErrorCode(code)
    except ValueError:
        known = ErrorCode.SDK_ERROR
    return list(_TROUBLESHOOTING[known])


@dataclass(frozen=True, slots=True)
class Advice:
    """Remediation for one failed resolution.

    Attributes:
        code: Normalised error code
        strategy: Recommended FallbackStrategy
        should_fallback: True unless the strategy is FAIL_FAST
        retryable: Mirrors the error's is_retryable
        user_message: Safe to show to a developer/operator
        log_message: One-line summary for logs
        troubleshooting_steps: Fixed checklist for the code
        debug_info: Non-sensitive context (token origin, path, names)
    """

    code: ErrorCode
    strategy: FallbackStrategy
    should_fallback: bool
    retryable: bool
    user_message: str
    log_message: str
    troubleshooting_steps: tuple[str, ...]
    debug_info: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        object.__setattr__(self, "debug_info", MappingProxyType(dict(self.debug_info)))


@dataclass(frozen=True, slots=True)
class FallbackMechanism:
    description: str
    implementation: str
    retry: RetryConfig | None = None


def _safe_text(value: object) -> str:
    try:
        return str(value)
    except Exception:
        return f"<unprintable {type(value).__name__}>"


class ErrorAdvisor:
    """Maps (error, token source) to an Advice.

    Example:
        advisor = ErrorAdvisor()
        advice = advisor.advise(error, token_source, operation="secret-retrieval")
        if advice.should_fallback:
            ...
    """

    def __init__(
        self,
        *,
        variable_name: str = "PHASE_SERVICE_TOKEN",
        retry_config: RetryConfig | None = None,
    ) -> None:
        self._variable_name = variable_name
        self._retry_config = retry_config or RetryConfig()

    def normalize(self, error: object, token_source: TokenSource | None = None) -> ResolutionError:
        """Coerce anything into a ResolutionError; unknown inputs become SDK_ERROR."""
        if isinstance(error, ResolutionError):
            return error
        secrets = (token_source.credential,) if token_source is not None else ()
        message = redact_sensitive(_safe_text(error), known_secrets=secrets) or "Unknown error"
        return ResolutionError(
            ErrorCode.SDK_ERROR,
            message,
            token_origin=token_source.origin if token_source is not None else None,
            details={"error_type": type(error).__name__},
        )

    def _token_guidance(self, token_source: TokenSource | None) -> str:
        if token_source is None:
            return (
                f"{self._variable_name} not found. Set it in the process environment or in a .env.local or .env file"
            )
        path = f" ({token_source.path})" if token_source.path is not None else ""
        return f"Token loaded from {describe_origin(token_source.origin, self._variable_name)}{path}"

    def _code_messages(self, err: ResolutionError, token_source: TokenSource | None, operation: str) -> tuple[str, str]:
        app = err.details.get("app_name", "unknown")
        env = err.details.get("environment", "unknown")
        origin = str(token_source.origin) if token_source is not None else "unknown source"
        guidance = self._token_guidance(token_source)

        match err.code:
            case ErrorCode.TOKEN_NOT_FOUND:
                return (
                    f"Secrets provider configuration missing: {guidance}.",
                    f"{operation} failed: no {self._variable_name} found in any source",
                )
            case ErrorCode.AUTHENTICATION_FAILED:
                return (
                    f"Secrets provider authentication failed. {guidance}. "
                    "Verify the token is valid and has the required permissions.",
                    f"{operation} failed: authentication rejected for token from {origin}",
                )
            case ErrorCode.INVALID_TOKEN:
                return (
                    f"Service token is invalid. {guidance}. Check the token format and that it was copied correctly.",
                    f"{operation} failed: invalid token from {origin}",
                )
            case ErrorCode.APP_NOT_FOUND:
                return (
                    f'Application "{app}" not found. Create it in the Phase console or fix the configured app name.',
                    f'{operation} failed: application "{app}" not found',
                )
            case ErrorCode.ENVIRONMENT_NOT_FOUND:
                return (
                    f'Environment "{env}" not found in application "{app}". '
                    "Create the environment or fix the environment name.",
                    f'{operation} failed: environment "{env}" not found in application "{app}"',
                )
            case ErrorCode.NETWORK_ERROR:
                return (
                    "Secrets provider is temporarily unreachable. Using local environment variables.",
                    f"{operation} failed: network error - {err.message}",
                )
            case ErrorCode.RATE_LIMIT_EXCEEDED:
                retry_after = err.details.get("retry_after", DEFAULT_RETRY_AFTER_SECONDS)
                return (
                    f"Secrets provider rate limit exceeded. Retry in {retry_after} seconds.",
                    f"{operation} failed: rate limit exceeded, retry after {retry_after}s",
                )
            case _:
                return (
                    "Secrets provider error. Using local environment variables.",
                    f"{operation} failed: {err.message}",
                )

    def _messages(self, err: ResolutionError, token_source: TokenSource | None, operation: str) -> tuple[str, str]:
        user_message, log_message = self._code_messages(err, token_source, operation)
        if token_source is not None and err.code not in _GUIDED_CODES:
            user_message = f"{user_message} {self._token_guidance(token_source)}."
        return user_message, log_message

    def advise(
        self,
        error: object,
        token_source: TokenSource | None = None,
        *,
        operation: str = "configuration resolution",
        allow_fallback: bool = True,
    ) -> Advice:
        """Recommend a strategy for ``error``. Never raises.

        Args:
            error: Usually a ResolutionError; anything else is treated as SDK_ERROR
            token_source: Active credential, if one was found
            operation: Name of the failed operation (for log_message)
            allow_fallback: False forces FAIL_FAST
        """
        err = self.normalize(error, token_source)
        strategy = default_strategy(err.code) if allow_fallback else FallbackStrategy.FAIL_FAST
        user_message, log_message = self._messages(err, token_source, operation)

        secrets = (token_source.credential,) if token_source is not None else ()
        debug_info: dict[str, Any] = {
            "error_code": str(err.code),
            "token_origin": str(token_source.origin) if token_source is not None else None,
            "token_path": str(token_source.path) if token_source is not None and token_source.path else None,
        }
        debug_info.update(redact_value(err.details, known_secrets=secrets))

        return Advice(
            code=err.code,
            strategy=strategy,
            should_fallback=strategy is not FallbackStrategy.FAIL_FAST,
            retryable=err.is_retryable,
            user_message=redact_sensitive(user_message, known_secrets=secrets),
            log_message=redact_sensitive(log_message, known_secrets=secrets),
            troubleshooting_steps=tuple(troubleshooting_steps(err.code)),
            debug_info=debug_info,
        )

    def troubleshooting_steps(self, code: ErrorCode | str) -> list[str]:
        return troubleshooting_steps(code)

    def fallback_mechanism(self, strategy: FallbackStrategy) -> FallbackMechanism:
        """Describe how a host should carry out ``strategy``."""
        match strategy:
            case FallbackStrategy.LOCAL_ENV_ONLY:
                return FallbackMechanism(
                    "Fall back to local environment variables only",
                    "Load variables from .env files without contacting the provider",
                )
            case FallbackStrategy.RETRY_WITH_BACKOFF:
                return FallbackMechanism(
                    "Retry with exponential backoff",
                    "Repeat the provider call with increasing delays",
                    retry=self._retry_config,
                )
            case FallbackStrategy.CACHE_FALLBACK:
                return FallbackMechanism(
                    "Use cached secrets if available",
                    "Serve the last successful result from the cache while the provider is unavailable",
                )
            case FallbackStrategy.FAIL_FAST:
                return FallbackMechanism(
                    "Fail immediately without fallback",
                    "Surface the error to the caller unchanged",
                )
            case _:
                return FallbackMechanism(
                    "Continue with reduced functionality",
                    "Run with features that need provider secrets disabled",
                )

    def format_error_for_logging(
        self,
        error: object,
        token_source: TokenSource | None = None,
        operation: str | None = None,
    ) -> dict[str, Any]:
        """Structured, credential-free view of an error."""
        err = self.normalize(error, token_source)
        secrets = (token_source.credential,) if token_source is not None else ()
        return {
            "timestamp": datetime.now(UTC).isoformat(),
            "operation": operation or "unknown",
            "error_code": str(err.code),
            "message": redact_sensitive(err.message, known_secrets=secrets),
            "is_retryable": err.is_retryable,
            "token_source": token_source.describe() if token_source is not None else None,
            "details": redact_value(err.details, known_secrets=secrets),
            "troubleshooting_steps": troubleshooting_steps(err.code),
        }

    def user_friendly_message(self, error: object, token_source: TokenSource | None = None) -> str:
        """user_message followed by the numbered troubleshooting steps."""
        advice = self.advise(error, token_source)
        lines = [advice.user_message, "", "Troubleshooting steps:"]
        lines.extend(f"{i}. {step}" for i, step in enumerate(advice.troubleshooting_steps, start=1))
        return "\n".join(lines)
