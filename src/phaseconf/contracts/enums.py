# src/phaseconf/contracts/enums.py
"""Closed vocabularies shared across the resolution subsystem.

Every value here crosses a component boundary (probe -> resolver -> client ->
advisor -> monitor), so all of them are StrEnums: they compare equal to their
wire strings and render cleanly in structured log output.
"""

from enum import StrEnum


class TokenOrigin(StrEnum):
    """Where a service credential was read from.

    Declaration order IS priority order (highest first). The resolver walks
    the probe results in this order and the first origin holding a credential
    wins.
    """

    PROCESS_ENVIRONMENT = "process-environment"
    LOCAL_ENV_LOCAL = "local-env-local"
    LOCAL_ENV = "local-env"
    ROOT_ENV_LOCAL = "root-env-local"
    ROOT_ENV = "root-env"

    @property
    def is_file(self) -> bool:
        """True for the four file-based origins."""
        return self is not TokenOrigin.PROCESS_ENVIRONMENT

    @property
    def priority(self) -> int:
        """0-based priority rank (0 = highest)."""
        return list(TokenOrigin).index(self)


class ErrorCode(StrEnum):
    """Closed taxonomy of resolution failures.

    Anything the classifier cannot place lands in SDK_ERROR - an untyped
    provider exception never escapes the client.
    """

    TOKEN_NOT_FOUND = "TOKEN_NOT_FOUND"
    AUTHENTICATION_FAILED = "AUTHENTICATION_FAILED"
    INVALID_TOKEN = "INVALID_TOKEN"
    APP_NOT_FOUND = "APP_NOT_FOUND"
    ENVIRONMENT_NOT_FOUND = "ENVIRONMENT_NOT_FOUND"
    RATE_LIMIT_EXCEEDED = "RATE_LIMIT_EXCEEDED"
    NETWORK_ERROR = "NETWORK_ERROR"
    SDK_ERROR = "SDK_ERROR"

    @property
    def is_retryable(self) -> bool:
        """Only transient failures are worth retrying.

        Everything else needs a configuration or credential change.
        """
        return self in _RETRYABLE_CODES


_RETRYABLE_CODES = frozenset({ErrorCode.NETWORK_ERROR, ErrorCode.RATE_LIMIT_EXCEEDED})


class FallbackStrategy(StrEnum):
    """Remediation a caller should adopt after a failed resolution.

    Values:
        LOCAL_ENV_ONLY: Stop using the remote provider for this resolution,
            proceed with locally available environment values
        RETRY_WITH_BACKOFF: Transient failure, retry with exponential backoff
        CACHE_FALLBACK: Serve last-known-good secrets from cache if present
        FAIL_FAST: Caller opted out of any fallback
        GRACEFUL_DEGRADATION: Continue with partial functionality
    """

    LOCAL_ENV_ONLY = "LOCAL_ENV_ONLY"
    RETRY_WITH_BACKOFF = "RETRY_WITH_BACKOFF"
    CACHE_FALLBACK = "CACHE_FALLBACK"
    FAIL_FAST = "FAIL_FAST"
    GRACEFUL_DEGRADATION = "GRACEFUL_DEGRADATION"


class ResultSource(StrEnum):
    """Where a ResolvedConfig's secrets came from."""

    REMOTE = "remote"
    CACHE = "cache"


class LogLevel(StrEnum):
    """Monitor log levels, ordered by severity."""

    DEBUG = "debug"
    INFO = "info"
    WARN = "warn"
    ERROR = "error"

    @property
    def severity(self) -> int:
        return list(LogLevel).index(self)


class OperationName(StrEnum):
    """Operation names the Monitor brackets.

    Callers may use arbitrary names; these are the ones the subsystem emits.
    """

    TOKEN_LOADING = "token-loading"
    SDK_INITIALIZATION = "sdk-initialization"
    SECRET_RETRIEVAL = "secret-retrieval"
    CONFIGURATION_RESOLUTION = "configuration-resolution"
    FALLBACK_USAGE = "fallback-usage"
    CONFIGURATION_DIAGNOSTICS = "configuration-diagnostics"
    MONITORING = "monitoring"
