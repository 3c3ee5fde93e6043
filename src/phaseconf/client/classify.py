# src/phaseconf/client/classify.py
"""Map arbitrary provider exceptions onto the closed ErrorCode taxonomy.

Provider SDKs and HTTP stacks report failures as free text, so this is a
message heuristic. Rules are evaluated in order and the first match wins.
Keeping it a pure function of the exception means the rules can be swapped
for structured error codes without touching the client.
"""

from __future__ import annotations

import httpx

from phaseconf.contracts import ErrorCode, ResolutionError

_AUTH_MARKERS = ("401", "403", "unauthorized", "forbidden", "authentication")
_NOT_FOUND_MARKERS = ("404", "not found")
_ENV_MISSING_MARKERS = ("does not exist", "unknown")
_RATE_LIMIT_MARKERS = ("429", "rate limit", "too many requests")
_NETWORK_MARKERS = ("network", "connection refused", "econnrefused", "timeout", "timed out")

_NETWORK_EXCEPTION_TYPES: tuple[type[BaseException], ...] = (
    TimeoutError,
    ConnectionError,
    httpx.TransportError,
)


def _error_text(exc: BaseException) -> str:
    text = str(exc)
    # httpx.HTTPStatusError (and many SDK errors) carry the status separately
    status = getattr(exc, "status_code", None)
    response = getattr(exc, "response", None)
    if status is None and response is not None:
        status = getattr(response, "status_code", None)
    if status is not None:
        text = f"{status} {text}"
    return text.lower()


def classify_provider_error(exc: BaseException) -> ErrorCode:
    """Classify a provider failure. Never raises.

    An existing ResolutionError keeps its code; TOKEN_NOT_FOUND can only
    arrive that way.
    """
    if isinstance(exc, ResolutionError):
        return exc.code

    text = _error_text(exc)

    if any(marker in text for marker in _AUTH_MARKERS):
        return ErrorCode.AUTHENTICATION_FAILED
    if "token" in text and "invalid" in text:
        return ErrorCode.INVALID_TOKEN
    if any(marker in text for marker in _NOT_FOUND_MARKERS):
        return ErrorCode.APP_NOT_FOUND
    if "environment" in text and any(marker in text for marker in _ENV_MISSING_MARKERS):
        return ErrorCode.ENVIRONMENT_NOT_FOUND
    if any(marker in text for marker in _RATE_LIMIT_MARKERS):
        return ErrorCode.RATE_LIMIT_EXCEEDED
    if any(marker in text for marker in _NETWORK_MARKERS) or isinstance(exc, _NETWORK_EXCEPTION_TYPES):
        return ErrorCode.NETWORK_ERROR
    return ErrorCode.SDK_ERROR
