# tests/core/test_retry.py
"""Tests for RetryManager."""

import pytest

from phaseconf.contracts import ErrorCode, ResolutionError
from phaseconf.core.config import RetrySettings
from phaseconf.core.retry import MaxRetriesExceeded, RetryConfig, RetryManager

FAST = RetryConfig(max_attempts=3, base_delay=0.001, max_delay=0.002, jitter=0.0)


def _retryable(e: BaseException) -> bool:
    return isinstance(e, ResolutionError) and e.is_retryable


class TestRetryConfig:
    def test_zero_attempts_rejected(self) -> None:
        with pytest.raises(ValueError):
            RetryConfig(max_attempts=0)

    def test_from_settings(self) -> None:
        config = RetryConfig.from_settings(RetrySettings(max_attempts=5, initial_delay_seconds=0.5))

        assert config.max_attempts == 5
        assert config.base_delay == 0.5
        assert config.max_delay == 10.0
        assert config.jitter == 0.5

    def test_no_retry_factory(self) -> None:
        assert RetryConfig.no_retry().max_attempts == 1


class TestRetryManager:
    def test_success_first_try(self) -> None:
        manager = RetryManager(FAST)

        assert manager.execute_with_retry(lambda: 42, is_retryable=_retryable) == 42

    def test_retries_transient_then_succeeds(self) -> None:
        calls = []

        def flaky() -> str:
            calls.append(1)
            if len(calls) < 3:
                raise ResolutionError(ErrorCode.NETWORK_ERROR, "down")
            return "ok"

        retried: list[int] = []
        result = RetryManager(FAST).execute_with_retry(
            flaky,
            is_retryable=_retryable,
            on_retry=lambda attempt, _e: retried.append(attempt),
        )

        assert result == "ok"
        assert len(calls) == 3
        assert retried == [1, 2]

    def test_non_retryable_raised_immediately(self) -> None:
        calls = []

        def broken() -> None:
            calls.append(1)
            raise ResolutionError(ErrorCode.APP_NOT_FOUND, "missing")

        with pytest.raises(ResolutionError) as exc_info:
            RetryManager(FAST).execute_with_retry(broken, is_retryable=_retryable)

        assert exc_info.value.code is ErrorCode.APP_NOT_FOUND
        assert len(calls) == 1

    def test_exhaustion_wraps_last_error(self) -> None:
        def always_limited() -> None:
            raise ResolutionError(ErrorCode.RATE_LIMIT_EXCEEDED, "429")

        with pytest.raises(MaxRetriesExceeded) as exc_info:
            RetryManager(FAST).execute_with_retry(always_limited, is_retryable=_retryable)

        assert exc_info.value.attempts == 3
        assert isinstance(exc_info.value.last_error, ResolutionError)
        assert exc_info.value.last_error.code is ErrorCode.RATE_LIMIT_EXCEEDED

    def test_default_predicate_retries_resolution_errors_only(self) -> None:
        calls = []

        def flaky() -> str:
            calls.append(1)
            if len(calls) == 1:
                raise ResolutionError(ErrorCode.NETWORK_ERROR, "reset")
            return "ok"

        assert RetryManager(FAST).execute_with_retry(flaky) == "ok"

        with pytest.raises(KeyError):
            RetryManager(FAST).execute_with_retry(lambda: {}["missing"])

    def test_single_attempt_config_never_retries(self) -> None:
        retried: list[int] = []

        def limited() -> None:
            raise ResolutionError(ErrorCode.RATE_LIMIT_EXCEEDED, "429")

        with pytest.raises(MaxRetriesExceeded) as exc_info:
            RetryManager(RetryConfig.no_retry()).execute_with_retry(
                limited, on_retry=lambda attempt, _e: retried.append(attempt)
            )

        assert exc_info.value.attempts == 1
        assert retried == []
