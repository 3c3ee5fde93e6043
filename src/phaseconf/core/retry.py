# src/phaseconf/core/retry.py
"""Backoff for the RETRY_WITH_BACKOFF strategy.

Network faults and rate limits are worth another try; everything else is
re-raised on the first failure. Attempts are counted in total, so the
default of three means one call plus two retries.

    manager = RetryManager(RetryConfig(max_attempts=3))
    config = manager.execute_with_retry(
        lambda: fetch_once(),
        on_retry=lambda attempt, error: log_retry(attempt, error),
    )
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass
from typing import TYPE_CHECKING, TypeVar

from tenacity import (
    RetryCallState,
    RetryError,
    Retrying,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from phaseconf.contracts.errors import ResolutionError

if TYPE_CHECKING:
    from phaseconf.core.config import RetrySettings

T = TypeVar("T")


class MaxRetriesExceeded(Exception):
    """Every attempt failed with a retryable error."""

    def __init__(self, attempts: int, last_error: BaseException) -> None:
        self.attempts = attempts
        self.last_error = last_error
        super().__init__(f"Gave up after {attempts} attempts: {last_error}")


def is_retryable_resolution_error(error: BaseException) -> bool:
    return isinstance(error, ResolutionError) and error.is_retryable


@dataclass(frozen=True, slots=True)
class RetryConfig:
    """Backoff parameters; delays in seconds."""

    max_attempts: int = 3
    base_delay: float = 1.0
    max_delay: float = 10.0
    jitter: float = 1.0
    exponential_base: float = 2.0

    def __post_init__(self) -> None:
        if self.max_attempts < 1:
            raise ValueError(f"max_attempts must be >= 1, got {self.max_attempts}")

    @classmethod
    def no_retry(cls) -> RetryConfig:
        return cls(max_attempts=1)

    @classmethod
    def from_settings(cls, settings: RetrySettings) -> RetryConfig:
        # jitter never exceeds the first delay, so short test configs stay short
        return cls(
            max_attempts=settings.max_attempts,
            base_delay=settings.initial_delay_seconds,
            max_delay=settings.max_delay_seconds,
            jitter=min(1.0, settings.initial_delay_seconds),
            exponential_base=settings.exponential_base,
        )


class RetryManager:
    """Runs a callable under tenacity with the configured backoff."""

    def __init__(self, config: RetryConfig) -> None:
        self._config = config

    @property
    def config(self) -> RetryConfig:
        return self._config

    def _retrying(
        self,
        is_retryable: Callable[[BaseException], bool],
        on_retry: Callable[[int, BaseException], None] | None,
    ) -> Retrying:
        def _before_sleep(state: RetryCallState) -> None:
            if on_retry is None or state.outcome is None:
                return
            error = state.outcome.exception()
            if error is not None:
                on_retry(state.attempt_number, error)

        return Retrying(
            stop=stop_after_attempt(self._config.max_attempts),
            wait=wait_exponential_jitter(
                initial=self._config.base_delay,
                max=self._config.max_delay,
                exp_base=self._config.exponential_base,
                jitter=self._config.jitter,
            ),
            retry=retry_if_exception(is_retryable),
            before_sleep=_before_sleep,
            reraise=False,
        )

    def execute_with_retry(
        self,
        operation: Callable[[], T],
        *,
        is_retryable: Callable[[BaseException], bool] = is_retryable_resolution_error,
        on_retry: Callable[[int, BaseException], None] | None = None,
    ) -> T:
        """Call ``operation`` until it succeeds, fails permanently or runs out of attempts.

        ``on_retry(attempt, error)`` runs before each backoff sleep with the
        1-based number of the attempt that just failed.

        Raises:
            MaxRetriesExceeded: A retryable error survived every attempt
            Exception: The first non-retryable error, unchanged
        """
        retrying = self._retrying(is_retryable, on_retry)
        try:
            return retrying(operation)
        except RetryError as e:
            last = e.last_attempt
            error = last.exception()
            if error is None:
                raise RuntimeError("tenacity gave up on a successful attempt") from e
            raise MaxRetriesExceeded(last.attempt_number, error) from e
