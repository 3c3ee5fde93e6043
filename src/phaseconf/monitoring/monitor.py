# src/phaseconf/monitoring/monitor.py
"""Monitor: operation timing, error rates and a redacted log buffer.

The Monitor is an observer. It never raises into the code it observes:
ending an unknown operation is a logged no-op, and every message is redacted
and truncated before it is stored or emitted.

Thread Safety:
    A single lock guards the in-flight map, the record buffer, the log
    buffer and the error-rate cache.
"""

from __future__ import annotations

import threading
import time
from collections import Counter
from collections.abc import Callable, Iterable, Mapping
from dataclasses import asdict, dataclass, field
from datetime import UTC, datetime
from types import MappingProxyType
from typing import Any

import structlog

from phaseconf.advice import default_strategy
from phaseconf.contracts import (
    ConfigDiagnostics,
    ErrorCode,
    FallbackStrategy,
    LogLevel,
    OperationName,
    PerformanceRecord,
    ResolutionError,
    SourceCheck,
    TokenOrigin,
    TokenSource,
)
from phaseconf.core.config import MonitorSettings
from phaseconf.core.redaction import redact_sensitive, redact_value, truncate
from phaseconf.monitoring.buffer import BoundedBuffer

logger = structlog.get_logger(__name__)

HOUR_MS = 3_600_000
DAY_MS = 86_400_000

_STRUCTLOG_METHODS = {
    LogLevel.DEBUG: "debug",
    LogLevel.INFO: "info",
    LogLevel.WARN: "warning",
    LogLevel.ERROR: "error",
}


@dataclass(frozen=True, slots=True)
class LogEntry:
    """One stored (already redacted) monitor log line."""

    timestamp: float
    level: LogLevel
    operation: str
    message: str
    token_source: Mapping[str, Any] | None = None
    error: Mapping[str, Any] | None = None
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def iso_timestamp(self) -> str:
        return datetime.fromtimestamp(self.timestamp, UTC).isoformat()


@dataclass(frozen=True, slots=True)
class PerformanceSummary:
    count: int
    success_rate: float
    avg_latency_ms: float
    p95_latency_ms: float
    errors_by_code: Mapping[str, int]
    cache_hit_rate: float = 0.0


@dataclass(frozen=True, slots=True)
class ErrorRateReport:
    window_label: str
    computed_at: float
    total_operations: int
    error_count: int
    error_rate: float
    errors_by_code: Mapping[str, int]
    fallback_usage_by_strategy: Mapping[str, int]


@dataclass(slots=True)
class _InFlight:
    operation: str
    started_at: float
    token_origin: TokenOrigin | None
    token_view: dict[str, Any] | None


def _p95(sorted_values: list[float]) -> float:
    if not sorted_values:
        return 0.0
    index = min(int(len(sorted_values) * 0.95), len(sorted_values) - 1)
    return sorted_values[index]


class Monitor:
    """Records monitored operations and a capped, redacted log.

    Args:
        settings: Retention and logging options
        clock: Epoch-seconds clock used for timestamps and latency
    """

    def __init__(
        self,
        settings: MonitorSettings | None = None,
        *,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self._settings = settings or MonitorSettings()
        self._clock = clock
        self._lock = threading.Lock()
        self._in_flight: dict[str, _InFlight] = {}
        self._records: BoundedBuffer[PerformanceRecord] = BoundedBuffer(
            self._settings.max_records, name="performance-records"
        )
        self._logs: BoundedBuffer[LogEntry] = BoundedBuffer(self._settings.max_log_entries, name="log-entries")
        self._error_rates: dict[str, ErrorRateReport] = {}
        self._min_level = LogLevel(self._settings.log_level)

    @property
    def settings(self) -> MonitorSettings:
        return self._settings

    # -- operation bracketing -------------------------------------------------

    def start_operation(
        self,
        operation_id: str,
        operation: str,
        token_source: TokenSource | None = None,
    ) -> None:
        """Begin timing ``operation_id``. Reusing an in-flight id overwrites it."""
        token_view = self._token_view(token_source)
        with self._lock:
            self._in_flight[operation_id] = _InFlight(
                operation=str(operation),
                started_at=self._clock(),
                token_origin=token_source.origin if token_source is not None else None,
                token_view=token_view,
            )
        self.log(
            LogLevel.DEBUG,
            operation,
            f"Started {operation}",
            token_source=token_source,
            metadata={"operation_id": operation_id},
        )

    def end_operation(
        self,
        operation_id: str,
        success: bool,
        result: Mapping[str, Any] | None = None,
        error: BaseException | None = None,
    ) -> PerformanceRecord | None:
        """Finish ``operation_id`` and append a PerformanceRecord.

        ``result`` may carry ``secret_count``, ``cache_hit`` and ``retry_count``.
        Unknown ids log a warning and change nothing.
        """
        result = result or {}
        with self._lock:
            in_flight = self._in_flight.pop(operation_id, None)
            if in_flight is None:
                ended_at = 0.0
            else:
                ended_at = self._clock()
                error_code = _error_code(error)
                record = PerformanceRecord(
                    operation=in_flight.operation,
                    started_at=in_flight.started_at,
                    ended_at=ended_at,
                    success=success,
                    error_code=error_code,
                    token_origin=in_flight.token_origin,
                    secret_count=result.get("secret_count"),
                    cache_hit=result.get("cache_hit"),
                    retry_count=result.get("retry_count"),
                )
                self._records.append(record)

        if in_flight is None:
            logger.warning("end_operation for unknown operation id", operation_id=operation_id)
            return None

        duration_ms = round(record.latency_ms)
        if success:
            level, message = LogLevel.INFO, f"Completed {in_flight.operation} successfully in {duration_ms}ms"
        else:
            level, message = LogLevel.ERROR, f"Failed {in_flight.operation} after {duration_ms}ms"
        self._append_log(
            level,
            in_flight.operation,
            message,
            token_view=in_flight.token_view,
            error=error,
            metadata={
                "operation_id": operation_id,
                "duration_ms": duration_ms,
                "secret_count": record.secret_count,
                "cache_hit": record.cache_hit,
                "retry_count": record.retry_count,
            },
        )
        return record

    # -- aggregation ----------------------------------------------------------

    def _records_since(self, window_ms: float | None) -> list[PerformanceRecord]:
        with self._lock:
            records = self._records.snapshot()
        if window_ms is None:
            return records
        cutoff = self._clock() - window_ms / 1000.0
        return [r for r in records if r.ended_at >= cutoff]

    def get_performance_summary(
        self,
        operation: str | None = None,
        window_ms: float | None = None,
    ) -> PerformanceSummary:
        """Summary over retained records, optionally filtered by operation and trailing window."""
        records = self._records_since(window_ms)
        if operation is not None:
            records = [r for r in records if r.operation == str(operation)]

        count = len(records)
        successes = sum(1 for r in records if r.success)
        latencies = sorted(r.latency_ms for r in records)
        errors = Counter(str(r.error_code) for r in records if not r.success and r.error_code is not None)
        cache_checked = [r for r in records if r.cache_hit is not None]

        return PerformanceSummary(
            count=count,
            success_rate=successes / count if count else 0.0,
            avg_latency_ms=sum(latencies) / count if count else 0.0,
            p95_latency_ms=_p95(latencies),
            errors_by_code=MappingProxyType(dict(errors)),
            cache_hit_rate=(
                sum(1 for r in cache_checked if r.cache_hit) / len(cache_checked) if cache_checked else 0.0
            ),
        )

    def get_error_rate(self, window_label: str = "last-hour", window_ms: float = HOUR_MS) -> ErrorRateReport:
        """Error rate over a trailing window, reused per label for error_rate_cache_seconds."""
        now = self._clock()
        with self._lock:
            cached = self._error_rates.get(window_label)
        if cached is not None and now - cached.computed_at < self._settings.error_rate_cache_seconds:
            return cached

        records = self._records_since(window_ms)
        failures = [r for r in records if not r.success]
        by_code = Counter(str(r.error_code) for r in failures if r.error_code is not None)
        by_strategy = Counter(str(default_strategy(r.error_code)) for r in failures if r.error_code is not None)

        report = ErrorRateReport(
            window_label=window_label,
            computed_at=now,
            total_operations=len(records),
            error_count=len(failures),
            error_rate=len(failures) / len(records) if records else 0.0,
            errors_by_code=MappingProxyType(dict(by_code)),
            fallback_usage_by_strategy=MappingProxyType(dict(by_strategy)),
        )
        with self._lock:
            self._error_rates[window_label] = report
        return report

    # -- logging --------------------------------------------------------------

    def _token_view(self, token_source: TokenSource | None) -> dict[str, Any] | None:
        if token_source is None:
            return None
        return token_source.describe()

    def _redact(self, text: str) -> str:
        if not self._settings.redact_sensitive_data:
            return text
        return redact_sensitive(text)

    def log(
        self,
        level: LogLevel | str,
        operation: str,
        message: str,
        *,
        token_source: TokenSource | None = None,
        error: BaseException | None = None,
        metadata: Mapping[str, Any] | None = None,
    ) -> LogEntry | None:
        """Store and emit one log entry. Below the minimum level: dropped."""
        return self._append_log(
            level,
            operation,
            message,
            token_view=self._token_view(token_source),
            error=error,
            metadata=metadata,
        )

    def _append_log(
        self,
        level: LogLevel | str,
        operation: str,
        message: str,
        *,
        token_view: Mapping[str, Any] | None,
        error: BaseException | None,
        metadata: Mapping[str, Any] | None,
    ) -> LogEntry | None:
        try:
            log_level = LogLevel(level)
        except ValueError:
            log_level = LogLevel.INFO
        if log_level.severity < self._min_level.severity:
            return None

        error_view: dict[str, Any] | None = None
        if error is not None:
            code = _error_code(error) or ErrorCode.SDK_ERROR
            raw_message = error.message if isinstance(error, ResolutionError) else str(error)
            error_view = {
                "code": str(code),
                "message": self._redact(raw_message),
                "is_retryable": code.is_retryable,
                "fallback_strategy": str(default_strategy(code)),
            }

        safe_metadata = dict(metadata or {})
        if self._settings.redact_sensitive_data:
            safe_metadata = redact_value(safe_metadata)

        entry = LogEntry(
            timestamp=self._clock(),
            level=log_level,
            operation=str(operation),
            message=truncate(self._redact(message), self._settings.max_log_entry_size),
            token_source=MappingProxyType(dict(token_view)) if token_view is not None else None,
            error=MappingProxyType(error_view) if error_view is not None else None,
            metadata=MappingProxyType(safe_metadata),
        )
        with self._lock:
            self._logs.append(entry)

        self._emit(entry)
        return entry

    def _emit(self, entry: LogEntry) -> None:
        context: dict[str, Any] = {"operation": entry.operation}
        if self._settings.show_token_sources and entry.token_source is not None:
            context["token_source"] = dict(entry.token_source)
        if entry.error is not None:
            context["error"] = dict(entry.error)
        context.update({k: v for k, v in entry.metadata.items() if v is not None})
        getattr(logger, _STRUCTLOG_METHODS[entry.level])(entry.message, **context)

    def get_recent_logs(
        self,
        level: LogLevel | str | None = None,
        limit: int = 100,
        operation: str | None = None,
    ) -> list[LogEntry]:
        """Most recent first, filtered by minimum level and operation."""
        with self._lock:
            entries = self._logs.snapshot()
        min_severity = LogLevel(level).severity if level is not None else -1
        matching = [
            e
            for e in reversed(entries)
            if e.level.severity >= min_severity and (operation is None or e.operation == str(operation))
        ]
        return matching[: max(0, limit)]

    # -- structured convenience loggers ---------------------------------------

    def log_token_loading(
        self,
        checks: Iterable[SourceCheck],
        token_source: TokenSource | None,
        duration_ms: float,
    ) -> None:
        checked = list(checks)
        if token_source is not None:
            message = f"Service token loaded from {token_source.origin} in {round(duration_ms)}ms"
            level = LogLevel.INFO
        else:
            message = f"No service token found after checking {len(checked)} sources in {round(duration_ms)}ms"
            level = LogLevel.WARN
        self.log(
            level,
            OperationName.TOKEN_LOADING,
            message,
            token_source=token_source,
            metadata={
                "checked_sources": [
                    {
                        "origin": str(c.origin),
                        "path": str(c.path) if c.path is not None else None,
                        "exists": c.exists,
                        "has_credential": c.has_credential,
                        "check_order": c.check_order,
                    }
                    for c in checked
                ],
                "duration_ms": round(duration_ms),
            },
        )

    def log_initialization(
        self,
        app_name: str,
        environment: str,
        *,
        success: bool,
        duration_ms: float,
        token_source: TokenSource | None = None,
        error: BaseException | None = None,
    ) -> None:
        message = (
            f"Session initialized for {app_name} ({environment}) in {round(duration_ms)}ms"
            if success
            else f"Session initialization failed for {app_name} ({environment})"
        )
        self.log(
            LogLevel.INFO if success else LogLevel.ERROR,
            OperationName.SDK_INITIALIZATION,
            message,
            token_source=token_source,
            error=error,
            metadata={"app_name": app_name, "environment": environment, "duration_ms": round(duration_ms)},
        )

    def log_secret_retrieval(
        self,
        *,
        success: bool,
        duration_ms: float,
        secret_count: int = 0,
        cache_hit: bool = False,
        token_source: TokenSource | None = None,
        error: BaseException | None = None,
    ) -> None:
        suffix = " (from cache)" if cache_hit else ""
        message = (
            f"Retrieved {secret_count} secrets in {round(duration_ms)}ms{suffix}"
            if success
            else "Secret retrieval failed"
        )
        self.log(
            LogLevel.INFO if success else LogLevel.ERROR,
            OperationName.SECRET_RETRIEVAL,
            message,
            token_source=token_source,
            error=error,
            metadata={"secret_count": secret_count, "cache_hit": cache_hit, "duration_ms": round(duration_ms)},
        )

    def log_fallback_usage(
        self,
        strategy: FallbackStrategy,
        reason: str,
        *,
        token_source: TokenSource | None = None,
        error: BaseException | None = None,
    ) -> None:
        self.log(
            LogLevel.WARN,
            OperationName.FALLBACK_USAGE,
            f"Using fallback strategy {strategy}: {reason}",
            token_source=token_source,
            error=error,
            metadata={"strategy": str(strategy)},
        )

    def log_configuration_diagnostics(self, diagnostics: ConfigDiagnostics) -> None:
        report = diagnostics.to_dict()
        self.log(
            LogLevel.INFO,
            OperationName.CONFIGURATION_DIAGNOSTICS,
            "Configuration diagnostics",
            metadata={
                "token_loading": report["token_loading"],
                "initialization": report["initialization"],
                "retrieval": report["retrieval"],
                "fallback": report["fallback"],
            },
        )

    # -- export / reset -------------------------------------------------------

    def export_monitoring_data(self, include_raw_records: bool = False) -> dict[str, Any]:
        """Snapshot of summary, error rates and (optionally) raw records."""
        summary = self.get_performance_summary()
        data: dict[str, Any] = {
            "summary": {
                "total_operations": summary.count,
                "success_rate": summary.success_rate,
                "avg_latency_ms": summary.avg_latency_ms,
                "p95_latency_ms": summary.p95_latency_ms,
                "errors_by_code": dict(summary.errors_by_code),
                "error_rates": {
                    "last-hour": _report_dict(self.get_error_rate("last-hour", HOUR_MS)),
                    "last-day": _report_dict(self.get_error_rate("last-day", DAY_MS)),
                },
            },
            "recent_logs": [_entry_dict(e) for e in self.get_recent_logs(limit=50)],
        }
        if include_raw_records:
            with self._lock:
                records = self._records.snapshot()
            data["records"] = [asdict(r) for r in records]
        return data

    def clear(self) -> None:
        """Drop all records, log entries, in-flight operations and cached rates."""
        with self._lock:
            self._in_flight.clear()
            self._records.clear()
            self._logs.clear()
            self._error_rates.clear()


def _error_code(error: BaseException | None) -> ErrorCode | None:
    if error is None:
        return None
    if isinstance(error, ResolutionError):
        return error.code
    return ErrorCode.SDK_ERROR


def _report_dict(report: ErrorRateReport) -> dict[str, Any]:
    return {
        "computed_at": report.computed_at,
        "total_operations": report.total_operations,
        "error_count": report.error_count,
        "error_rate": report.error_rate,
        "errors_by_code": dict(report.errors_by_code),
        "fallback_usage_by_strategy": dict(report.fallback_usage_by_strategy),
    }


def _entry_dict(entry: LogEntry) -> dict[str, Any]:
    return {
        "timestamp": entry.iso_timestamp,
        "level": str(entry.level),
        "operation": entry.operation,
        "message": entry.message,
        "token_source": dict(entry.token_source) if entry.token_source is not None else None,
        "error": dict(entry.error) if entry.error is not None else None,
        "metadata": dict(entry.metadata),
    }
