# src/phaseconf/monitoring/__init__.py
"""Operation monitoring and redacted log retention."""

from phaseconf.monitoring.buffer import BoundedBuffer
from phaseconf.monitoring.monitor import (
    DAY_MS,
    HOUR_MS,
    ErrorRateReport,
    LogEntry,
    Monitor,
    PerformanceSummary,
)

__all__ = [
    "DAY_MS",
    "HOUR_MS",
    "BoundedBuffer",
    "ErrorRateReport",
    "LogEntry",
    "Monitor",
    "PerformanceSummary",
]
