"""
Core Module Package.

This package contains the infrastructure components that
the collector's other packages depend on.

Components:
- clock: Testable time abstraction (epoch milliseconds)
- exceptions: Custom exception hierarchy
"""

from .clock import ClockFactory, MockClock, SystemClock
from .exceptions import (
    ChangeEventParseError,
    CollectorException,
    ConfigurationError,
    CycleAbortedError,
    DataIngestionError,
    InvalidConfigError,
)

__all__ = [
    "ClockFactory",
    "MockClock",
    "SystemClock",
    "ChangeEventParseError",
    "CollectorException",
    "ConfigurationError",
    "CycleAbortedError",
    "DataIngestionError",
    "InvalidConfigError",
]
