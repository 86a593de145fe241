"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines the custom exceptions shared by the collector.

- Provides clear exception hierarchy
- Enables specific error handling per failure scope
- Includes context for debugging

Store write failures live in storage.repositories.exceptions
and remote fetch failures in sonar_client.types; both are
surfaced through the cycle differently (see collector.task).

============================================================
EXCEPTION HIERARCHY
============================================================
CollectorException (base)
├── ConfigurationError
│   └── InvalidConfigError
├── DataIngestionError
│   └── ChangeEventParseError
└── CycleAbortedError

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels for alerting."""

    LOW = "low"
    """Minor issue, informational."""

    MEDIUM = "medium"
    """Moderate issue, requires attention."""

    HIGH = "high"
    """Serious issue, the cycle cannot do its job."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class CollectorException(Exception):
    """
    Base exception for all collector errors.

    All exceptions carry:
    - severity: for alerting
    - context: for debugging
    - recoverable: whether the next cycle may succeed
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM
    default_recoverable: bool = True

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        recoverable: Optional[bool] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.recoverable = recoverable if recoverable is not None else self.default_recoverable
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "recoverable": self.recoverable,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(CollectorException):
    """Error in configuration."""

    default_severity = Severity.HIGH
    default_recoverable = False

    def __init__(
        self,
        message: str,
        config_key: Optional[str] = None,
        actual_value: Optional[Any] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if config_key:
            context["config_key"] = config_key
        if actual_value is not None:
            context["actual_value"] = str(actual_value)[:100]

        super().__init__(message, context=context, **kwargs)


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid configuration for {key}: {reason}",
            config_key=key,
            actual_value=value,
            context={"reason": reason},
        )


# ============================================================
# DATA ERRORS
# ============================================================

class DataIngestionError(CollectorException):
    """Failed to ingest data from a remote server."""

    def __init__(
        self,
        message: str,
        source: Optional[str] = None,
        endpoint: Optional[str] = None,
        **kwargs,
    ):
        context = kwargs.pop("context", {})

        if source:
            context["source"] = source
        if endpoint:
            context["endpoint"] = endpoint

        super().__init__(message, context=context, **kwargs)


class ChangeEventParseError(DataIngestionError):
    """A quality profile change event carried an unparseable date."""

    default_recoverable = False

    def __init__(self, raw_date: Any, **kwargs):
        super().__init__(
            message=f"Cannot parse change event date: {raw_date!r}",
            context={"raw_date": str(raw_date)[:100]},
            **kwargs,
        )
        self.raw_date = raw_date


# ============================================================
# CYCLE ERRORS
# ============================================================

class CycleAbortedError(CollectorException):
    """The cycle stopped before every server was processed."""

    default_severity = Severity.HIGH

    def __init__(self, message: str, processed_servers: int, total_servers: int):
        super().__init__(
            message,
            context={
                "processed_servers": processed_servers,
                "total_servers": total_servers,
            },
        )
        self.processed_servers = processed_servers
        self.total_servers = total_servers


__all__ = [
    "Severity",
    "CollectorException",
    "ConfigurationError",
    "InvalidConfigError",
    "DataIngestionError",
    "ChangeEventParseError",
    "CycleAbortedError",
]
