"""
Core Module - Exceptions.

============================================================
RESPONSIBILITY
============================================================
Defines the root exception hierarchy for the risk analytics
engine.

- Provides clear exception hierarchy
- Enables specific error handling
- Includes context for debugging

============================================================
EXCEPTION HIERARCHY
============================================================
RiskAnalyticsError (base)
├── ConfigurationError
│   ├── MissingConfigError
│   └── InvalidConfigError
├── UnknownModelVersionError
├── DatabaseError
│   ├── DatabaseConnectionError
│   ├── DatabaseInitializationError
│   └── DatabasePersistenceError
└── PipelineError

Repository-level errors live in storage.repositories.exceptions
and propagate unchanged to callers.

============================================================
"""

from enum import Enum
from datetime import datetime, timezone
from typing import Any, Dict, Optional


# ============================================================
# SEVERITY LEVELS
# ============================================================

class Severity(Enum):
    """Exception severity levels for logging."""

    LOW = "low"
    """Minor issue, informational."""

    MEDIUM = "medium"
    """Moderate issue, requires attention."""

    HIGH = "high"
    """Serious issue, the operation cannot continue."""


# ============================================================
# BASE EXCEPTION
# ============================================================

class RiskAnalyticsError(Exception):
    """
    Base exception for all risk analytics errors.

    All exceptions carry:
    - severity: for log level selection
    - context: for debugging
    - timestamp: when the error occurred
    """

    default_severity: Severity = Severity.MEDIUM

    def __init__(
        self,
        message: str,
        severity: Optional[Severity] = None,
        context: Optional[Dict[str, Any]] = None,
        cause: Optional[Exception] = None,
    ):
        super().__init__(message)

        self.message = message
        self.severity = severity or self.default_severity
        self.context = context or {}
        self.cause = cause
        self.timestamp = datetime.now(timezone.utc)

        if cause:
            self.context["cause_type"] = type(cause).__name__
            self.context["cause_message"] = str(cause)

    def to_dict(self) -> Dict[str, Any]:
        """Serialize exception for logging/storage."""
        return {
            "type": type(self).__name__,
            "message": self.message,
            "severity": self.severity.value,
            "context": self.context,
            "timestamp": self.timestamp.isoformat(),
            "cause": str(self.cause) if self.cause else None,
        }


# ============================================================
# CONFIGURATION ERRORS
# ============================================================

class ConfigurationError(RiskAnalyticsError):
    """Error in configuration."""

    default_severity = Severity.HIGH

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


class MissingConfigError(ConfigurationError):
    """Required configuration is missing."""

    def __init__(self, key: str, source: str = "environment"):
        super().__init__(
            message=f"Missing required configuration: {key}",
            config_key=key,
            context={"source": source},
        )


class InvalidConfigError(ConfigurationError):
    """Configuration value is invalid."""

    def __init__(self, key: str, value: Any, reason: str):
        super().__init__(
            message=f"Invalid configuration for {key}: {reason}",
            config_key=key,
            actual_value=value,
            context={"reason": reason},
        )


class UnknownModelVersionError(RiskAnalyticsError):
    """Requested risk model version is not registered."""

    default_severity = Severity.HIGH

    def __init__(self, model_version: str):
        super().__init__(
            message=f"Risk model version not registered: {model_version!r}",
            context={"model_version": model_version},
        )
        self.model_version = model_version


# ============================================================
# DATABASE ERRORS
# ============================================================

class DatabaseError(RiskAnalyticsError):
    """Base class for database errors raised outside repositories."""

    default_severity = Severity.HIGH


class DatabaseConnectionError(DatabaseError):
    """Database is unreachable."""


class DatabaseInitializationError(DatabaseError):
    """Schema creation failed."""


class DatabasePersistenceError(DatabaseError):
    """A transaction failed and was rolled back."""


# ============================================================
# PIPELINE ERRORS
# ============================================================

class PipelineError(RiskAnalyticsError):
    """Scan scoring pipeline could not run for the requested scan."""

    def __init__(self, message: str, scan_id: Optional[Any] = None, **kwargs):
        context = kwargs.pop("context", {})
        if scan_id is not None:
            context["scan_id"] = str(scan_id)
        super().__init__(message, context=context, **kwargs)
        self.scan_id = scan_id
