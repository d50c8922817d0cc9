"""
Core Module Package.

This package contains the infrastructure components
that all other modules depend on.

Components:
- settings: Runtime settings loaded from the environment
- exceptions: Custom exception hierarchy
"""

from .exceptions import (
    Severity,
    RiskAnalyticsError,
    ConfigurationError,
    MissingConfigError,
    InvalidConfigError,
    UnknownModelVersionError,
    DatabaseError,
    DatabaseConnectionError,
    DatabaseInitializationError,
    DatabasePersistenceError,
    PipelineError,
)
from .settings import AnalyticsSettings, get_settings, reset_settings


__all__ = [
    "Severity",
    "RiskAnalyticsError",
    "ConfigurationError",
    "MissingConfigError",
    "InvalidConfigError",
    "UnknownModelVersionError",
    "DatabaseError",
    "DatabaseConnectionError",
    "DatabaseInitializationError",
    "DatabasePersistenceError",
    "PipelineError",
    "AnalyticsSettings",
    "get_settings",
    "reset_settings",
]
