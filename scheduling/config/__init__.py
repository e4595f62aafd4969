"""
Unified configuration management for the scheduling core.

Usage:
    from scheduling.config import ConfigLoader, ConfigError

    # Initialize at application startup
    ConfigLoader.initialize()

    # Get singleton instance
    config = ConfigLoader.get_instance()

    # Typed accessors
    max_days = config.get_int("grid.max_days")
    level = config.get_str("solver.optimization_level")
"""

from __future__ import annotations

from .errors import (
    ConfigError,
    ConfigValidationError,
    MissingKeyError,
    UnknownKeyError,
)
from .loader import ConfigLoader
from .schema import CONFIG_SCHEMA, get_defaults, get_schema_key, validate_key
from .types import ConfigKey, ConfigType

__all__ = [
    # Main loader
    "ConfigLoader",
    # Error classes
    "ConfigError",
    "ConfigValidationError",
    "MissingKeyError",
    "UnknownKeyError",
    # Schema
    "CONFIG_SCHEMA",
    "ConfigKey",
    "ConfigType",
    "get_defaults",
    "get_schema_key",
    "validate_key",
]
