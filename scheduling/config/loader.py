"""
ConfigLoader - Unified fast-fail configuration management.

Resolves each key from, in priority order: environment variables,
in-process overrides, then the schema default. Values are type-converted and
validated on every read; an invalid value fails immediately.
"""

from __future__ import annotations

import logging
import os
from collections.abc import Iterator, Mapping
from contextlib import contextmanager
from typing import Any, cast

from .errors import ConfigValidationError, MissingKeyError, UnknownKeyError
from .schema import CONFIG_SCHEMA

logger = logging.getLogger(__name__)


class ConfigLoader:
    """
    Unified configuration loader with fast-fail behavior.

    Usage:
        # Initialize at application startup (validates every key)
        ConfigLoader.initialize()

        # Get singleton instance
        loader = ConfigLoader.get_instance()

        # Typed accessors
        attempts = loader.get_int("solver.max_candidate_attempts")
        level = loader.get_str("solver.optimization_level")

        # Test substitution
        with ConfigLoader.use(ConfigLoader(overrides={"grid.max_days": 7})):
            pass
    """

    _instance: ConfigLoader | None = None
    _initialized: bool = False

    def __init__(self, overrides: Mapping[str, Any] | None = None):
        """
        Initialize the config loader.

        Args:
            overrides: In-process values keyed by dot-notation key. Unknown keys are rejected.
        """
        self._overrides: dict[str, Any] = {}
        for key, value in (overrides or {}).items():
            if key not in CONFIG_SCHEMA:
                raise UnknownKeyError(key)
            self._overrides[key] = value

    @classmethod
    def initialize(
        cls,
        overrides: Mapping[str, Any] | None = None,
        validate_on_init: bool = True,
    ) -> ConfigLoader:
        """
        Initialize the singleton ConfigLoader.

        Args:
            overrides: In-process values that take precedence over schema defaults
            validate_on_init: If True, resolves and validates every schema key

        Returns:
            The initialized ConfigLoader instance

        Raises:
            ConfigValidationError: If any resolved value is invalid
        """
        if cls._initialized:
            logger.debug("ConfigLoader already initialized, returning existing instance")
            return cls._instance  # type: ignore

        instance = cls(overrides=overrides)

        if validate_on_init:
            instance.validate_all()

        cls._instance = instance
        cls._initialized = True
        logger.debug("ConfigLoader initialized")
        return instance

    @classmethod
    def get_instance(cls) -> ConfigLoader:
        """Get the singleton instance, auto-initializing with defaults."""
        if not cls._initialized or cls._instance is None:
            logger.debug("ConfigLoader auto-initializing (no explicit initialize() call)")
            return cls.initialize(validate_on_init=False)
        return cls._instance

    @classmethod
    def reset(cls) -> None:
        """Reset singleton state. For testing only."""
        cls._instance = None
        cls._initialized = False

    @classmethod
    @contextmanager
    def use(cls, loader: ConfigLoader) -> Iterator[None]:
        """
        Temporarily replace the singleton with a custom loader.

        Args:
            loader: The loader to use temporarily.
        """
        original = cls._instance
        original_initialized = cls._initialized
        cls._instance = loader
        cls._initialized = True
        try:
            yield
        finally:
            cls._instance = original
            cls._initialized = original_initialized

    def validate_all(self) -> None:
        """
        Resolve every schema key and collect all failures.

        Raises:
            ConfigValidationError: If any key is missing or invalid
        """
        problems: dict[str, str] = {}
        for key in CONFIG_SCHEMA:
            try:
                self.get(key)
            except (MissingKeyError, ConfigValidationError) as e:
                problems[e.key] = str(e)

        if problems:
            raise ConfigValidationError(
                ", ".join(problems),
                f"Configuration validation failed ({len(problems)} problems):\n" + "\n".join(problems.values()),
            )
        logger.debug(f"Validated {len(CONFIG_SCHEMA)} config keys")

    def get(self, key: str) -> Any:
        """
        Get a configuration value.

        Raises:
            UnknownKeyError: If key is not in schema
            MissingKeyError: If no source supplies a value
            ConfigValidationError: If value fails conversion or validation
        """
        if key not in CONFIG_SCHEMA:
            raise UnknownKeyError(key)

        schema = CONFIG_SCHEMA[key]

        # Environment first (highest priority override)
        env_value = os.environ.get(schema.env_var)
        if env_value is not None:
            source = f"environment variable {schema.env_var}"
            raw_value: Any = env_value
        elif key in self._overrides:
            source = "override"
            raw_value = self._overrides[key]
        else:
            source = "schema default"
            raw_value = schema.default

        if raw_value is None:
            raise MissingKeyError(key)

        try:
            typed_value = schema.config_type.coerce(raw_value)
        except (ValueError, TypeError) as e:
            raise ConfigValidationError(key, f"Config key '{key}' from {source} has invalid type: {e}") from e

        error = schema.validate(typed_value)
        if error:
            raise ConfigValidationError(key, f"Config key '{key}' from {source}: {error}")

        return typed_value

    def get_int(self, key: str, default: int | None = None) -> int:
        """Get an integer config value."""
        try:
            return cast(int, self.get(key))
        except (MissingKeyError, UnknownKeyError):
            if default is not None:
                return default
            raise

    def get_float(self, key: str, default: float | None = None) -> float:
        """Get a float config value."""
        try:
            return cast(float, self.get(key))
        except (MissingKeyError, UnknownKeyError):
            if default is not None:
                return default
            raise

    def get_bool(self, key: str, default: bool | None = None) -> bool:
        """Get a boolean config value."""
        try:
            return cast(bool, self.get(key))
        except (MissingKeyError, UnknownKeyError):
            if default is not None:
                return default
            raise

    def get_str(self, key: str, default: str | None = None) -> str:
        """Get a string config value."""
        try:
            return cast(str, self.get(key))
        except (MissingKeyError, UnknownKeyError):
            if default is not None:
                return default
            raise

    def get_json(self, key: str) -> Any:
        """Get a JSON config value (already decoded)."""
        return self.get(key)

    def as_dict(self) -> dict[str, Any]:
        """Resolved value for every schema key."""
        return {key: self.get(key) for key in CONFIG_SCHEMA}
