"""Configuration failures. Every one carries the offending key and is raised on first read."""

from __future__ import annotations


class ConfigError(Exception):
    def __init__(self, key: str, message: str):
        super().__init__(message)
        self.key = key


class UnknownKeyError(ConfigError):
    """The key is not declared in the schema."""

    def __init__(self, key: str):
        super().__init__(key, f"Unknown config key: '{key}'")


class MissingKeyError(ConfigError):
    """No environment value, override or schema default exists for the key."""

    def __init__(self, key: str):
        super().__init__(key, f"Config key '{key}' has no value")


class ConfigValidationError(ConfigError):
    """A resolved value could not be coerced or broke the key's bounds."""
