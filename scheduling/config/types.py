"""Config key definitions: value kinds, coercion from raw sources, and per-key bounds."""

from __future__ import annotations

import json
from collections.abc import Callable
from dataclasses import dataclass
from enum import Enum
from typing import Any


class ConfigType(Enum):
    INT = "int"
    FLOAT = "float"
    BOOL = "bool"
    STRING = "string"
    JSON = "json"

    def coerce(self, raw: Any) -> Any:
        """Turn an override or environment string into this kind of value.

        Raises:
            ValueError, TypeError: If ``raw`` cannot be read as this kind
        """
        if self is ConfigType.INT:
            # int(True) would quietly give 1
            if isinstance(raw, bool):
                raise TypeError("boolean is not an integer")
            return int(raw)
        if self is ConfigType.FLOAT:
            return float(raw)
        if self is ConfigType.BOOL:
            if isinstance(raw, str):
                return raw.strip().lower() in ("true", "1", "yes", "on")
            return bool(raw)
        if self is ConfigType.JSON and isinstance(raw, str):
            return json.loads(raw)
        if self is ConfigType.STRING:
            return str(raw)
        return raw


@dataclass(frozen=True)
class ConfigKey:
    """
    One tunable of the scheduling core.

    ``default`` applies when neither an override nor ``env_var`` supplies a
    value. Numeric bounds are inclusive; ``allowed_values`` and ``validator``
    apply to any kind.
    """

    key: str
    config_type: ConfigType
    default: Any = None
    description: str = ""
    min_value: float | None = None
    max_value: float | None = None
    allowed_values: list[Any] | None = None
    validator: Callable[[Any], bool] | None = None

    @property
    def env_var(self) -> str:
        # solver.staff.max_hours_per_day -> CONFIG_SOLVER_STAFF_MAX_HOURS_PER_DAY
        return "CONFIG_" + self.key.upper().replace(".", "_")

    def validate(self, value: Any) -> str | None:
        """Problem with an already coerced value, or None when it is acceptable."""
        numeric = self.config_type in (ConfigType.INT, ConfigType.FLOAT)
        if numeric and self.min_value is not None and value < self.min_value:
            return f"Value {value} below minimum {self.min_value}"
        if numeric and self.max_value is not None and value > self.max_value:
            return f"Value {value} above maximum {self.max_value}"
        if self.allowed_values is not None and value not in self.allowed_values:
            return f"Value {value!r} is not one of {', '.join(map(str, self.allowed_values))}"
        if self.validator is not None and not self.validator(value):
            return f"Value {value!r} rejected by {self.validator.__name__}"
        return None
