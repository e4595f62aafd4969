"""Configuration schema registry.

Defines all valid configuration keys with their types, defaults and validation rules.
This is the single source of truth for configuration structure.
"""

from __future__ import annotations

from typing import Any

from .types import ConfigKey, ConfigType

_WEATHER_CONDITIONS = {"sunny", "cloudy", "rainy", "stormy", "very_hot", "very_cold"}


def _is_condition_list(value: Any) -> bool:
    return isinstance(value, list) and all(v in _WEATHER_CONDITIONS for v in value)


# =============================================================================
# CONFIGURATION SCHEMA REGISTRY
#
# All configuration keys must be defined here. Unknown keys will be rejected.
# =============================================================================

CONFIG_SCHEMA: dict[str, ConfigKey] = {
    # =========================================================================
    # GRID BUILDING
    # =========================================================================
    "grid.max_days": ConfigKey(
        key="grid.max_days",
        config_type=ConfigType.INT,
        default=180,
        description="Longest session date range the grid builder will expand",
        min_value=1,
        max_value=366,
    ),
    # =========================================================================
    # SOLVER
    # =========================================================================
    "solver.optimization_level": ConfigKey(
        key="solver.optimization_level",
        config_type=ConfigType.STRING,
        default="balanced",
        description="fast = greedy only, balanced = greedy + local backtracking, thorough = CP-SAT pass first",
        allowed_values=["fast", "balanced", "thorough"],
    ),
    "solver.max_candidate_attempts": ConfigKey(
        key="solver.max_candidate_attempts",
        config_type=ConfigType.INT,
        default=60,
        description="Constraint evaluations allowed per slot before it is left empty",
        min_value=1,
    ),
    "solver.max_backtrack_attempts": ConfigKey(
        key="solver.max_backtrack_attempts",
        config_type=ConfigType.INT,
        default=20,
        description="Total local backtracking attempts per solver run",
        min_value=0,
    ),
    "solver.staff.max_hours_per_day": ConfigKey(
        key="solver.staff.max_hours_per_day",
        config_type=ConfigType.FLOAT,
        default=8.0,
        description="Maximum scheduled hours per staff member per day during auto-assignment",
        min_value=0.0,
        max_value=24.0,
    ),
    "solver.staff.auto_assign": ConfigKey(
        key="solver.staff.auto_assign",
        config_type=ConfigType.BOOL,
        default=True,
        description="Top up staff on filled slots to the activity requirement",
    ),
    "solver.cp_sat.time_limit_seconds": ConfigKey(
        key="solver.cp_sat.time_limit_seconds",
        config_type=ConfigType.FLOAT,
        default=10.0,
        description="Wall-clock limit for the CP-SAT refinement pass",
        min_value=0.1,
        max_value=600.0,
    ),
    "solver.cp_sat.max_candidates_per_slot": ConfigKey(
        key="solver.cp_sat.max_candidates_per_slot",
        config_type=ConfigType.INT,
        default=12,
        description="Pre-filtered (activity, facility) options modelled per slot",
        min_value=1,
    ),
    "solver.cp_sat.repeat_penalty": ConfigKey(
        key="solver.cp_sat.repeat_penalty",
        config_type=ConfigType.INT,
        default=30,
        description="Objective penalty for repeating an activity for a group within a session",
        min_value=0,
    ),
    # =========================================================================
    # CONFLICT DETECTION
    # =========================================================================
    "conflicts.understaffing.warning_ratio": ConfigKey(
        key="conflicts.understaffing.warning_ratio",
        config_type=ConfigType.FLOAT,
        default=0.5,
        description="Staff shortfall ratio at or above which understaffing is a warning instead of info",
        min_value=0.0,
        max_value=1.0,
    ),
    "conflicts.low_variety.max_repeats_per_day": ConfigKey(
        key="conflicts.low_variety.max_repeats_per_day",
        config_type=ConfigType.INT,
        default=1,
        description="Occurrences of the same activity per group per day before a low-variety advisory",
        min_value=1,
    ),
    # =========================================================================
    # WEATHER
    # =========================================================================
    "weather.outdoor_blocking_conditions": ConfigKey(
        key="weather.outdoor_blocking_conditions",
        config_type=ConfigType.JSON,
        default=["rainy", "stormy"],
        description="Conditions that block weather-dependent activities outdoors when no allow-list exists",
        validator=_is_condition_list,
    ),
    "weather.substitution.duration_tolerance_minutes": ConfigKey(
        key="weather.substitution.duration_tolerance_minutes",
        config_type=ConfigType.INT,
        default=30,
        description="Maximum duration difference between an activity and its weather substitute",
        min_value=0,
    ),
    # =========================================================================
    # FEASIBILITY PRE-CHECK
    # =========================================================================
    "feasibility.max_hard_constraints": ConfigKey(
        key="feasibility.max_hard_constraints",
        config_type=ConfigType.INT,
        default=20,
        description="Hard constraint count above which generation is flagged as likely slow or over-constrained",
        min_value=0,
    ),
    "feasibility.min_activities": ConfigKey(
        key="feasibility.min_activities",
        config_type=ConfigType.INT,
        default=3,
        description="Active activity count below which a low-variety warning is raised",
        min_value=0,
    ),
    "feasibility.large_grid_threshold": ConfigKey(
        key="feasibility.large_grid_threshold",
        config_type=ConfigType.INT,
        default=1000,
        description="Slot count above which generation is flagged as large",
        min_value=1,
    ),
}


def get_schema_key(key: str) -> ConfigKey | None:
    """
    Get the schema definition for a config key.

    Args:
        key: The dot-notation config key

    Returns:
        ConfigKey if found, None if unknown
    """
    return CONFIG_SCHEMA.get(key)


def get_defaults() -> dict[str, Any]:
    """Default value for every key in the schema."""
    return {key: schema.default for key, schema in CONFIG_SCHEMA.items()}


def validate_key(key: str, value: Any) -> str | None:
    """
    Validate a value against its schema.

    Args:
        key: The config key
        value: The value to validate

    Returns:
        None if valid, error message if invalid
    """
    schema = CONFIG_SCHEMA.get(key)
    if schema is None:
        return f"Unknown config key: {key}"
    return schema.validate(value)
