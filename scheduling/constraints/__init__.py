"""
Constraint evaluators for the scheduling core.

Each module judges one constraint kind; the engine dispatches on ``params.kind``.
"""

from .base import (
    ConstraintEvaluator,
    EvaluationContext,
    Verdict,
    VerdictStatus,
    Violation,
    normalize_weather,
)
from .engine import CONSTRAINT_EVALUATORS, ConstraintEngine, evaluate

__all__ = [
    "CONSTRAINT_EVALUATORS",
    "ConstraintEngine",
    "ConstraintEvaluator",
    "EvaluationContext",
    "Verdict",
    "VerdictStatus",
    "Violation",
    "evaluate",
    "normalize_weather",
]
