"""Condition engine module - gates layers on runtime inputs."""

from cardrender.conditions.engine import MISSING, apply_operator, evaluate, match_value, strict_equals

__all__ = [
    "MISSING",
    "apply_operator",
    "evaluate",
    "match_value",
    "strict_equals",
]
