"""Condition engine: decides whether a layer takes part in a render.

Comparison semantics follow the template format's JavaScript heritage, which
existing templates rely on:

- literal specs use strict equality (``1 == 1.0`` but ``1 != True`` and
  ``"1" != 1``)
- a missing input (``MISSING``) equals nothing, every relational comparison
  against it is false and ``$match`` does not match it
- an explicit null input equals only a null literal and compares as 0
  (so ``null < 5`` holds while ``null < "abc"`` does not)
- relational operators compare numbers numerically and strings lexically;
  a numeric string is converted when compared with a number
"""

import logging
import math
import re
from typing import Any, Mapping, Optional

from cardrender.dsl.conditions import (
    Condition,
    ConditionSet,
    NotCondition,
    Operator,
    OperatorMap,
    OrCondition,
    ValueMatch,
)
from cardrender.exceptions import ConditionEvalError

logger = logging.getLogger(__name__)


class _Missing:
    """Value of an input that was never supplied."""

    def __repr__(self) -> str:
        return "MISSING"


MISSING = _Missing()


def evaluate(condition: Optional[Condition], inputs: Mapping[str, Any]) -> bool:
    """Evaluate a condition tree against runtime inputs.

    Args:
        condition: The condition to test, or None for "always".
        inputs: Input name -> value. Never modified.

    Returns:
        True if the layer owning the condition should be drawn.
    """
    if condition is None:
        return True

    if isinstance(condition, ValueMatch):
        return match_value(condition.spec, inputs.get(condition.field, MISSING))
    elif isinstance(condition, OrCondition):
        if not condition.clauses:
            return True
        return any(evaluate(clause, inputs) for clause in condition.clauses)
    elif isinstance(condition, NotCondition):
        return not evaluate(condition.inner, inputs)
    elif isinstance(condition, ConditionSet):
        return (
            all(evaluate(match, inputs) for match in condition.values)
            and evaluate(condition.any_of, inputs)
            and evaluate(condition.negate, inputs)
        )

    raise TypeError(f"Unknown condition node: {type(condition).__name__}")


def match_value(spec: Any, value: Any) -> bool:
    """Test one input value against a literal or an operator map."""
    if isinstance(spec, OperatorMap):
        results = []
        for operator, operand in spec.operators:
            try:
                results.append(apply_operator(operator, operand, value))
            except ConditionEvalError as e:
                logger.warning(f"Ignoring condition operator: {e}")
        return all(results)

    return strict_equals(spec, value)


def apply_operator(operator: Operator, operand: Any, value: Any) -> bool:
    """Apply a single operator to an input value.

    Raises:
        ConditionEvalError: If the operand itself is unusable (e.g. an
            invalid regular expression or a non-list ``$in`` operand).
    """
    if operator is Operator.MATCH:
        if not isinstance(value, str):
            return False
        try:
            return re.search(str(operand), value) is not None
        except re.error as e:
            raise ConditionEvalError(
                f"Invalid $match pattern {operand!r}", cause=e
            ) from e
    elif operator is Operator.LT:
        return _compare(value, operand, lambda a, b: a < b)
    elif operator is Operator.LTE:
        return _compare(value, operand, lambda a, b: a <= b)
    elif operator is Operator.GT:
        return _compare(value, operand, lambda a, b: a > b)
    elif operator is Operator.GTE:
        return _compare(value, operand, lambda a, b: a >= b)
    elif operator is Operator.IN:
        if not isinstance(operand, (list, tuple, set, frozenset)):
            raise ConditionEvalError(f"$in expects a list, got {type(operand).__name__}")
        return any(strict_equals(candidate, value) for candidate in operand)

    raise ConditionEvalError(f"Unhandled operator {operator!r}")


def strict_equals(a: Any, b: Any) -> bool:
    """Equality without type coercion (booleans are not numbers)."""
    if isinstance(a, bool) or isinstance(b, bool):
        return type(a) is type(b) and a == b
    if _is_number(a) and _is_number(b):
        return a == b
    if a is None or b is None or a is MISSING or b is MISSING:
        return a is b
    return type(a) is type(b) and a == b


def _is_number(value: Any) -> bool:
    return isinstance(value, (int, float)) and not isinstance(value, bool)


def _as_number(value: Any) -> Optional[float]:
    """Numeric view of a value, or None if it has none."""
    if value is None:
        return 0.0
    if isinstance(value, bool):
        return float(value)
    if _is_number(value):
        return float(value)
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            return 0.0
        try:
            return float(stripped)
        except ValueError:
            return None
    return None


def _compare(value: Any, operand: Any, op) -> bool:
    if value is MISSING or operand is MISSING:
        return False
    if isinstance(value, str) and isinstance(operand, str):
        return op(value, operand)

    left = _as_number(value)
    right = _as_number(operand)
    if left is None or right is None or math.isnan(left) or math.isnan(right):
        return False
    return op(left, right)
