"""Pydantic models for layer conditions.

A condition is a small tagged tree:

- ``ValueMatch``: compare one input field against a literal or an operator map
- ``OrCondition``: true if any clause is true (an empty clause list is true)
- ``NotCondition``: negates its inner condition
- ``ConditionSet``: the aggregate object templates declare, combining value
  matches with an optional ``or`` and an optional ``not``

Templates may spell a condition in two JSON forms, both handled by
``parse_condition``::

    {"values": {"rarity": "rare"}, "or": [...], "not": {...}}
    {"rarity": "rare", "$or": [...], "$not": {...}}
"""

import logging
from enum import Enum
from typing import Annotated, Any, Literal, Optional, Union

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    StrictBool,
    StrictFloat,
    StrictInt,
    StrictStr,
    TypeAdapter,
    model_validator,
)

logger = logging.getLogger(__name__)


class Operator(str, Enum):
    """Operators allowed inside an operator map."""

    MATCH = "$match"
    LT = "$lt"
    LTE = "$lte"
    GT = "$gt"
    GTE = "$gte"
    IN = "$in"


# Keys of the structured and flat condition forms
STRUCTURED_KEYS = frozenset({"values", "or", "not"})
FLAT_OR_KEY = "$or"
FLAT_NOT_KEY = "$not"


class OperatorMap(BaseModel):
    """A set of operators that must all hold for one input value."""

    model_config = ConfigDict(frozen=True)

    operators: list[tuple[Operator, Any]] = Field(
        default_factory=list,
        description="(operator, operand) pairs in declaration order",
    )

    @model_validator(mode="before")
    @classmethod
    def _from_template(cls, data: Any) -> Any:
        """Accept the template spelling ``{"$lt": 5, "$gt": 1}``."""
        if not isinstance(data, dict) or "operators" in data:
            return data
        operators = []
        for key, operand in data.items():
            try:
                operators.append((Operator(key), operand))
            except ValueError:
                logger.warning(f"Ignoring unknown condition operator {key!r}")
        return {"operators": operators}


LiteralValue = Union[StrictBool, StrictInt, StrictFloat, StrictStr, None]


class ValueMatch(BaseModel):
    """Compare ``inputs[field]`` against a literal or an operator map."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["value"] = "value"
    field: str = Field(description="Input name to test")
    spec: Union[OperatorMap, LiteralValue] = Field(default=None, description="Literal or operator map")


class OrCondition(BaseModel):
    """True if any clause is true; vacuously true when empty."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["or"] = "or"
    clauses: list["Condition"] = Field(default_factory=list)


class NotCondition(BaseModel):
    """True if the inner condition is false."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["not"] = "not"
    inner: "Condition"


class ConditionSet(BaseModel):
    """All value matches, AND the optional ``or``, AND the optional ``not``."""

    model_config = ConfigDict(frozen=True)

    kind: Literal["set"] = "set"
    values: list[ValueMatch] = Field(default_factory=list)
    any_of: Optional[OrCondition] = None
    negate: Optional[NotCondition] = None


Condition = Annotated[
    Union[ValueMatch, OrCondition, NotCondition, ConditionSet],
    Field(discriminator="kind"),
]

OrCondition.model_rebuild()
NotCondition.model_rebuild()
ConditionSet.model_rebuild()

_condition_adapter: TypeAdapter = TypeAdapter(Condition)


def parse_condition(raw: Any) -> Optional[Condition]:
    """Build a condition tree from any of the accepted template spellings.

    Args:
        raw: A condition model, a tagged dict (with ``kind``), a structured
            dict (``values``/``or``/``not``) or a flat dict (field names
            plus ``$or``/``$not``).

    Returns:
        The parsed condition, or None when ``raw`` is None.
    """
    if raw is None:
        return None
    if isinstance(raw, BaseModel):
        return raw
    if not isinstance(raw, dict):
        raise ValueError(f"Condition must be an object, got {type(raw).__name__}")
    if "kind" in raw:
        return _condition_adapter.validate_python(raw)

    if raw and set(raw) <= STRUCTURED_KEYS:
        values = raw.get("values") or {}
        or_clauses = raw.get("or")
        negated = raw.get("not")
    else:
        values = {k: v for k, v in raw.items() if k not in (FLAT_OR_KEY, FLAT_NOT_KEY)}
        or_clauses = raw.get(FLAT_OR_KEY)
        negated = raw.get(FLAT_NOT_KEY)

    return ConditionSet(
        values=[ValueMatch(field=field, spec=spec) for field, spec in values.items()],
        any_of=(
            OrCondition(clauses=[parse_condition(c) for c in or_clauses])
            if or_clauses is not None
            else None
        ),
        negate=NotCondition(inner=parse_condition(negated)) if negated is not None else None,
    )
