"""Template data model: layers, styles, conditions and inputs."""

from cardrender.dsl.conditions import (
    Condition,
    ConditionSet,
    NotCondition,
    Operator,
    OperatorMap,
    OrCondition,
    ValueMatch,
    parse_condition,
)
from cardrender.dsl.schema import (
    Anchor,
    DropShadow,
    FillLayer,
    Font,
    FontFace,
    GroupLayer,
    HorizontalAnchor,
    ImageLayer,
    ImageScale,
    InputDefinition,
    InputType,
    Layer,
    Point,
    Size,
    StyleReplace,
    Template,
    TextLayer,
    TextStyle,
    VerticalAnchor,
)

__all__ = [
    # Conditions
    "Condition",
    "ConditionSet",
    "NotCondition",
    "Operator",
    "OperatorMap",
    "OrCondition",
    "ValueMatch",
    "parse_condition",
    # Geometry
    "Anchor",
    "HorizontalAnchor",
    "Point",
    "Size",
    "VerticalAnchor",
    # Styles
    "DropShadow",
    "StyleReplace",
    "TextStyle",
    # Layers
    "FillLayer",
    "GroupLayer",
    "ImageLayer",
    "ImageScale",
    "Layer",
    "TextLayer",
    # Template
    "Font",
    "FontFace",
    "InputDefinition",
    "InputType",
    "Template",
]
