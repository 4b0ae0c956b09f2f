"""Pydantic v2 models for card templates.

A template is a canvas size, a list of custom fonts, a list of input
definitions and a tree of layers. Coordinates are in the template's own units
(pixels for the bundled Pillow backend). Field names are snake_case; the
camelCase spelling used by template files (``fillStyle``, ``wrapText``...)
is accepted as well.
"""

import logging
from enum import Enum
from typing import Annotated, Any, Literal, Mapping, Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator
from pydantic.alias_generators import to_camel

from cardrender.dsl.conditions import Condition, parse_condition
from cardrender.exceptions import TemplateStructureError

logger = logging.getLogger(__name__)


# Layer type tags accepted in template files
LAYER_TYPES = frozenset({"fill", "image", "mask", "text", "group"})

DEFAULT_OPERATIONS = ["source-over"]


def _model_config(**kwargs: Any) -> ConfigDict:
    # Numeric inputs (e.g. ``-i power=5``) may override text fields
    return ConfigDict(
        frozen=True,
        alias_generator=to_camel,
        populate_by_name=True,
        coerce_numbers_to_str=True,
        **kwargs,
    )


class HorizontalAnchor(str, Enum):
    """Horizontal reference point on a box."""

    LEFT = "Left"
    CENTER = "Center"
    RIGHT = "Right"

    @classmethod
    def _missing_(cls, value: object) -> Optional["HorizontalAnchor"]:
        if isinstance(value, str):
            lowered = value.lower()
            if lowered == "start":
                return cls.LEFT
            if lowered == "end":
                return cls.RIGHT
            for member in cls:
                if member.value.lower() == lowered:
                    return member
        return None


class VerticalAnchor(str, Enum):
    """Vertical reference point on a box."""

    TOP = "Top"
    MIDDLE = "Middle"
    BOTTOM = "Bottom"

    @classmethod
    def _missing_(cls, value: object) -> Optional["VerticalAnchor"]:
        if isinstance(value, str):
            lowered = value.lower()
            for member in cls:
                if member.value.lower() == lowered:
                    return member
        return None


class ImageScale(str, Enum):
    """How an image is placed inside its layer box."""

    FILL = "fill"  # Cover the box, cropping overflow
    FIT = "fit"  # Contain inside the box, leaving empty bands
    STRETCH = "stretch"  # Exactly the box, distorting the image


class InputType(str, Enum):
    """Kinds of template inputs (used by editors to pick a widget)."""

    TEXT = "text"
    FILE = "file"
    COMBO = "combo"
    TEXT_AREA = "textarea"
    CHECKBOX = "checkbox"


# ============================================================================
# Geometry Models
# ============================================================================


class Point(BaseModel):
    """An x, y coordinate."""

    model_config = _model_config()

    x: float = 0.0
    y: float = 0.0


class Size(BaseModel):
    """Width and height of a box."""

    model_config = _model_config()

    width: float = Field(ge=0)
    height: float = Field(ge=0)


class Anchor(BaseModel):
    """The point of a layer's box that its origin refers to."""

    model_config = _model_config()

    horizontal: HorizontalAnchor = HorizontalAnchor.LEFT
    vertical: VerticalAnchor = VerticalAnchor.TOP


# ============================================================================
# Style Models
# ============================================================================


class DropShadow(BaseModel):
    """Shadow drawn under an image or a text run."""

    model_config = _model_config()

    offset_x: float = 0.0
    offset_y: float = 0.0
    blur: float = Field(default=0.0, ge=0, validation_alias=AliasChoices("blur", "shadowBlur"))
    color: str = Field(
        default="#00000080",
        validation_alias=AliasChoices("color", "shadowColor"),
    )


class TextStyle(BaseModel):
    """Font and paint of a text run."""

    model_config = _model_config()

    font: str = Field(default="16px sans-serif", description="CSS font shorthand")
    fill_style: str = Field(default="black", description="CSS color")
    opacity: Optional[float] = Field(default=None, ge=0.0, le=1.0)
    drop_shadow: Optional[DropShadow] = None


class StyleReplace(BaseModel):
    """Text between ``start_symbol`` and ``end_symbol`` is drawn with ``style``."""

    model_config = _model_config()

    start_symbol: str = Field(min_length=1)
    end_symbol: str = Field(min_length=1)
    style: TextStyle


# ============================================================================
# Layer Models
# ============================================================================


class LayerBase(BaseModel):
    """Geometry, gating and compositing shared by every layer type."""

    model_config = _model_config()

    description: str = ""
    origin: Point = Field(default_factory=Point)
    anchor: Anchor = Field(default_factory=Anchor)
    size: Size
    operations: list[str] = Field(default_factory=lambda: list(DEFAULT_OPERATIONS), min_length=1)
    condition: Optional[Condition] = Field(
        default=None,
        validation_alias=AliasChoices("condition", "conditions"),
    )
    input_overrides: dict[str, str] = Field(
        default_factory=dict,
        validation_alias=AliasChoices("input_overrides", "inputOverrides", "inputs"),
        description="Layer field -> input name whose value replaces it",
    )

    @field_validator("condition", mode="before")
    @classmethod
    def _parse_condition(cls, value: Any) -> Any:
        return parse_condition(value)


class FillLayer(LayerBase):
    """A rectangle painted with a single style."""

    type: Literal["fill"] = "fill"
    fill_style: str = "white"


class ImageLayer(LayerBase):
    """An image placed inside the layer box.

    ``mask`` is accepted as a type tag for image layers that exist only to be
    composited with their ``operations`` (e.g. ``destination-in``).
    """

    type: Literal["image", "mask"] = "image"
    url: str = ""
    scale: ImageScale = ImageScale.FILL
    drop_shadow: Optional[DropShadow] = None


class TextLayer(LayerBase):
    """Styled, optionally wrapped and shrink-to-fit text."""

    type: Literal["text"] = "text"
    text: str = ""
    style: TextStyle = Field(default_factory=TextStyle)
    align: Anchor = Field(default_factory=Anchor)
    wrap_text: bool = False
    scale_text: bool = False
    line_spacing: float = Field(default=1.0, gt=0)
    paragraph_spacing: float = Field(default=1.0, ge=0)
    text_replace: dict[str, str] = Field(default_factory=dict)
    style_replace: list[StyleReplace] = Field(default_factory=list)

    @field_validator("style_replace", mode="before")
    @classmethod
    def _split_symbol_pairs(cls, value: Any) -> Any:
        """Accept ``{"<b></b>": style}``: the key's halves are start and end."""
        if isinstance(value, Mapping):
            rules = []
            for symbols, style in value.items():
                half = len(symbols) // 2
                rules.append({
                    "start_symbol": symbols[:half],
                    "end_symbol": symbols[half:],
                    "style": style,
                })
            return rules
        return value


def _drop_unknown_layers(value: Any) -> Any:
    """Remove layers with an unknown ``type`` tag, logging each one."""
    if not isinstance(value, list):
        return value
    kept = []
    for raw in value:
        if isinstance(raw, Mapping) and raw.get("type") not in LAYER_TYPES:
            error = TemplateStructureError(
                f"Unknown layer type {raw.get('type')!r}",
                context={"layer": raw.get("description", "")},
            )
            logger.error(f"Skipping layer: {error}")
            continue
        kept.append(raw)
    return kept


class GroupLayer(LayerBase):
    """Child layers drawn onto their own surface, then onto the parent."""

    type: Literal["group"] = "group"
    layers: list["Layer"] = Field(default_factory=list)

    @field_validator("layers", mode="before")
    @classmethod
    def _known_layers(cls, value: Any) -> Any:
        return _drop_unknown_layers(value)


Layer = Annotated[
    Union[FillLayer, ImageLayer, TextLayer, GroupLayer],
    Field(discriminator="type"),
]

GroupLayer.model_rebuild()


# ============================================================================
# Template Models
# ============================================================================


class FontFace(BaseModel):
    """CSS font face descriptor of a custom font."""

    model_config = _model_config()

    family: str
    weight: Optional[str] = None
    style: Optional[str] = None


class Font(BaseModel):
    """A custom font file to register before drawing."""

    model_config = _model_config()

    url: str = Field(description="Remote URL or local path of the font file")
    font_face: FontFace = Field(validation_alias=AliasChoices("font_face", "fontFace", "face"))


class InputDefinition(BaseModel):
    """A named input the template reads, with an optional default."""

    model_config = _model_config()

    name: str
    type: InputType = InputType.TEXT
    description: str = ""
    default: Any = None
    help: Optional[str] = None
    half_size: bool = False
    options: Optional[list[str]] = None


class Template(BaseModel):
    """A complete card template."""

    model_config = _model_config()

    name: str = ""
    author: str = ""
    preview_image: Optional[str] = None
    size: Size
    dpi: int = Field(default=300, gt=0)
    fonts: list[Font] = Field(
        default_factory=list,
        validation_alias=AliasChoices("fonts", "customFonts", "custom_fonts"),
    )
    inputs: list[InputDefinition] = Field(default_factory=list)
    layers: list[Layer] = Field(default_factory=list)

    @model_validator(mode="before")
    @classmethod
    def _size_from_width_height(cls, data: Any) -> Any:
        """Accept top level ``width``/``height`` in place of ``size``."""
        if isinstance(data, Mapping) and "size" not in data and "width" in data and "height" in data:
            data = dict(data)
            data["size"] = {"width": data.pop("width"), "height": data.pop("height")}
        return data

    @field_validator("layers", mode="before")
    @classmethod
    def _known_layers(cls, value: Any) -> Any:
        return _drop_unknown_layers(value)

    @classmethod
    def from_json(cls, json_string: str | bytes) -> "Template":
        """Parse a template from its JSON text."""
        return cls.model_validate_json(json_string)

    def resolve_inputs(self, inputs: Optional[Mapping[str, Any]] = None) -> dict[str, Any]:
        """Overlay runtime inputs on the declared input defaults.

        Args:
            inputs: Runtime input values (may be None).

        Returns:
            A new dict; neither the template nor ``inputs`` is modified.
        """
        resolved = {
            definition.name: definition.default
            for definition in self.inputs
            if definition.default is not None
        }
        resolved.update(inputs or {})
        return resolved
