"""
compositor.py — Renders a template's layer tree to a surface.

Each layer is gated by its condition, has its input overrides applied to a
copy, is drawn onto its own surface of its own size and is finally
composited into its parent at its resolved origin, once per compositing
operation. Siblings render concurrently; compositing is sequential.

The template's declared layer order is reversed before drawing, so its first
declared layer ends up on top. Group children draw in declared order, so a
group's last child ends up on top.
"""

import asyncio
import logging
from typing import Any, Mapping, Optional, Sequence, Tuple

from pydantic import BaseModel, ValidationError
from pydantic.alias_generators import to_snake

from cardrender.conditions.engine import evaluate
from cardrender.dsl.schema import FillLayer, Font, GroupLayer, ImageLayer, Layer, Template, TextLayer
from cardrender.engine.geometry import fit_image_box, resolve_origin
from cardrender.engine.text_layout import layout_text
from cardrender.exceptions import (
    FontLoadError,
    LayerRenderError,
    LayoutInvariantError,
    TemplateStructureError,
    UnsupportedOperationError,
)
from cardrender.renderer.base import DrawingBackend, FontRegistrar, ImageLoader
from cardrender.renderer.fonts import FontRegistry
from cardrender.renderer.images import PillowImageLoader
from cardrender.renderer.pillow_backend import PillowBackend

logger = logging.getLogger(__name__)


# =============================================================================
# INPUT OVERRIDES
# =============================================================================

def _set_path(data: dict[str, Any], path: list[str], value: Any) -> None:
    head, rest = path[0], path[1:]
    if not rest:
        data[head] = value
        return

    child = data.get(head)
    if isinstance(child, BaseModel):
        child = child.model_dump()
    elif isinstance(child, Mapping):
        child = dict(child)
    elif child is None:
        child = {}
    else:
        raise LayerRenderError(f"Cannot override '{'.'.join(path)}': '{head}' is not an object")
    data[head] = child
    _set_path(child, rest, value)


def apply_input_overrides(layer: Layer, inputs: Mapping[str, Any]) -> Layer:
    """
    Return a copy of ``layer`` with its input overrides applied.

    ``layer.input_overrides`` maps a layer field (dotted for nested fields,
    e.g. ``style.fillStyle``) to the name of the input whose value replaces
    it. Inputs that are missing or None leave the field alone.

    Args:
        layer: The declared layer; never modified.
        inputs: Resolved runtime inputs.

    Returns:
        The layer itself when nothing applies, otherwise a validated copy.

    Raises:
        LayerRenderError: If an overridden value does not validate.
    """
    fields = type(layer).model_fields
    data: Optional[dict[str, Any]] = None

    for field_path, input_name in layer.input_overrides.items():
        value = inputs.get(input_name)
        if value is None:
            continue

        path = [to_snake(part) for part in field_path.split(".")]
        if path[0] not in fields or path[0] == "type":
            logger.warning(f"Layer '{layer.description}' has no field '{field_path}' to override")
            continue

        if data is None:
            data = {name: getattr(layer, name) for name in fields}
        _set_path(data, path, value)

    if data is None:
        return layer

    try:
        return type(layer).model_validate(data)
    except ValidationError as e:
        raise LayerRenderError(
            f"Input overrides produced an invalid layer '{layer.description}'",
            cause=e,
        ) from e


# =============================================================================
# COMPOSITOR
# =============================================================================

RenderedLayer = Tuple[Any, Layer]


class Compositor:
    """
    Draws layer trees with a backend, an image loader and a font registrar.

    The Pillow implementations are used for anything not supplied. When a
    ``FontRegistry`` is given without a backend, the default backend draws
    with that registry so registered fonts are found.
    """

    def __init__(
        self,
        backend: Optional[DrawingBackend] = None,
        image_loader: Optional[ImageLoader] = None,
        font_registry: Optional[FontRegistrar] = None,
    ):
        if font_registry is None:
            font_registry = backend.fonts if isinstance(backend, PillowBackend) else FontRegistry()
        self.font_registry = font_registry
        if backend is None:
            backend = PillowBackend(font_registry if isinstance(font_registry, FontRegistry) else None)
        self.backend = backend
        self.image_loader = image_loader or PillowImageLoader()

    async def render(self, template: Template, inputs: Optional[Mapping[str, Any]] = None) -> Any:
        """
        Render a template to a new surface of the template's size.

        Args:
            template: The parsed template; never modified.
            inputs: Runtime input values, overlaid on the declared defaults.

        Returns:
            The backend surface holding the finished card.

        Raises:
            LayoutInvariantError: If text layout reaches an impossible state.
        """
        resolved = template.resolve_inputs(inputs)
        await self.register_fonts(template.fonts)

        surface = self.backend.create_surface(template.size.width, template.size.height)
        await self.draw_layer_group(list(reversed(template.layers)), surface, resolved)
        logger.info(f"Rendered template '{template.name}' ({len(template.layers)} top level layers)")
        return surface

    async def register_fonts(self, fonts: Sequence[Font]) -> None:
        """Register every custom font; failures are logged and skipped."""
        results = await asyncio.gather(
            *(self.font_registry.register(font.url, font.font_face) for font in fonts),
            return_exceptions=True,
        )
        for font, result in zip(fonts, results):
            if isinstance(result, FontLoadError):
                logger.error(f"Failed to register font {font.font_face.family} - {result}")
            elif isinstance(result, BaseException):
                raise result

    async def draw_layer_group(self, layers: Sequence[Layer], surface: Any, inputs: Mapping[str, Any]) -> None:
        """
        Draw sibling layers onto ``surface``.

        Layers are drawn in the order given: all render concurrently, then each
        finished layer is composited in turn, once per operation. A layer
        naming an operation the backend cannot perform is skipped whole.
        """
        rendered = await asyncio.gather(*(self.render_layer(layer, inputs) for layer in layers))

        for result in rendered:
            if result is None:
                continue
            layer_surface, layer = result
            position = resolve_origin(layer.origin, layer.anchor, layer.size)
            try:
                unsupported = [op for op in layer.operations if not self.backend.supports_operation(op)]
                if unsupported:
                    raise UnsupportedOperationError(
                        f"Unsupported compositing operation {', '.join(unsupported)}",
                        context={"layer": layer.description},
                    )
                for operation in layer.operations:
                    self.backend.composite(surface, layer_surface, position.x, position.y, operation)
            except Exception as e:
                logger.error(f"Failed to draw layer {layer.description} - {e}")

    async def render_layer(self, layer: Layer, inputs: Mapping[str, Any]) -> Optional[RenderedLayer]:
        """
        Render one layer onto a fresh surface of its own size.

        Returns:
            The surface and the layer as drawn (after overrides), or None
            when the condition is not met or the layer failed.
        """
        if not evaluate(layer.condition, inputs):
            logger.debug(f"Conditions for layer {layer.description} not met")
            return None

        try:
            resolved = apply_input_overrides(layer, inputs)
            surface = self.backend.create_surface(resolved.size.width, resolved.size.height)
            await self._draw(resolved, surface, inputs)
        except LayoutInvariantError:
            raise
        except Exception as e:
            logger.error(f"Failed to draw layer {layer.description} - {e}")
            return None

        return surface, resolved

    async def _draw(self, layer: Layer, surface: Any, inputs: Mapping[str, Any]) -> None:
        if isinstance(layer, FillLayer):
            self._draw_fill(layer, surface)
        elif isinstance(layer, ImageLayer):
            await self._draw_image(layer, surface)
        elif isinstance(layer, TextLayer):
            self._draw_text(layer, surface)
        elif isinstance(layer, GroupLayer):
            await self.draw_layer_group(layer.layers, surface, inputs)
        else:
            raise TemplateStructureError(f"Unknown layer type {type(layer).__name__}")

    def _draw_fill(self, layer: FillLayer, surface: Any) -> None:
        self.backend.fill_rect(surface, 0, 0, layer.size.width, layer.size.height, layer.fill_style)

    async def _draw_image(self, layer: ImageLayer, surface: Any) -> None:
        image = await self.image_loader.load(layer.url)
        width, height = self.backend.size_of(image)
        rect = fit_image_box(layer.scale, width, height, layer.size)
        self.backend.draw_image(surface, image, rect.x, rect.y, rect.width, rect.height, shadow=layer.drop_shadow)

    def _draw_text(self, layer: TextLayer, surface: Any) -> None:
        layout = layout_text(layer, self.backend)
        if layout.iterations:
            logger.debug(f"Scaled text of layer {layer.description} to {layout.scale:.4f}")
        for run in layout.runs:
            self.backend.draw_text(surface, run.text, run.x, run.y, run.style, layout.scale)


# =============================================================================
# ENTRY POINTS
# =============================================================================

async def render_template(
    template: Template,
    inputs: Optional[Mapping[str, Any]] = None,
    backend: Optional[DrawingBackend] = None,
    image_loader: Optional[ImageLoader] = None,
    font_registry: Optional[FontRegistrar] = None,
) -> Any:
    """Render ``template`` with ``inputs`` and return the finished surface."""
    compositor = Compositor(backend=backend, image_loader=image_loader, font_registry=font_registry)
    return await compositor.render(template, inputs)


def render_template_sync(
    template: Template,
    inputs: Optional[Mapping[str, Any]] = None,
    **kwargs: Any,
) -> Any:
    """Blocking wrapper around :func:`render_template`."""
    return asyncio.run(render_template(template, inputs, **kwargs))
