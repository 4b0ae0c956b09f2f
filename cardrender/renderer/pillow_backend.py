"""
pillow_backend.py — DrawingBackend implemented with Pillow.

Surfaces are RGBA ``PIL.Image`` objects. Every primitive is drawn on a
transparent scratch layer and blended with source-over, so the target surface
only ever changes through compositing.
"""

import re
from dataclasses import replace
from typing import Optional, Tuple

from PIL import Image, ImageColor, ImageDraw, ImageFilter, ImageFont

from cardrender.dsl.schema import DropShadow, TextStyle
from cardrender.exceptions import LayerRenderError
from cardrender.renderer.base import RunMetrics
from cardrender.renderer.blend import SUPPORTED_OPERATIONS, composite_images
from cardrender.renderer.fonts import FontRegistry, parse_css_font

RGBA = Tuple[int, int, int, int]

TRANSPARENT: RGBA = (0, 0, 0, 0)

# rgba() with a fractional CSS alpha, which ImageColor does not accept
_RGBA_RE = re.compile(
    r"^rgba\(\s*(\d+)\s*,\s*(\d+)\s*,\s*(\d+)\s*,\s*([\d.]+%?)\s*\)$",
    re.IGNORECASE,
)


def parse_color(color: str, opacity: Optional[float] = None) -> RGBA:
    """
    Convert a CSS color to an RGBA tuple.

    Args:
        color: Named color, #rgb, #rrggbb, #rrggbbaa, rgb() or rgba().
        opacity: Optional multiplier for the alpha channel.

    Raises:
        LayerRenderError: If the color cannot be parsed.
    """
    value = color.strip()
    match = _RGBA_RE.match(value)
    try:
        if match:
            r, g, b = (min(int(c), 255) for c in match.group(1, 2, 3))
            alpha = match.group(4)
            a = float(alpha[:-1]) / 100 if alpha.endswith("%") else float(alpha)
            rgba = (r, g, b, round(min(max(a, 0.0), 1.0) * 255))
        else:
            rgba = ImageColor.getcolor(value, "RGBA")
    except ValueError as e:
        raise LayerRenderError(f"Invalid color '{color}'", cause=e) from e

    if opacity is not None:
        rgba = (*rgba[:3], round(rgba[3] * opacity))
    return rgba


def _pixel_size(value: float) -> int:
    return max(1, round(value))


class PillowBackend:
    """Raster backend on Pillow RGBA images."""

    def __init__(self, fonts: Optional[FontRegistry] = None):
        self.fonts = fonts or FontRegistry()

    # -------------------------------------------------------------------------
    # Surfaces
    # -------------------------------------------------------------------------

    def create_surface(self, width: float, height: float) -> Image.Image:
        return Image.new("RGBA", (_pixel_size(width), _pixel_size(height)), TRANSPARENT)

    def size_of(self, surface_or_image: Image.Image) -> tuple[int, int]:
        return surface_or_image.size

    def _scratch(self, surface: Image.Image) -> Image.Image:
        return Image.new("RGBA", surface.size, TRANSPARENT)

    # -------------------------------------------------------------------------
    # Primitives
    # -------------------------------------------------------------------------

    def fill_rect(self, surface: Image.Image, x: float, y: float, width: float, height: float, fill_style: str) -> None:
        color = parse_color(fill_style)
        if width <= 0 or height <= 0:
            return
        layer = self._scratch(surface)
        ImageDraw.Draw(layer).rectangle(
            [round(x), round(y), round(x + width) - 1, round(y + height) - 1],
            fill=color,
        )
        surface.alpha_composite(layer)

    def draw_image(
        self,
        surface: Image.Image,
        image: Image.Image,
        x: float,
        y: float,
        width: float,
        height: float,
        shadow: Optional[DropShadow] = None,
    ) -> None:
        size = (_pixel_size(width), _pixel_size(height))
        resized = image.convert("RGBA")
        if resized.size != size:
            resized = resized.resize(size, Image.Resampling.LANCZOS)

        if shadow is not None:
            self._draw_shadow(surface, resized, round(x), round(y), shadow)

        layer = self._scratch(surface)
        layer.paste(resized, (round(x), round(y)))
        surface.alpha_composite(layer)

    def _draw_shadow(self, surface: Image.Image, shape: Image.Image, x: int, y: int, shadow: DropShadow) -> None:
        """Paint a blurred silhouette of ``shape`` offset by the shadow."""
        color = parse_color(shadow.color)
        silhouette = Image.new("RGBA", shape.size, color[:3] + (0,))
        alpha = shape.getchannel("A").point(lambda a: round(a * color[3] / 255))
        silhouette.putalpha(alpha)

        layer = self._scratch(surface)
        layer.paste(silhouette, (x + round(shadow.offset_x), y + round(shadow.offset_y)))
        if shadow.blur > 0:
            # Canvas shadowBlur is twice the Gaussian standard deviation
            layer = layer.filter(ImageFilter.GaussianBlur(shadow.blur / 2))
        surface.alpha_composite(layer)

    def draw_text(
        self,
        surface: Image.Image,
        text: str,
        x: float,
        y: float,
        style: TextStyle,
        scale: float = 1.0,
    ) -> None:
        if not text:
            return

        font = self._font_for(style, scale)
        color = parse_color(style.fill_style)
        position = (x * scale, y * scale)

        layer = self._scratch(surface)
        ImageDraw.Draw(layer).text(position, text, font=font, fill=color, anchor="ls")

        if style.opacity is not None:
            layer.putalpha(layer.getchannel("A").point(lambda a: round(a * style.opacity)))

        if style.drop_shadow is not None:
            self._draw_shadow(surface, layer, 0, 0, style.drop_shadow)
        surface.alpha_composite(layer)

    # -------------------------------------------------------------------------
    # Measurement
    # -------------------------------------------------------------------------

    def _font_for(self, style: TextStyle, scale: float = 1.0) -> ImageFont.FreeTypeFont:
        spec = parse_css_font(style.font)
        if scale != 1.0:
            spec = replace(spec, size=spec.size * scale)
        return self.fonts.get_font(spec)

    def measure_text(self, text: str, style: TextStyle) -> RunMetrics:
        """
        Measure a run in the style's font.

        Width is the advance width; ascent and descent come from the font so
        lines of the same font share a baseline grid regardless of content.
        """
        font = self._font_for(style)
        try:
            width = font.getlength(text)
            ascent, descent = font.getmetrics()
        except AttributeError:
            # Bitmap fonts without FreeType metrics
            left, top, right, bottom = font.getbbox(text or " ")
            width = right - left if text else 0.0
            ascent, descent = bottom, 0
        return RunMetrics(width=float(width), ascent=float(ascent), descent=float(descent))

    # -------------------------------------------------------------------------
    # Compositing
    # -------------------------------------------------------------------------

    def supports_operation(self, operation: str) -> bool:
        return operation in SUPPORTED_OPERATIONS

    def composite(self, dest: Image.Image, source: Image.Image, x: float, y: float, operation: str) -> None:
        """
        Blend ``source`` onto ``dest`` at (x, y) in place.

        Raises:
            UnsupportedOperationError: If the operation is not known.
        """
        left, top = round(x), round(y)
        if operation == "source-over" and left >= 0 and top >= 0:
            dest.alpha_composite(source.convert("RGBA"), dest=(left, top))
            return

        result = composite_images(dest, source, left, top, operation)
        dest.paste(result, (0, 0))
