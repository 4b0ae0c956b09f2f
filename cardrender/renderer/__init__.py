"""Renderer module - Pillow drawing backend, image loading and fonts."""

from cardrender.renderer.base import DrawingBackend, FontRegistrar, ImageLoader, RunMetrics, TextMeasurer
from cardrender.renderer.blend import SUPPORTED_OPERATIONS, composite_images
from cardrender.renderer.fonts import FontRegistry, FontSpec, parse_css_font
from cardrender.renderer.images import PillowImageLoader, fetch_resource
from cardrender.renderer.pillow_backend import PillowBackend, parse_color

__all__ = [
    # Protocols
    "DrawingBackend",
    "FontRegistrar",
    "ImageLoader",
    "RunMetrics",
    "TextMeasurer",
    # Pillow implementation
    "PillowBackend",
    "PillowImageLoader",
    "FontRegistry",
    "FontSpec",
    "SUPPORTED_OPERATIONS",
    "composite_images",
    "fetch_resource",
    "parse_color",
    "parse_css_font",
]
