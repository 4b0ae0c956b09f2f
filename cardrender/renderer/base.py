"""Collaborator interfaces consumed by the rendering core.

The core never touches pixels, files or the network directly: it measures
and paints through a ``DrawingBackend``, fetches images through an
``ImageLoader`` and registers fonts through a ``FontRegistrar``. Every draw
call receives its style explicitly; backends keep no "current" fill, font or
compositing mode between calls.
"""

from dataclasses import dataclass
from typing import Any, Optional, Protocol

from cardrender.dsl.schema import DropShadow, FontFace, TextStyle


@dataclass(frozen=True)
class RunMetrics:
    """Measured extent of a string drawn in one style."""
    width: float
    ascent: float
    descent: float

    @property
    def height(self) -> float:
        return self.ascent + self.descent


class TextMeasurer(Protocol):
    """Anything that can measure a string in a style."""

    def measure_text(self, text: str, style: TextStyle) -> RunMetrics:
        ...


class DrawingBackend(TextMeasurer, Protocol):
    """Raster surface operations used by the compositor."""

    def create_surface(self, width: float, height: float) -> Any:
        """Create a transparent surface."""
        ...

    def size_of(self, surface_or_image: Any) -> tuple[int, int]:
        ...

    def fill_rect(self, surface: Any, x: float, y: float, width: float, height: float, fill_style: str) -> None:
        ...

    def draw_image(
        self,
        surface: Any,
        image: Any,
        x: float,
        y: float,
        width: float,
        height: float,
        shadow: Optional[DropShadow] = None,
    ) -> None:
        ...

    def draw_text(
        self,
        surface: Any,
        text: str,
        x: float,
        y: float,
        style: TextStyle,
        scale: float = 1.0,
    ) -> None:
        """Draw ``text`` with its alphabetic baseline starting at (x, y).

        ``x``, ``y`` and the font size are in native text units and are
        multiplied by ``scale`` before drawing.
        """
        ...

    def supports_operation(self, operation: str) -> bool:
        """Whether ``composite`` accepts this operation name."""
        ...

    def composite(self, dest: Any, source: Any, x: float, y: float, operation: str) -> None:
        """Blend ``source`` onto ``dest`` at (x, y) with a named operation."""
        ...


class ImageLoader(Protocol):
    """Fetches and decodes images by URL or path."""

    async def load(self, url: str) -> Any:
        ...


class FontRegistrar(Protocol):
    """Makes custom font files available to the backend."""

    async def register(self, url: str, face: FontFace) -> None:
        ...
