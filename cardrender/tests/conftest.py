"""Pytest configuration and fixtures."""

from typing import Optional

import pytest
from PIL import Image

from cardrender.dsl.schema import TextStyle
from cardrender.exceptions import ImageLoadError
from cardrender.renderer.base import RunMetrics
from cardrender.renderer.fonts import FontRegistry
from cardrender.renderer.pillow_backend import PillowBackend

CHAR_WIDTH = 10.0
ASCENT = 8.0
DESCENT = 2.0


class FixedMeasurer:
    """Every character is CHAR_WIDTH wide; every run is ASCENT + DESCENT tall."""

    def __init__(self):
        self.calls: list[str] = []

    def measure_text(self, text: str, style: TextStyle) -> RunMetrics:
        self.calls.append(text)
        return RunMetrics(width=CHAR_WIDTH * len(text), ascent=ASCENT, descent=DESCENT)


class MemoryImageLoader:
    """Serves in-memory images by URL."""

    def __init__(self, images: Optional[dict[str, Image.Image]] = None):
        self.images = images or {}
        self.requested: list[str] = []

    async def load(self, url: str) -> Image.Image:
        self.requested.append(url)
        if not url:
            raise ImageLoadError("Layer has no URL")
        if url not in self.images:
            raise ImageLoadError(f"Could not fetch image {url}")
        return self.images[url]


@pytest.fixture
def measurer() -> FixedMeasurer:
    """Create a fixed-width text measurer."""
    return FixedMeasurer()


@pytest.fixture
def font_registry(tmp_path) -> FontRegistry:
    """Create a font registry that only knows the system and default fonts."""
    return FontRegistry(font_dir=tmp_path)


@pytest.fixture
def backend(font_registry: FontRegistry) -> PillowBackend:
    """Create a Pillow backend."""
    return PillowBackend(font_registry)


@pytest.fixture
def solid_images() -> dict[str, Image.Image]:
    """Create a few solid color images keyed by URL."""
    return {
        "red.png": Image.new("RGBA", (20, 10), (255, 0, 0, 255)),
        "blue.png": Image.new("RGBA", (10, 10), (0, 0, 255, 255)),
        "half.png": Image.new("RGBA", (10, 10), (0, 0, 0, 128)),
    }


@pytest.fixture
def image_loader(solid_images: dict[str, Image.Image]) -> MemoryImageLoader:
    """Create an in-memory image loader."""
    return MemoryImageLoader(solid_images)
