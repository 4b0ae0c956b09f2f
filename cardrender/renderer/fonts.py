"""
fonts.py — CSS font parsing, custom font registration and font loading.

Text styles name fonts with the CSS ``font`` shorthand (``"bold 24px
Roboto"``). The registry maps a family/weight/style to a font file:
custom fonts registered from the template come first, then files in the
configured font directory, then common system fonts, then Pillow's bundled
default font.
"""

import asyncio
import logging
import os
import platform
import re
import tempfile
from dataclasses import dataclass
from pathlib import Path
from typing import Dict, Optional, Tuple, Union

import httpx
from PIL import ImageFont

from cardrender.config import get_settings
from cardrender.dsl.schema import FontFace
from cardrender.exceptions import FontLoadError
from cardrender.renderer.images import fetch_resource

logger = logging.getLogger(__name__)

# =============================================================================
# CSS FONT SHORTHAND
# =============================================================================

PT_TO_PX = 96.0 / 72.0

GENERIC_FAMILIES = frozenset({"serif", "sans-serif", "monospace", "cursive", "fantasy", "system-ui"})

_FONT_RE = re.compile(
    r"^\s*(?P<prefix>(?:[\w-]+\s+)*?)"
    r"(?P<size>\d+(?:\.\d+)?)(?P<unit>px|pt)"
    r"(?:\s*/\s*[\w.%]+)?"
    r"(?:\s+(?P<family>.+?))?\s*$",
    re.IGNORECASE,
)

_BOLD_WEIGHTS = frozenset({"bold", "bolder"})
_ITALIC_STYLES = frozenset({"italic", "oblique"})


@dataclass(frozen=True)
class FontSpec:
    """A parsed CSS font shorthand."""
    family: str
    size: float           # Pixels
    weight: str = "normal"
    style: str = "normal"

    @property
    def bold(self) -> bool:
        return is_bold(self.weight)

    @property
    def italic(self) -> bool:
        return is_italic(self.style)


def is_bold(weight: Optional[str]) -> bool:
    if not weight:
        return False
    weight = weight.lower()
    if weight.isdigit():
        return int(weight) >= 600
    return weight in _BOLD_WEIGHTS


def is_italic(style: Optional[str]) -> bool:
    return bool(style) and style.lower() in _ITALIC_STYLES


def parse_css_font(font: str) -> FontSpec:
    """
    Parse a CSS font shorthand such as ``"italic 700 18px/1.2 'Open Sans', serif"``.

    Only the first family is kept. A string without a size (``"Roboto"``)
    falls back to 16px.

    Args:
        font: The CSS font string.

    Returns:
        FontSpec with size in pixels.
    """
    match = _FONT_RE.match(font or "")
    if not match:
        family = (font or "").split(",")[0].strip().strip("'\"") or "sans-serif"
        return FontSpec(family=family, size=16.0)

    size = float(match.group("size"))
    if match.group("unit").lower() == "pt":
        size *= PT_TO_PX

    weight = "normal"
    style = "normal"
    for token in match.group("prefix").split():
        lowered = token.lower()
        if lowered in _ITALIC_STYLES:
            style = lowered
        elif lowered in _BOLD_WEIGHTS or lowered == "lighter" or lowered.isdigit():
            weight = lowered

    family = (match.group("family") or "sans-serif").split(",")[0].strip().strip("'\"")
    return FontSpec(family=family, size=size, weight=weight, style=style)


# =============================================================================
# FONT REGISTRY
# =============================================================================

FontKey = Tuple[str, bool, bool]


def _font_key(family: str, bold: bool, italic: bool) -> FontKey:
    return (family.strip().lower(), bold, italic)


def _system_fonts() -> list[Path]:
    if platform.system() == 'Windows':
        windows_fonts = Path(os.environ.get('WINDIR', 'C:/Windows')) / 'Fonts'
        return [
            windows_fonts / 'arial.ttf',
            windows_fonts / 'calibri.ttf',
            windows_fonts / 'segoeui.ttf',
        ]
    return [
        Path('/usr/share/fonts/truetype/dejavu/DejaVuSans.ttf'),
        Path('/usr/share/fonts/TTF/DejaVuSans.ttf'),
        Path('/Library/Fonts/Arial.ttf'),
    ]


class FontRegistry:
    """Resolves font specs to loaded Pillow fonts."""

    def __init__(
        self,
        font_dir: Optional[Union[str, Path]] = None,
        fallback_font: Optional[str] = None,
        timeout: Optional[float] = None,
        base_dir: Optional[Union[str, Path]] = None,
    ):
        settings = get_settings()
        if font_dir is None and settings.has_font_dir:
            font_dir = settings.font_dir
        self.font_dir = Path(font_dir) if font_dir else None
        self.fallback_font = fallback_font or settings.fallback_font
        self.timeout = settings.http_timeout if timeout is None else timeout
        self.base_dir = Path(base_dir) if base_dir else None

        self._faces: Dict[FontKey, Path] = {}
        # Cache loaded fonts to avoid repeated disk access
        self._font_cache: Dict[Tuple[Optional[Path], float], ImageFont.FreeTypeFont] = {}
        self._download_dir: Optional[tempfile.TemporaryDirectory] = None

    @property
    def registered_families(self) -> list[str]:
        return sorted({key[0] for key in self._faces})

    async def register(self, url: str, face: FontFace) -> None:
        """
        Make a font file available under its face descriptor.

        Remote fonts are downloaded to a temporary directory first.

        Raises:
            FontLoadError: If the file cannot be fetched or is not a font.
        """
        try:
            path = await self._local_path(url)
            await asyncio.to_thread(ImageFont.truetype, str(path), 10)
        except (httpx.HTTPError, OSError, ValueError) as e:
            raise FontLoadError(f"Could not register font {face.family} from {url}", cause=e) from e

        key = _font_key(face.family, is_bold(face.weight), is_italic(face.style))
        self._faces[key] = path
        logger.info(f"Registered font {face.family} ({face.weight or 'normal'} {face.style or 'normal'}) from {url}")

    async def _local_path(self, url: str) -> Path:
        if not url.startswith(("http://", "https://", "data:")):
            path = Path(url[len("file://"):] if url.startswith("file://") else url)
            if not path.is_absolute() and self.base_dir is not None:
                path = self.base_dir / path
            if not path.exists():
                raise FileNotFoundError(path)
            return path

        data = await fetch_resource(url, self.timeout)
        if self._download_dir is None:
            self._download_dir = tempfile.TemporaryDirectory(prefix="cardrender-fonts-")
        path = Path(self._download_dir.name) / f"font-{len(self._faces)}-{abs(hash(url))}"
        await asyncio.to_thread(path.write_bytes, data)
        return path

    def resolve_path(self, spec: FontSpec) -> Optional[Path]:
        """Find the file for a font spec, or None if only the default font is left."""
        family = spec.family.strip().lower()

        # Registered custom fonts: exact variant, then any variant of the family
        path = self._faces.get(_font_key(family, spec.bold, spec.italic))
        if path is None:
            for (registered, _, _), candidate in self._faces.items():
                if registered == family:
                    path = candidate
                    break
        if path is not None:
            return path

        # Font directory: "<Family>.ttf", "<Family>-Bold.ttf", ...
        if self.font_dir is not None and family not in GENERIC_FAMILIES:
            suffix = ("-Bold" if spec.bold else "") + ("Italic" if spec.italic else "")
            stem = spec.family.replace(" ", "")
            for name in (f"{stem}{'-' + suffix.lstrip('-') if suffix else ''}", stem):
                for extension in (".ttf", ".otf"):
                    candidate = self.font_dir / f"{name}{extension}"
                    if candidate.exists():
                        return candidate

        if self.font_dir is not None and (self.font_dir / self.fallback_font).exists():
            return self.font_dir / self.fallback_font

        for sys_font in _system_fonts():
            if sys_font.exists():
                return sys_font
        return None

    def get_font(self, spec: FontSpec) -> ImageFont.FreeTypeFont:
        """
        Load a font for drawing and measurement. Falls back gracefully if not found.

        Args:
            spec: Parsed font spec (size in pixels).

        Returns:
            Pillow font object ready for measurement
        """
        path = self.resolve_path(spec)
        size = max(spec.size, 1.0)
        cache_key = (path, size)
        if cache_key in self._font_cache:
            return self._font_cache[cache_key]

        try:
            font = ImageFont.truetype(str(path), size) if path else ImageFont.load_default(size)
        except OSError:
            logger.warning(f"Could not load font file {path}; using the default font")
            font = ImageFont.load_default(size)
        self._font_cache[cache_key] = font
        return font

    def clear_cache(self) -> None:
        """Clear the loaded font cache (useful for testing)."""
        self._font_cache.clear()
