"""Image loading for image layers.

URLs may be http(s) links, ``data:`` URIs, ``file://`` URLs or plain paths
(relative paths resolve against ``base_dir``). Fetching is async; decoding
runs in a worker thread.
"""

import asyncio
import base64
import logging
from io import BytesIO
from pathlib import Path
from typing import Optional, Union
from urllib.parse import unquote, urlparse

import httpx
from PIL import Image, UnidentifiedImageError

from cardrender.config import get_settings
from cardrender.exceptions import ImageLoadError

logger = logging.getLogger(__name__)


async def fetch_resource(
    url: str,
    timeout: float = 30.0,
    base_dir: Optional[Union[str, Path]] = None,
) -> bytes:
    """
    Read the bytes behind a URL or path.

    Raises:
        httpx.HTTPError: If a remote fetch fails.
        OSError: If a local file cannot be read.
        ValueError: If a data URI is malformed.
    """
    parsed = urlparse(url)

    if parsed.scheme in ("http", "https"):
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            response = await client.get(url)
            response.raise_for_status()
            return response.content

    if parsed.scheme == "data":
        header, separator, payload = url.partition(",")
        if not separator:
            raise ValueError("Malformed data URI")
        if header.endswith(";base64"):
            return base64.b64decode(payload)
        return unquote(payload).encode()

    path = Path(unquote(parsed.path)) if parsed.scheme == "file" else Path(url)
    if not path.is_absolute() and base_dir is not None:
        path = Path(base_dir) / path
    return await asyncio.to_thread(path.read_bytes)


def _decode(data: bytes) -> Image.Image:
    image = Image.open(BytesIO(data))
    image.load()
    return image.convert("RGBA")


class PillowImageLoader:
    """Loads images as RGBA Pillow images."""

    def __init__(self, base_dir: Optional[Union[str, Path]] = None, timeout: Optional[float] = None):
        self.base_dir = base_dir
        self.timeout = get_settings().http_timeout if timeout is None else timeout

    async def load(self, url: str) -> Image.Image:
        """Fetch and decode an image.

        Raises:
            ImageLoadError: If the image is missing or cannot be decoded.
        """
        if not url:
            raise ImageLoadError("Layer has no URL")

        try:
            data = await fetch_resource(url, self.timeout, self.base_dir)
        except (httpx.HTTPError, OSError, ValueError) as e:
            raise ImageLoadError(f"Could not fetch image {url}", cause=e) from e

        try:
            image = await asyncio.to_thread(_decode, data)
        except (UnidentifiedImageError, OSError) as e:
            raise ImageLoadError(f"Could not decode image {url}", cause=e) from e

        logger.debug(f"Loaded image {url} ({image.width}x{image.height})")
        return image
