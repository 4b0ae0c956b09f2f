"""
blend.py — Canvas compositing operations on RGBA images.

Implements the named ``globalCompositeOperation`` values of the 2D canvas:
Porter-Duff operators and the W3C blend modes. Math runs in numpy on
premultiplied float arrays in [0, 1]. The source is first placed on a
transparent canvas the size of the destination, so operators such as
``source-in`` or ``destination-in`` affect the whole destination, as they do
on a canvas.
"""

from typing import Callable, Dict, Tuple

import numpy as np
from PIL import Image

from cardrender.exceptions import UnsupportedOperationError

Array = np.ndarray

# Porter-Duff operators as (source factor, destination factor) of the alphas
PORTER_DUFF: Dict[str, Callable[[Array, Array], Tuple[Array, Array]]] = {
    "source-over": lambda sa, da: (1.0, 1.0 - sa),
    "destination-over": lambda sa, da: (1.0 - da, 1.0),
    "source-in": lambda sa, da: (da, 0.0),
    "source-out": lambda sa, da: (1.0 - da, 0.0),
    "source-atop": lambda sa, da: (da, 1.0 - sa),
    "destination-in": lambda sa, da: (0.0, sa),
    "destination-out": lambda sa, da: (0.0, 1.0 - sa),
    "destination-atop": lambda sa, da: (1.0 - da, sa),
    "xor": lambda sa, da: (1.0 - da, 1.0 - sa),
    "copy": lambda sa, da: (1.0, 0.0),
    "lighter": lambda sa, da: (1.0, 1.0),
}


# =============================================================================
# SEPARABLE BLEND FUNCTIONS  B(backdrop, source) on straight colors
# =============================================================================

def _soft_light(cb: Array, cs: Array) -> Array:
    d = np.where(cb <= 0.25, ((16 * cb - 12) * cb + 4) * cb, np.sqrt(cb))
    return np.where(
        cs <= 0.5,
        cb - (1 - 2 * cs) * cb * (1 - cb),
        cb + (2 * cs - 1) * (d - cb),
    )


def _color_dodge(cb: Array, cs: Array) -> Array:
    with np.errstate(divide="ignore", invalid="ignore"):
        dodged = np.minimum(1.0, cb / (1.0 - cs))
    return np.where(cb == 0, 0.0, np.where(cs >= 1, 1.0, dodged))


def _color_burn(cb: Array, cs: Array) -> Array:
    with np.errstate(divide="ignore", invalid="ignore"):
        burned = 1.0 - np.minimum(1.0, (1.0 - cb) / cs)
    return np.where(cb >= 1, 1.0, np.where(cs <= 0, 0.0, burned))


def _hard_light(cb: Array, cs: Array) -> Array:
    return np.where(cs <= 0.5, cb * 2 * cs, _screen(cb, 2 * cs - 1))


def _screen(cb: Array, cs: Array) -> Array:
    return cb + cs - cb * cs


SEPARABLE: Dict[str, Callable[[Array, Array], Array]] = {
    "multiply": lambda cb, cs: cb * cs,
    "screen": _screen,
    "overlay": lambda cb, cs: _hard_light(cs, cb),
    "darken": np.minimum,
    "lighten": np.maximum,
    "color-dodge": _color_dodge,
    "color-burn": _color_burn,
    "hard-light": _hard_light,
    "soft-light": _soft_light,
    "difference": lambda cb, cs: np.abs(cb - cs),
    "exclusion": lambda cb, cs: cb + cs - 2 * cb * cs,
}


# =============================================================================
# NON-SEPARABLE BLEND FUNCTIONS
# =============================================================================

def _lum(c: Array) -> Array:
    return (0.3 * c[..., 0] + 0.59 * c[..., 1] + 0.11 * c[..., 2])[..., None]


def _clip_color(c: Array) -> Array:
    lum = _lum(c)
    low = c.min(axis=-1, keepdims=True)
    high = c.max(axis=-1, keepdims=True)
    with np.errstate(divide="ignore", invalid="ignore"):
        c = np.where(low < 0, lum + (c - lum) * lum / (lum - low), c)
        c = np.where(high > 1, lum + (c - lum) * (1 - lum) / (high - lum), c)
    return np.nan_to_num(c)


def _set_lum(c: Array, lum: Array) -> Array:
    return _clip_color(c + (lum - _lum(c)))


def _sat(c: Array) -> Array:
    return c.max(axis=-1, keepdims=True) - c.min(axis=-1, keepdims=True)


def _set_sat(c: Array, sat: Array) -> Array:
    low = c.min(axis=-1, keepdims=True)
    spread = _sat(c)
    with np.errstate(divide="ignore", invalid="ignore"):
        result = (c - low) * sat / spread
    return np.where(spread > 0, result, 0.0)


NON_SEPARABLE: Dict[str, Callable[[Array, Array], Array]] = {
    "hue": lambda cb, cs: _set_lum(_set_sat(cs, _sat(cb)), _lum(cb)),
    "saturation": lambda cb, cs: _set_lum(_set_sat(cb, _sat(cs)), _lum(cb)),
    "color": lambda cb, cs: _set_lum(cs, _lum(cb)),
    "luminosity": lambda cb, cs: _set_lum(cb, _lum(cs)),
}


SUPPORTED_OPERATIONS = frozenset(PORTER_DUFF) | frozenset(SEPARABLE) | frozenset(NON_SEPARABLE)


# =============================================================================
# ARRAY CONVERSION
# =============================================================================

def to_premultiplied(image: Image.Image) -> Array:
    """RGBA image -> premultiplied float array of shape (h, w, 4)."""
    array = np.asarray(image.convert("RGBA"), dtype=np.float64) / 255.0
    array[..., :3] *= array[..., 3:4]
    return array


def from_premultiplied(array: Array) -> Image.Image:
    """Premultiplied float array -> RGBA image."""
    array = np.clip(array, 0.0, 1.0)
    alpha = array[..., 3:4]
    with np.errstate(divide="ignore", invalid="ignore"):
        rgb = np.where(alpha > 0, array[..., :3] / alpha, 0.0)
    straight = np.concatenate([rgb, alpha], axis=-1)
    return Image.fromarray(np.round(straight * 255.0).astype(np.uint8), "RGBA")


def place_on_canvas(source: Array, width: int, height: int, x: int, y: int) -> Array:
    """Return a transparent (height, width) canvas with ``source`` placed at (x, y)."""
    canvas = np.zeros((height, width, 4), dtype=source.dtype)
    src_h, src_w = source.shape[:2]

    left, top = max(x, 0), max(y, 0)
    right, bottom = min(x + src_w, width), min(y + src_h, height)
    if right <= left or bottom <= top:
        return canvas

    canvas[top:bottom, left:right] = source[top - y:bottom - y, left - x:right - x]
    return canvas


# =============================================================================
# COMPOSITING
# =============================================================================

def composite_arrays(dest: Array, source: Array, operation: str) -> Array:
    """
    Combine two premultiplied arrays of equal shape.

    Args:
        dest: Backdrop (premultiplied RGBA).
        source: Source (premultiplied RGBA), same shape as ``dest``.
        operation: Canvas composite operation name.

    Returns:
        New premultiplied array.

    Raises:
        UnsupportedOperationError: If the operation is not known.
    """
    sa = source[..., 3:4]
    da = dest[..., 3:4]

    if operation in PORTER_DUFF:
        fa, fb = PORTER_DUFF[operation](sa, da)
        result = fa * source + fb * dest
        if operation == "lighter":
            result = np.minimum(result, 1.0)
        return result

    if operation in SEPARABLE or operation in NON_SEPARABLE:
        with np.errstate(divide="ignore", invalid="ignore"):
            cs = np.where(sa > 0, source[..., :3] / sa, 0.0)
            cb = np.where(da > 0, dest[..., :3] / da, 0.0)
        if operation in SEPARABLE:
            blended = SEPARABLE[operation](cb, cs)
        else:
            blended = NON_SEPARABLE[operation](cb, cs)
        blended = np.clip(blended, 0.0, 1.0)

        rgb = (
            source[..., :3] * (1.0 - da)
            + dest[..., :3] * (1.0 - sa)
            + sa * da * blended
        )
        alpha = sa + da * (1.0 - sa)
        return np.concatenate([rgb, alpha], axis=-1)

    raise UnsupportedOperationError(
        f"Unsupported composite operation '{operation}'",
        context={"operation": operation},
    )


def composite_images(dest: Image.Image, source: Image.Image, x: int, y: int, operation: str) -> Image.Image:
    """
    Composite ``source`` onto ``dest`` at (x, y) and return the new image.

    The destination image is not modified.
    """
    if operation not in SUPPORTED_OPERATIONS:
        raise UnsupportedOperationError(
            f"Unsupported composite operation '{operation}'",
            context={"operation": operation},
        )

    backdrop = to_premultiplied(dest)
    placed = place_on_canvas(to_premultiplied(source), dest.width, dest.height, x, y)
    return from_premultiplied(composite_arrays(backdrop, placed, operation))
