"""
geometry.py — Anchor resolution and image placement math.

Pure functions only. A layer declares an origin and an anchor; drawing needs
the top-left corner of the layer's box.
"""

from dataclasses import dataclass

from cardrender.dsl.schema import Anchor, HorizontalAnchor, ImageScale, Point, Size, VerticalAnchor


@dataclass(frozen=True)
class Rect:
    """An axis-aligned box (top-left corner plus size)."""
    x: float
    y: float
    width: float
    height: float


def resolve_origin(origin: Point, anchor: Anchor, size: Size) -> Point:
    """Return the top-left corner of a box given its anchored origin.

    Args:
        origin: The declared origin point.
        anchor: Which point of the box the origin refers to.
        size: Size of the box.

    Returns:
        A new Point for the box's top-left corner.
    """
    if anchor.horizontal is HorizontalAnchor.LEFT:
        x = origin.x
    elif anchor.horizontal is HorizontalAnchor.CENTER:
        x = origin.x - size.width / 2
    else:
        x = origin.x - size.width

    if anchor.vertical is VerticalAnchor.TOP:
        y = origin.y
    elif anchor.vertical is VerticalAnchor.MIDDLE:
        y = origin.y - size.height / 2
    else:
        y = origin.y - size.height

    return Point(x=x, y=y)


def fit_image_box(scale: ImageScale, image_width: float, image_height: float, box: Size) -> Rect:
    """
    Compute where an image is drawn inside a layer box.

    FILL covers the box (overflow is cropped by the box), FIT contains the
    image inside the box, STRETCH ignores the aspect ratio. FILL and FIT keep
    the image centered on the axis that does not match the box.

    Args:
        scale: Placement mode.
        image_width: Natural image width.
        image_height: Natural image height.
        box: The layer size.

    Returns:
        Destination rectangle relative to the box's top-left corner.
    """
    if scale is ImageScale.STRETCH or image_width <= 0 or image_height <= 0:
        return Rect(0.0, 0.0, box.width, box.height)

    ratio = image_width / image_height

    # Start by matching the box width
    width = box.width
    height = width / ratio

    if scale is ImageScale.FILL:
        if height < box.height:
            # Not tall enough, match the height instead
            height = box.height
            width = height * ratio
    else:
        if height > box.height:
            # Too tall, match the height instead
            height = box.height
            width = height * ratio

    return Rect(
        x=(box.width - width) / 2,
        y=(box.height - height) / 2,
        width=width,
        height=height,
    )
