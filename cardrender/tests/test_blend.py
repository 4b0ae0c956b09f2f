"""Tests for canvas compositing operations."""

import numpy as np
import pytest
from PIL import Image

from cardrender.exceptions import UnsupportedOperationError
from cardrender.renderer.blend import (
    SUPPORTED_OPERATIONS,
    composite_arrays,
    composite_images,
    from_premultiplied,
    place_on_canvas,
    to_premultiplied,
)

RED = (255, 0, 0, 255)
BLUE = (0, 0, 255, 255)
CLEAR = (0, 0, 0, 0)


def solid(color, size=(4, 4)) -> Image.Image:
    return Image.new("RGBA", size, color)


class TestConversion:
    """Tests for premultiplied conversion."""

    def test_round_trip(self) -> None:
        """Test opaque and transparent pixels survive conversion."""
        image = solid((10, 20, 30, 255))

        assert from_premultiplied(to_premultiplied(image)).getpixel((0, 0)) == (10, 20, 30, 255)

    def test_premultiplied(self) -> None:
        """Test color channels are scaled by alpha."""
        array = to_premultiplied(solid((255, 0, 0, 51)))

        assert array[0, 0, 0] == pytest.approx(0.2)
        assert array[0, 0, 3] == pytest.approx(0.2)

    def test_place_on_canvas_clips(self) -> None:
        """Test placement outside the canvas is clipped."""
        source = np.ones((2, 2, 4))
        canvas = place_on_canvas(source, 3, 3, -1, 2)

        assert canvas[2, 0, 3] == 1.0
        assert canvas[:2].sum() == 0
        assert canvas[2, 1:].sum() == 0

    def test_place_on_canvas_outside(self) -> None:
        """Test a source fully outside leaves the canvas empty."""
        assert place_on_canvas(np.ones((2, 2, 4)), 3, 3, 5, 5).sum() == 0


class TestPorterDuff:
    """Tests for Porter-Duff operators."""

    def test_source_over(self) -> None:
        """Test source-over draws the source on top."""
        result = composite_images(solid(BLUE), solid(RED, (2, 2)), 1, 1, "source-over")

        assert result.getpixel((0, 0)) == BLUE
        assert result.getpixel((1, 1)) == RED

    def test_destination_over(self) -> None:
        """Test destination-over keeps the destination on top."""
        result = composite_images(solid(BLUE), solid(RED), 0, 0, "destination-over")

        assert result.getpixel((0, 0)) == BLUE

    def test_destination_in_clears_outside_source(self) -> None:
        """Test destination-in keeps the destination only under the source."""
        result = composite_images(solid(BLUE), solid(RED, (2, 2)), 0, 0, "destination-in")

        assert result.getpixel((0, 0)) == BLUE
        assert result.getpixel((3, 3))[3] == 0

    def test_destination_out(self) -> None:
        """Test destination-out punches the source shape out."""
        result = composite_images(solid(BLUE), solid(RED, (2, 2)), 0, 0, "destination-out")

        assert result.getpixel((0, 0))[3] == 0
        assert result.getpixel((3, 3)) == BLUE

    def test_source_in(self) -> None:
        """Test source-in shows the source only where the destination was."""
        dest = solid(CLEAR)
        dest.paste(BLUE, (0, 0, 2, 2))
        result = composite_images(dest, solid(RED), 0, 0, "source-in")

        assert result.getpixel((0, 0)) == RED
        assert result.getpixel((3, 3))[3] == 0

    def test_source_atop(self) -> None:
        """Test source-atop keeps the destination alpha."""
        dest = solid(CLEAR)
        dest.paste(BLUE, (0, 0, 2, 2))
        result = composite_images(dest, solid(RED), 0, 0, "source-atop")

        assert result.getpixel((0, 0)) == RED
        assert result.getpixel((3, 3))[3] == 0

    def test_xor(self) -> None:
        """Test xor clears where both are opaque."""
        result = composite_images(solid(BLUE), solid(RED, (2, 2)), 0, 0, "xor")

        assert result.getpixel((0, 0))[3] == 0
        assert result.getpixel((3, 3)) == BLUE

    def test_copy(self) -> None:
        """Test copy replaces the whole destination."""
        result = composite_images(solid(BLUE), solid(RED, (2, 2)), 0, 0, "copy")

        assert result.getpixel((0, 0)) == RED
        assert result.getpixel((3, 3))[3] == 0

    def test_lighter(self) -> None:
        """Test lighter adds colors."""
        result = composite_images(solid(BLUE), solid(RED), 0, 0, "lighter")

        assert result.getpixel((0, 0)) == (255, 0, 255, 255)

    def test_destination_not_modified(self) -> None:
        """Test composite_images returns a new image."""
        dest = solid(BLUE)
        composite_images(dest, solid(RED), 0, 0, "copy")

        assert dest.getpixel((0, 0)) == BLUE


class TestBlendModes:
    """Tests for blend modes."""

    def test_multiply(self) -> None:
        """Test multiply darkens."""
        result = composite_images(solid((200, 100, 50, 255)), solid((128, 255, 0, 255)), 0, 0, "multiply")

        r, g, b, a = result.getpixel((0, 0))
        assert r == pytest.approx(200 * 128 / 255, abs=1)
        assert g == 100
        assert b == 0
        assert a == 255

    def test_screen(self) -> None:
        """Test screen with white is white."""
        result = composite_images(solid((10, 20, 30, 255)), solid((255, 255, 255, 255)), 0, 0, "screen")

        assert result.getpixel((0, 0)) == (255, 255, 255, 255)

    def test_difference(self) -> None:
        """Test difference of equal colors is black."""
        result = composite_images(solid((90, 90, 90, 255)), solid((90, 90, 90, 255)), 0, 0, "difference")

        assert result.getpixel((0, 0)) == (0, 0, 0, 255)

    def test_darken_lighten(self) -> None:
        """Test darken and lighten pick channel minima and maxima."""
        dest = solid((200, 10, 100, 255))
        source = solid((100, 50, 100, 255))

        assert composite_images(dest, source, 0, 0, "darken").getpixel((0, 0)) == (100, 10, 100, 255)
        assert composite_images(dest, source, 0, 0, "lighten").getpixel((0, 0)) == (200, 50, 100, 255)

    def test_blend_over_transparent_is_source(self) -> None:
        """Test blending onto nothing shows the source unchanged."""
        result = composite_images(solid(CLEAR), solid((12, 34, 56, 255)), 0, 0, "multiply")

        assert result.getpixel((0, 0)) == (12, 34, 56, 255)

    def test_luminosity_of_gray(self) -> None:
        """Test luminosity with a gray backdrop takes the source's luminance."""
        result = composite_images(solid((0, 0, 0, 255)), solid((128, 128, 128, 255)), 0, 0, "luminosity")

        r, g, b, a = result.getpixel((0, 0))
        assert r == g == b == 128
        assert a == 255

    @pytest.mark.parametrize("operation", sorted(SUPPORTED_OPERATIONS))
    def test_every_operation_stays_in_range(self, operation: str) -> None:
        """Test every operation produces valid pixels for partial alpha."""
        dest = to_premultiplied(solid((200, 30, 90, 128)))
        source = to_premultiplied(solid((20, 220, 160, 200)))

        result = composite_arrays(dest, source, operation)

        assert np.all(np.isfinite(result))
        assert np.all(result >= -1e-9)
        assert np.all(result[..., 3] <= 1 + 1e-9)


class TestUnsupported:
    """Tests for unknown operation names."""

    def test_unknown_operation(self) -> None:
        """Test an unknown operation raises."""
        with pytest.raises(UnsupportedOperationError):
            composite_images(solid(BLUE), solid(RED), 0, 0, "sparkle")

    def test_unknown_operation_arrays(self) -> None:
        """Test composite_arrays rejects unknown names too."""
        array = to_premultiplied(solid(BLUE))

        with pytest.raises(UnsupportedOperationError):
            composite_arrays(array, array, "sparkle")
