"""Tests for the Pillow drawing backend."""

import pytest
from PIL import Image

from cardrender.dsl.schema import DropShadow, TextStyle
from cardrender.exceptions import LayerRenderError, UnsupportedOperationError
from cardrender.renderer.pillow_backend import PillowBackend, parse_color


def opaque_bbox(image: Image.Image):
    return image.getchannel("A").getbbox()


class TestParseColor:
    """Tests for CSS color parsing."""

    @pytest.mark.parametrize(
        "color, expected",
        [
            ("red", (255, 0, 0, 255)),
            ("#fff", (255, 255, 255, 255)),
            ("#00000080", (0, 0, 0, 128)),
            ("rgb(1, 2, 3)", (1, 2, 3, 255)),
            ("rgba(0, 0, 0, 0.5)", (0, 0, 0, 128)),
            ("rgba(10, 20, 30, 100%)", (10, 20, 30, 255)),
        ],
    )
    def test_colors(self, color: str, expected) -> None:
        """Test supported color spellings."""
        assert parse_color(color) == expected

    def test_opacity(self) -> None:
        """Test opacity scales alpha."""
        assert parse_color("blue", opacity=0.5) == (0, 0, 255, 128)

    def test_invalid(self) -> None:
        """Test an unknown color is a layer error."""
        with pytest.raises(LayerRenderError):
            parse_color("not-a-color")


class TestPrimitives:
    """Tests for drawing primitives."""

    def test_surface(self, backend: PillowBackend) -> None:
        """Test surfaces are transparent RGBA of at least one pixel."""
        surface = backend.create_surface(10.4, 0)

        assert surface.mode == "RGBA"
        assert surface.size == (10, 1)
        assert opaque_bbox(surface) is None

    def test_fill_rect(self, backend: PillowBackend) -> None:
        """Test a fill covers exactly its rectangle."""
        surface = backend.create_surface(10, 10)
        backend.fill_rect(surface, 2, 3, 4, 5, "red")

        assert opaque_bbox(surface) == (2, 3, 6, 8)
        assert surface.getpixel((2, 3)) == (255, 0, 0, 255)

    def test_fill_blends(self, backend: PillowBackend) -> None:
        """Test a translucent fill blends over existing pixels."""
        surface = backend.create_surface(2, 2)
        backend.fill_rect(surface, 0, 0, 2, 2, "white")
        backend.fill_rect(surface, 0, 0, 2, 2, "rgba(0, 0, 0, 0.5)")

        r, g, b, a = surface.getpixel((0, 0))
        assert r == pytest.approx(127, abs=1)
        assert a == 255

    def test_draw_image_resized(self, backend: PillowBackend) -> None:
        """Test images are resized into their rectangle."""
        surface = backend.create_surface(20, 20)
        image = Image.new("RGBA", (2, 2), (0, 0, 255, 255))
        backend.draw_image(surface, image, 5, 5, 10, 8)

        assert opaque_bbox(surface) == (5, 5, 15, 13)

    def test_draw_image_cropped(self, backend: PillowBackend) -> None:
        """Test parts of an image outside the surface are cut off."""
        surface = backend.create_surface(10, 10)
        image = Image.new("RGBA", (20, 10), (0, 0, 255, 255))
        backend.draw_image(surface, image, -5, 0, 20, 10)

        assert opaque_bbox(surface) == (0, 0, 10, 10)

    def test_draw_image_shadow(self, backend: PillowBackend) -> None:
        """Test a drop shadow paints outside the image."""
        surface = backend.create_surface(20, 20)
        image = Image.new("RGBA", (5, 5), (255, 255, 255, 255))
        shadow = DropShadow(offset_x=4, offset_y=4, color="#000000")
        backend.draw_image(surface, image, 2, 2, 5, 5, shadow=shadow)

        assert surface.getpixel((9, 9)) == (0, 0, 0, 255)
        assert surface.getpixel((3, 3)) == (255, 255, 255, 255)


class TestText:
    """Tests for text measurement and drawing."""

    def test_measure(self, backend: PillowBackend) -> None:
        """Test widths grow with the text and metrics are positive."""
        style = TextStyle(font="20px sans-serif")
        short = backend.measure_text("ab", style)
        long = backend.measure_text("abcdef", style)

        assert 0 < short.width < long.width
        assert short.ascent > 0
        assert short.height == short.ascent + short.descent

    def test_measure_empty(self, backend: PillowBackend) -> None:
        """Test an empty run has no width but keeps the line height."""
        metrics = backend.measure_text("", TextStyle(font="20px sans-serif"))

        assert metrics.width == 0
        assert metrics.ascent > 0

    def test_larger_font_is_wider(self, backend: PillowBackend) -> None:
        """Test the font size of the style is used."""
        small = backend.measure_text("abc", TextStyle(font="10px sans-serif"))
        large = backend.measure_text("abc", TextStyle(font="40px sans-serif"))

        assert large.width > small.width

    def test_draw_text_on_baseline(self, backend: PillowBackend) -> None:
        """Test text is drawn above its baseline."""
        surface = backend.create_surface(200, 60)
        backend.draw_text(surface, "Hello", 10, 40, TextStyle(font="24px sans-serif"))

        left, top, right, bottom = opaque_bbox(surface)
        assert left >= 9
        assert top < 40
        assert bottom <= 42

    def test_draw_text_scaled(self, backend: PillowBackend) -> None:
        """Test scale shrinks position and glyphs together."""
        style = TextStyle(font="24px sans-serif")
        full = backend.create_surface(200, 60)
        half = backend.create_surface(200, 60)
        backend.draw_text(full, "Hello", 10, 40, style)
        backend.draw_text(half, "Hello", 10, 40, style, scale=0.5)

        full_box = opaque_bbox(full)
        half_box = opaque_bbox(half)
        assert half_box[2] - half_box[0] < full_box[2] - full_box[0]
        assert half_box[3] <= 22

    def test_draw_text_opacity(self, backend: PillowBackend) -> None:
        """Test opacity limits the alpha of drawn text."""
        surface = backend.create_surface(100, 40)
        backend.draw_text(surface, "Hi", 5, 30, TextStyle(font="30px sans-serif", opacity=0.5))

        assert max(surface.getchannel("A").getdata()) <= 128

    def test_draw_empty_text(self, backend: PillowBackend) -> None:
        """Test drawing nothing leaves the surface empty."""
        surface = backend.create_surface(10, 10)
        backend.draw_text(surface, "", 0, 5, TextStyle())

        assert opaque_bbox(surface) is None


class TestComposite:
    """Tests for compositing surfaces."""

    def test_source_over(self, backend: PillowBackend) -> None:
        """Test the source lands at its position."""
        dest = backend.create_surface(10, 10)
        source = Image.new("RGBA", (3, 3), (255, 0, 0, 255))
        backend.composite(dest, source, 4, 4, "source-over")

        assert opaque_bbox(dest) == (4, 4, 7, 7)

    def test_negative_position(self, backend: PillowBackend) -> None:
        """Test sources partly above or left of the destination are clipped."""
        dest = backend.create_surface(10, 10)
        source = Image.new("RGBA", (3, 3), (255, 0, 0, 255))
        backend.composite(dest, source, -1, -2, "source-over")

        assert opaque_bbox(dest) == (0, 0, 2, 1)

    def test_other_operations_in_place(self, backend: PillowBackend) -> None:
        """Test non source-over operations update the destination in place."""
        dest = Image.new("RGBA", (4, 4), (0, 0, 255, 255))
        mask = Image.new("RGBA", (2, 2), (0, 0, 0, 255))
        backend.composite(dest, mask, 0, 0, "destination-in")

        assert opaque_bbox(dest) == (0, 0, 2, 2)

    def test_unsupported(self, backend: PillowBackend) -> None:
        """Test an unknown operation raises."""
        dest = backend.create_surface(4, 4)

        with pytest.raises(UnsupportedOperationError):
            backend.composite(dest, dest.copy(), 0, 0, "sparkle")

    def test_supports_operation(self, backend: PillowBackend) -> None:
        """Test only known operation names are reported as supported."""
        assert backend.supports_operation("source-over")
        assert backend.supports_operation("multiply")
        assert not backend.supports_operation("sparkle")
