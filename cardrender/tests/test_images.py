"""Tests for image loading."""

import asyncio
import base64
from io import BytesIO

import httpx
import pytest
from PIL import Image

from cardrender.exceptions import ImageLoadError, LayerRenderError
from cardrender.renderer.images import PillowImageLoader, fetch_resource


def png_bytes(size=(3, 2), color=(255, 0, 0, 255)) -> bytes:
    buffer = BytesIO()
    Image.new("RGBA", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


@pytest.fixture
def mock_http(monkeypatch: pytest.MonkeyPatch) -> list[str]:
    """Route httpx.AsyncClient through a mock transport."""
    requested: list[str] = []
    real_client = httpx.AsyncClient

    def handler(request: httpx.Request) -> httpx.Response:
        requested.append(str(request.url))
        if request.url.path == "/art.png":
            return httpx.Response(200, content=png_bytes((5, 4)))
        return httpx.Response(404)

    def client_factory(**kwargs):
        return real_client(transport=httpx.MockTransport(handler), **kwargs)

    monkeypatch.setattr(httpx, "AsyncClient", client_factory)
    return requested


class TestFetchResource:
    """Tests for fetch_resource."""

    def test_data_uri_base64(self) -> None:
        """Test base64 data URIs are decoded."""
        data = png_bytes()
        url = "data:image/png;base64," + base64.b64encode(data).decode()

        assert asyncio.run(fetch_resource(url)) == data

    def test_data_uri_plain(self) -> None:
        """Test percent-encoded data URIs are decoded."""
        assert asyncio.run(fetch_resource("data:text/plain,hello%20world")) == b"hello world"

    def test_malformed_data_uri(self) -> None:
        """Test a data URI without a payload raises ValueError."""
        with pytest.raises(ValueError):
            asyncio.run(fetch_resource("data:image/png;base64"))

    def test_relative_path(self, tmp_path) -> None:
        """Test relative paths resolve against base_dir."""
        (tmp_path / "a.bin").write_bytes(b"abc")

        assert asyncio.run(fetch_resource("a.bin", base_dir=tmp_path)) == b"abc"

    def test_file_url(self, tmp_path) -> None:
        """Test file:// URLs."""
        path = tmp_path / "a.bin"
        path.write_bytes(b"abc")

        assert asyncio.run(fetch_resource(path.as_uri())) == b"abc"

    def test_http(self, mock_http: list[str]) -> None:
        """Test remote resources are fetched with httpx."""
        data = asyncio.run(fetch_resource("https://cdn.example.com/art.png"))

        assert Image.open(BytesIO(data)).size == (5, 4)
        assert mock_http == ["https://cdn.example.com/art.png"]


class TestPillowImageLoader:
    """Tests for PillowImageLoader."""

    def test_load_local(self, tmp_path) -> None:
        """Test a local file is decoded to RGBA."""
        Image.new("RGB", (7, 3), (0, 255, 0)).save(tmp_path / "art.png")
        image = asyncio.run(PillowImageLoader(base_dir=tmp_path).load("art.png"))

        assert image.mode == "RGBA"
        assert image.size == (7, 3)

    def test_load_remote(self, mock_http: list[str]) -> None:
        """Test a remote image is fetched and decoded."""
        image = asyncio.run(PillowImageLoader().load("https://cdn.example.com/art.png"))

        assert image.size == (5, 4)

    def test_remote_not_found(self, mock_http: list[str]) -> None:
        """Test an HTTP error becomes an ImageLoadError."""
        with pytest.raises(ImageLoadError):
            asyncio.run(PillowImageLoader().load("https://cdn.example.com/missing.png"))

    def test_empty_url(self) -> None:
        """Test a layer without a URL fails."""
        with pytest.raises(ImageLoadError, match="no URL"):
            asyncio.run(PillowImageLoader().load(""))

    def test_missing_file(self, tmp_path) -> None:
        """Test a missing file fails."""
        with pytest.raises(ImageLoadError):
            asyncio.run(PillowImageLoader(base_dir=tmp_path).load("missing.png"))

    def test_not_an_image(self, tmp_path) -> None:
        """Test undecodable bytes fail and are a layer error."""
        (tmp_path / "notes.png").write_text("hello")

        with pytest.raises(LayerRenderError):
            asyncio.run(PillowImageLoader(base_dir=tmp_path).load("notes.png"))
