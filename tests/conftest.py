import io

import httpx
import pytest
from PIL import Image

from app.config import Settings
from app.errors import ProcessingError
from app.transcode import ImageInfo


def make_png(width: int, height: int, color=(200, 40, 40)) -> bytes:
    buf = io.BytesIO()
    Image.new("RGB", (width, height), color).save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png_500():
    """A 500x250 PNG source image."""
    return make_png(500, 250)


@pytest.fixture
def settings(tmp_path):
    return Settings(
        _env_file=None,
        cache_dir=str(tmp_path / "cache"),
        allow_domains="",
        base_url="",
    )


class FakeTranscoder:
    """Records transcode calls instead of touching pixels."""

    content_type = "image/webp"

    def __init__(self, native_width: int = 500, fail: bool = False) -> None:
        self.native_width = native_width
        self.fail = fail
        self.calls = []

    def inspect(self, data: bytes) -> ImageInfo:
        return ImageInfo(width=self.native_width, height=100, format="PNG")

    def transcode(self, data: bytes, width: int, quality: int) -> bytes:
        self.calls.append((width, quality))
        if self.fail:
            raise ProcessingError("cannot resize image")
        return b"webp:" + data + f":{width}:{quality}".encode()


class Upstream:
    """httpx MockTransport handler that counts requests."""

    def __init__(self, content: bytes = b"source", status: int = 200, headers=None, error: Exception | None = None):
        self.content = content
        self.status = status
        self.headers = headers or {"Cache-Control": "max-age=3600", "Content-Type": "image/png"}
        self.error = error
        self.requests = []

    def __call__(self, request: httpx.Request) -> httpx.Response:
        self.requests.append(request)
        if self.error is not None:
            raise self.error
        return httpx.Response(self.status, content=self.content, headers=self.headers)

    @property
    def transport(self) -> httpx.MockTransport:
        return httpx.MockTransport(self)


@pytest.fixture
def upstream():
    return Upstream()


@pytest.fixture
def transcoder():
    return FakeTranscoder()


@pytest.fixture
def anyio_backend():
    return "asyncio"
