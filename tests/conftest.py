import io
import json

import httpx
import pytest
from PIL import Image

from twaforge.config import get_settings


@pytest.fixture(autouse=True)
def _isolated_settings(tmp_path, monkeypatch):
    """Keep ~/.twaforge and TWAFORGE_* variables of the developer out of the tests."""
    home = tmp_path / "home"
    home.mkdir()
    monkeypatch.setenv("HOME", str(home))
    monkeypatch.setenv("USERPROFILE", str(home))
    for name in (
        "TWAFORGE_JDK_PATH",
        "TWAFORGE_ANDROID_SDK_PATH",
        "TWAFORGE_FETCH_TIMEOUT",
        "TWAFORGE_KEYSTORE_PASSWORD",
        "TWAFORGE_KEY_PASSWORD",
        "TWAFORGE_LOG_LEVEL",
    ):
        monkeypatch.delenv(name, raising=False)
    monkeypatch.chdir(tmp_path)
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


def png_bytes(size: int = 512, color=(255, 0, 0, 255)) -> bytes:
    buffer = io.BytesIO()
    Image.new("RGBA", (size, size), color).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeWeb:
    """In-memory web server for httpx.MockTransport, recording every request."""

    def __init__(self):
        self.routes: dict[str, tuple[int, dict[str, str], bytes]] = {}
        self.requests: list[str] = []

    def add_json(self, url: str, data: dict, status: int = 200) -> None:
        body = json.dumps(data).encode("utf-8")
        self.routes[url] = (status, {"content-type": "application/manifest+json"}, body)

    def add_png(self, url: str, size: int = 512, color=(255, 0, 0, 255)) -> None:
        self.routes[url] = (200, {"content-type": "image/png"}, png_bytes(size, color))

    def add(self, url: str, status: int, content_type: str, body: bytes = b"") -> None:
        self.routes[url] = (status, {"content-type": content_type}, body)

    def handler(self, request: httpx.Request) -> httpx.Response:
        url = str(request.url)
        self.requests.append(url)
        if url not in self.routes:
            return httpx.Response(404, text="not found")
        status, headers, body = self.routes[url]
        return httpx.Response(status, headers=headers, content=body)

    def client(self) -> httpx.AsyncClient:
        return httpx.AsyncClient(transport=httpx.MockTransport(self.handler))


@pytest.fixture
def fake_web():
    return FakeWeb()


@pytest.fixture
def make_png():
    return png_bytes
