"""Shared fixtures for the studio test-suite."""

from __future__ import annotations

from io import BytesIO
from typing import Any, Callable, Mapping, Sequence

import pytest
from PIL import Image

from studio.config.settings import get_settings
from studio.imggen.generator_client import RemoteCallError
from studio.imggen.payload import ImagePayload


def png_bytes(color: tuple[int, int, int, int], size: tuple[int, int] = (100, 100)) -> bytes:
    buffer = BytesIO()
    Image.new("RGBA", size, color).save(buffer, format="PNG")
    return buffer.getvalue()


class FakeImageClient:
    """Stands in for ``GeminiImageClient`` and records what it was sent."""

    def __init__(
        self,
        result: ImagePayload | None = None,
        error: Exception | None = None,
    ) -> None:
        self.result = result or ImagePayload(data=b"generated", mime_type="image/png")
        self.error = error
        self.calls: list[Sequence[Mapping[str, Any]]] = []
        self.closed = 0

    async def generate_image(self, parts: Sequence[Mapping[str, Any]]) -> ImagePayload:
        self.calls.append(parts)
        if self.error is not None:
            raise self.error
        return self.result

    async def close(self) -> None:
        self.closed += 1


@pytest.fixture(autouse=True)
def _setup_env(monkeypatch: pytest.MonkeyPatch) -> None:
    monkeypatch.setenv("API_KEY", "test-key")
    monkeypatch.setenv("GEMINI_BASE_URL", "https://gemini.test/v1beta")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def make_png() -> Callable[..., bytes]:
    return png_bytes


@pytest.fixture
def red_png() -> bytes:
    return png_bytes((255, 0, 0, 255))


@pytest.fixture
def fake_client() -> FakeImageClient:
    return FakeImageClient()


@pytest.fixture
def failing_client() -> FakeImageClient:
    return FakeImageClient(error=RemoteCallError("API response did not contain an image."))
