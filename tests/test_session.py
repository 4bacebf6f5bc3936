"""Tests for the studio session workflow and busy-flag handling."""

from __future__ import annotations

import asyncio

import httpx
import pytest

from studio.config.settings import Settings
from studio.imggen.generator_client import GeminiImageClient, RemoteCallError
from studio.imggen.payload import ImagePayload
from studio.services.session import ImageKind, StudioOptions, StudioSession


class BlockingImageClient:
    """Fake client whose call stays in flight until ``release`` is set."""

    def __init__(self) -> None:
        self.started = asyncio.Event()
        self.release = asyncio.Event()
        self.calls: list = []

    async def generate_image(self, parts) -> ImagePayload:
        self.calls.append(parts)
        self.started.set()
        await self.release.wait()
        return ImagePayload(b"slow", "image/png")

    async def close(self) -> None:
        return None


@pytest.fixture
def red_style(red_png: bytes) -> ImagePayload:
    return ImagePayload(red_png, "image/png")


@pytest.fixture
def content() -> ImagePayload:
    return ImagePayload(b"content-bytes", "image/jpeg")


def test_style_upload_extracts_palette(red_style: ImagePayload) -> None:
    session = StudioSession()

    warning = session.set_image(ImageKind.STYLE, red_style)

    assert warning is None
    assert session.palette == ["#ff0000"]
    assert not session.color_section_visible


def test_undecodable_style_keeps_image_without_palette() -> None:
    session = StudioSession()
    broken = ImagePayload(b"not really a png", "image/png")

    warning = session.set_image(ImageKind.STYLE, broken)

    assert warning == "Could not extract colors from style image."
    assert session.style is broken
    assert session.palette is None


def test_replacing_style_drops_stale_palette(red_style: ImagePayload) -> None:
    session = StudioSession()
    session.set_image(ImageKind.STYLE, red_style)

    session.set_image(ImageKind.STYLE, ImagePayload(b"garbage", "image/png"))

    assert session.palette is None


@pytest.mark.asyncio
async def test_generate_stores_result(fake_client, content, red_style) -> None:
    session = StudioSession(lambda: fake_client)
    session.set_image(ImageKind.CONTENT, content)
    session.set_image(ImageKind.STYLE, red_style)
    session.update_options(strength=10, enhancer="Synthwave", aspect_ratio="1:1")

    image = await session.generate()

    assert image == fake_client.result
    assert session.result == fake_client.result
    assert not session.busy
    assert not session.placeholder_visible
    assert session.color_section_visible
    assert session.can_apply_palette
    parts = fake_client.calls[0]
    assert [next(iter(part)) for part in parts] == ["text", "inlineData", "text", "inlineData", "text"]
    assert parts[1]["inlineData"]["mimeType"] == "image/jpeg"
    assert "Synthwave aesthetic" in parts[4]["text"]
    assert "1:1 aspect ratio" in parts[4]["text"]
    assert fake_client.closed == 1


@pytest.mark.asyncio
async def test_generate_without_both_images_is_noop(fake_client, content) -> None:
    session = StudioSession(lambda: fake_client)
    session.set_image(ImageKind.CONTENT, content)

    assert await session.generate() is None
    assert fake_client.calls == []


@pytest.mark.asyncio
async def test_busy_session_ignores_new_operations(content, red_style) -> None:
    client = BlockingImageClient()
    session = StudioSession(lambda: client)
    session.set_image(ImageKind.CONTENT, content)
    session.set_image(ImageKind.STYLE, red_style)

    pending = asyncio.create_task(session.generate())
    await client.started.wait()

    assert session.busy
    assert session.loader_message == "Generating..."
    assert not session.can_generate
    assert await session.generate() is None
    assert await session.upscale() is None

    client.release.set()
    await pending

    assert not session.busy
    assert len(client.calls) == 1


@pytest.mark.asyncio
async def test_failed_generate_shows_placeholder(failing_client, content, red_style) -> None:
    session = StudioSession(lambda: failing_client)
    session.set_image(ImageKind.CONTENT, content)
    session.set_image(ImageKind.STYLE, red_style)

    with pytest.raises(RemoteCallError):
        await session.generate()

    assert not session.busy
    assert session.result is None
    assert session.placeholder_visible
    assert session.last_error == "API response did not contain an image."
    assert failing_client.closed == 1


@pytest.mark.asyncio
async def test_missing_credentials_release_busy_flag(content, red_style) -> None:
    def factory():
        raise RemoteCallError("Gemini API key is not configured.")

    session = StudioSession(factory)
    session.set_image(ImageKind.CONTENT, content)
    session.set_image(ImageKind.STYLE, red_style)

    with pytest.raises(RemoteCallError):
        await session.generate()

    assert not session.busy
    assert session.can_generate


@pytest.mark.asyncio
async def test_failed_upscale_keeps_previous_result(failing_client) -> None:
    session = StudioSession(lambda: failing_client)
    previous = ImagePayload(b"previous", "image/png")
    session.result = previous
    session.placeholder_visible = False

    with pytest.raises(RemoteCallError):
        await session.upscale()

    assert session.result is previous
    assert not session.placeholder_visible
    assert not session.busy


@pytest.mark.asyncio
async def test_apply_palette_sends_palette_and_intensity(fake_client, red_style) -> None:
    session = StudioSession(lambda: fake_client)
    session.set_image(ImageKind.STYLE, red_style)
    session.result = ImagePayload(b"previous", "image/png")
    session.update_options(color_intensity=70)

    await session.apply_palette()

    prompt = fake_client.calls[0][1]["text"]
    assert "[#ff0000]" in prompt
    assert "should be 70%" in prompt
    assert session.result == fake_client.result


@pytest.mark.asyncio
async def test_apply_palette_requires_palette(fake_client) -> None:
    session = StudioSession(lambda: fake_client)
    session.result = ImagePayload(b"previous", "image/png")

    assert await session.apply_palette() is None
    assert fake_client.calls == []


@pytest.mark.asyncio
async def test_clearing_style_hides_colour_section(fake_client, content, red_style) -> None:
    session = StudioSession(lambda: fake_client)
    session.set_image(ImageKind.CONTENT, content)
    session.set_image(ImageKind.STYLE, red_style)
    await session.generate()
    assert session.color_section_visible

    session.clear_image(ImageKind.STYLE)

    assert session.palette is None
    assert session.result is None
    assert not session.color_section_visible
    assert session.placeholder_visible


def test_clear_all_resets_options(content, red_style) -> None:
    session = StudioSession()
    session.set_image(ImageKind.CONTENT, content)
    session.set_image(ImageKind.STYLE, red_style)
    session.update_options(strength=90, enhancer="Ghibli", aspect_ratio="4:3", color_intensity=5)

    session.clear_all()

    assert session.content is None
    assert session.style is None
    assert session.options == StudioOptions()


@pytest.mark.parametrize(
    "changes",
    [{"strength": 101}, {"color_intensity": -1}, {"enhancer": "Vaporwave"}, {"aspect_ratio": "2:1"}],
)
def test_update_options_validates(changes: dict) -> None:
    with pytest.raises(ValueError):
        StudioSession().update_options(**changes)


def test_download_names_file_from_result() -> None:
    session = StudioSession()
    assert session.download() is None

    session.result = ImagePayload(b"x", "image/webp")

    assert session.download(42) == ("styled-image-42.webp", session.result)


def test_download_unavailable_while_busy() -> None:
    session = StudioSession()
    session.result = ImagePayload(b"x", "image/png")
    session.busy = True

    assert session.download(42) is None

    session.busy = False
    assert session.download(42) == ("styled-image-42.png", session.result)


@pytest.mark.asyncio
async def test_malformed_model_response_is_reported(content, red_style) -> None:
    settings = Settings(gemini_api_key="secret", gemini_base_url="https://gemini.test/v1beta")

    def handler(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, json={"candidates": [None]})

    session = StudioSession(
        lambda: GeminiImageClient(settings, transport=httpx.MockTransport(handler))
    )
    session.set_image(ImageKind.CONTENT, content)
    session.set_image(ImageKind.STYLE, red_style)

    with pytest.raises(RemoteCallError):
        await session.generate()

    assert not session.busy
    assert session.placeholder_visible
    assert session.last_error == "API response did not contain an image."
