"""Per-user studio state and the generate/upscale/recolor workflow."""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass
from enum import Enum
from typing import Any, Callable, Mapping, Sequence

from studio.imggen.generator_client import GeminiImageClient, RemoteCallError
from studio.imggen.payload import ImagePayload
from studio.imggen.prompt_builder import (
    ASPECT_RATIOS,
    DEFAULT_ASPECT_RATIO,
    ENHANCER_STYLES,
    PromptBuilder,
    StylePromptContext,
    normalise_enhancer,
    single_image_parts,
    style_transfer_parts,
)
from studio.imgproc.color_extract import ColorExtractor, DecodeError
from studio.metrics.prometheus_exporter import palette_extractions_total, remote_calls_total

logger = logging.getLogger(__name__)

ClientFactory = Callable[[], GeminiImageClient]


class ImageKind(str, Enum):
    """Which of the two user-supplied images an action targets."""

    CONTENT = "content"
    STYLE = "style"


@dataclass(slots=True)
class StudioOptions:
    """User-adjustable generation options with their initial values."""

    strength: int = 50
    enhancer: str = ""
    aspect_ratio: str = DEFAULT_ASPECT_RATIO
    color_intensity: int = 50


class StudioSession:
    """Holds the images, palette and busy flag for one user."""

    def __init__(
        self,
        client_factory: ClientFactory | None = None,
        *,
        extractor: ColorExtractor | None = None,
        prompt_builder: PromptBuilder | None = None,
    ) -> None:
        self._client_factory = client_factory or GeminiImageClient
        self._extractor = extractor or ColorExtractor()
        self._prompt_builder = prompt_builder or PromptBuilder()

        self.content: ImagePayload | None = None
        self.style: ImagePayload | None = None
        self.result: ImagePayload | None = None
        self.palette: list[str] | None = None
        self.options = StudioOptions()

        self.busy = False
        self.loader_message = ""
        self.placeholder_visible = True
        self.last_error: str | None = None

    # -- derived UI state -------------------------------------------------

    @property
    def can_generate(self) -> bool:
        return self.content is not None and self.style is not None and not self.busy

    @property
    def can_upscale(self) -> bool:
        return self.result is not None and not self.busy

    @property
    def can_save(self) -> bool:
        return self.result is not None and not self.busy

    @property
    def can_apply_palette(self) -> bool:
        return self.result is not None and bool(self.palette) and not self.busy

    @property
    def color_section_visible(self) -> bool:
        return self.result is not None and bool(self.palette)

    # -- image management -------------------------------------------------

    def set_image(self, kind: ImageKind, payload: ImagePayload) -> str | None:
        """
        Store an uploaded image.

        A new style image replaces the cached palette with one extracted from
        it. Returns a user-facing warning when extraction fails; the style
        image is kept in that case and the palette stays unset.
        """

        self.last_error = None
        if kind is ImageKind.CONTENT:
            self.content = payload
            return None

        self.style = payload
        self.palette = None
        try:
            self.palette = self._extractor.palette_for(payload)
        except DecodeError as exc:
            palette_extractions_total.labels("error").inc()
            logger.warning("Palette extraction failed: %s", exc)
            self.last_error = "Could not extract colors from style image."
            return self.last_error

        palette_extractions_total.labels("ok").inc()
        return None

    def clear_image(self, kind: ImageKind) -> None:
        """Drop one input image; the result is no longer valid either."""

        if kind is ImageKind.CONTENT:
            self.content = None
        else:
            self.style = None
            self.palette = None

        self.result = None
        self.placeholder_visible = True

    def clear_all(self) -> None:
        self.clear_image(ImageKind.CONTENT)
        self.clear_image(ImageKind.STYLE)
        self.options = StudioOptions()
        self.last_error = None

    def update_options(
        self,
        *,
        strength: int | None = None,
        enhancer: str | None = None,
        aspect_ratio: str | None = None,
        color_intensity: int | None = None,
    ) -> StudioOptions:
        """Apply the given option changes, leaving the rest untouched."""

        if strength is not None:
            self.options.strength = _percentage("strength", strength)
        if color_intensity is not None:
            self.options.color_intensity = _percentage("color_intensity", color_intensity)
        if enhancer is not None:
            if enhancer and enhancer not in ENHANCER_STYLES:
                raise ValueError(f"Unknown enhancer style: {enhancer}")
            self.options.enhancer = normalise_enhancer(enhancer)
        if aspect_ratio is not None:
            if aspect_ratio not in ASPECT_RATIOS:
                raise ValueError(f"Unsupported aspect ratio: {aspect_ratio}")
            self.options.aspect_ratio = aspect_ratio
        return self.options

    # -- remote operations ------------------------------------------------

    async def generate(self) -> ImagePayload | None:
        """Run the style transfer. Returns ``None`` when the action is unavailable."""

        if not self.can_generate:
            return None

        context = StylePromptContext(
            strength=self.options.strength,
            enhancer=self.options.enhancer,
            aspect_ratio=self.options.aspect_ratio,
        )
        prompt = self._prompt_builder.build_style_transfer(context)
        parts = style_transfer_parts(self.content, self.style, prompt)
        self._begin("Generating...")
        self.result = None
        return await self._run("generate", parts)

    async def upscale(self) -> ImagePayload | None:
        if not self.can_upscale:
            return None

        parts = single_image_parts(self.result, self._prompt_builder.build_upscale())
        self._begin("Upscaling...")
        return await self._run("upscale", parts)

    async def apply_palette(self) -> ImagePayload | None:
        """Recolor the current result with the style image palette."""

        if not self.can_apply_palette:
            return None

        prompt = self._prompt_builder.build_recolor(self.palette, self.options.color_intensity)
        parts = single_image_parts(self.result, prompt)
        self._begin("Applying Colors...")
        return await self._run("recolor", parts)

    def _begin(self, message: str) -> None:
        self.busy = True
        self.loader_message = message
        self.last_error = None
        self.placeholder_visible = False

    async def _run(self, operation: str, parts: Sequence[Mapping[str, Any]]) -> ImagePayload:
        try:
            image = await self._call_model(parts)
        except RemoteCallError as exc:
            remote_calls_total.labels(operation, "error").inc()
            logger.error("Image model %s failed: %s", operation, exc)
            self.last_error = str(exc)
            # Without a previous result there is nothing to fall back to.
            self.placeholder_visible = self.result is None
            raise
        finally:
            self.busy = False
            self.loader_message = ""

        remote_calls_total.labels(operation, "ok").inc()
        self.result = image
        self.placeholder_visible = False
        return image

    async def _call_model(self, parts: Sequence[Mapping[str, Any]]) -> ImagePayload:
        client = self._client_factory()
        try:
            return await client.generate_image(parts)
        finally:
            await client.close()

    # -- output -----------------------------------------------------------

    def download(self, timestamp_ms: int | None = None) -> tuple[str, ImagePayload] | None:
        if not self.can_save:
            return None
        return self.result.download_filename(timestamp_ms), self.result

    def snapshot(self) -> dict[str, Any]:
        """Return a serialisable view of the state for the HTTP layer."""

        return {
            "has_content": self.content is not None,
            "has_style": self.style is not None,
            "result": None
            if self.result is None
            else {"mime_type": self.result.mime_type, "size": len(self.result.data)},
            "palette": list(self.palette) if self.palette is not None else None,
            "options": asdict(self.options),
            "busy": self.busy,
            "loader_message": self.loader_message,
            "placeholder_visible": self.placeholder_visible,
            "color_section_visible": self.color_section_visible,
            "actions": {
                "generate": self.can_generate,
                "upscale": self.can_upscale,
                "save": self.can_save,
                "apply_palette": self.can_apply_palette,
            },
            "last_error": self.last_error,
        }


def _percentage(name: str, value: int) -> int:
    if not 0 <= value <= 100:
        raise ValueError(f"{name} must be between 0 and 100")
    return value
