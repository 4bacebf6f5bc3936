"""Dominant colour extraction utilities."""

from __future__ import annotations

import logging
import math
from dataclasses import dataclass
from io import BytesIO
from typing import Iterable

from PIL import Image, UnidentifiedImageError

from studio.imggen.payload import ImagePayload

logger = logging.getLogger(__name__)

BUCKET_SIZE = 32
ALPHA_THRESHOLD = 125


class DecodeError(ValueError):
    """Raised when an image payload cannot be rasterised into pixels."""


@dataclass(frozen=True, slots=True)
class PixelBuffer:
    """Decoded RGBA pixels, row-major, four bytes per pixel."""

    width: int
    height: int
    data: bytes

    def __post_init__(self) -> None:
        if self.width < 1 or self.height < 1:
            raise ValueError("Pixel buffer must be at least 1x1.")
        if len(self.data) != self.width * self.height * 4:
            raise ValueError(
                f"Expected {self.width * self.height * 4} bytes for a "
                f"{self.width}x{self.height} RGBA buffer, got {len(self.data)}.",
            )

    @classmethod
    def from_pixels(
        cls,
        width: int,
        height: int,
        pixels: Iterable[tuple[int, int, int, int]],
    ) -> PixelBuffer:
        """Build a buffer from ``(r, g, b, a)`` tuples in row-major order."""

        return cls(width=width, height=height, data=bytes(c for pixel in pixels for c in pixel))

    @classmethod
    def solid(cls, width: int, height: int, rgba: tuple[int, int, int, int]) -> PixelBuffer:
        return cls(width=width, height=height, data=bytes(rgba) * (width * height))


def _round_half_up(value: float) -> int:
    # Matches Math.round: 0.5 rounds toward +inf rather than to even.
    return math.floor(value + 0.5)


def _to_hex(channels: Iterable[int]) -> str:
    return "#" + "".join(f"{min(255, max(0, c)):02x}" for c in channels)


def sample_count(pixels: PixelBuffer, quality: int = 10) -> int:
    """Return how many pixels a scan with the given stride visits."""

    if quality < 1:
        raise ValueError("quality must be >= 1")
    pixel_total = pixels.width * pixels.height
    return math.ceil(pixel_total / quality)


def extract_dominant_colors(
    pixels: PixelBuffer,
    color_count: int = 5,
    quality: int = 10,
) -> list[str]:
    """
    Return up to ``color_count`` hex colours, most represented first.

    Every ``quality``-th pixel is sampled; pixels with alpha below 125 are
    ignored. Samples are grouped into 32-wide RGB buckets and each bucket is
    reported as the mean of its members. Buckets with equal counts keep the
    order in which they were first seen.
    """

    if color_count < 1:
        raise ValueError("color_count must be >= 1")
    if quality < 1:
        raise ValueError("quality must be >= 1")

    data = pixels.data
    buckets: dict[tuple[int, int, int], list[int]] = {}
    for offset in range(0, len(data), 4 * quality):
        r, g, b, a = data[offset], data[offset + 1], data[offset + 2], data[offset + 3]
        if a < ALPHA_THRESHOLD:
            continue

        key = (
            _round_half_up(r / BUCKET_SIZE),
            _round_half_up(g / BUCKET_SIZE),
            _round_half_up(b / BUCKET_SIZE),
        )
        bucket = buckets.get(key)
        if bucket is None:
            bucket = buckets[key] = [0, 0, 0, 0]
        bucket[0] += r
        bucket[1] += g
        bucket[2] += b
        bucket[3] += 1

    # sorted() is stable, so ties stay in first-seen order.
    ranked = sorted(buckets.values(), key=lambda bucket: bucket[3], reverse=True)
    return [
        _to_hex(_round_half_up(total / count) for total in (r_sum, g_sum, b_sum))
        for r_sum, g_sum, b_sum, count in ranked[:color_count]
    ]


def decode_pixels(payload: ImagePayload) -> PixelBuffer:
    """Rasterise an encoded image into an RGBA pixel buffer."""

    try:
        with Image.open(BytesIO(payload.data)) as img:
            rgba = img.convert("RGBA")
            return PixelBuffer(width=rgba.width, height=rgba.height, data=rgba.tobytes())
    except (UnidentifiedImageError, OSError, Image.DecompressionBombError) as exc:
        raise DecodeError(f"Could not decode {payload.mime_type} image.") from exc


class ColorExtractor:
    """Bucket-histogram colour detector with fixed defaults."""

    def __init__(self, color_count: int = 5, quality: int = 10) -> None:
        self.color_count = color_count
        self.quality = quality

    def extract_palette(self, pixels: PixelBuffer) -> list[str]:
        """Return hex codes for the most common colour buckets."""

        return extract_dominant_colors(pixels, self.color_count, self.quality)

    def palette_for(self, payload: ImagePayload) -> list[str]:
        """Decode ``payload`` and extract its palette."""

        pixels = decode_pixels(payload)
        palette = self.extract_palette(pixels)
        logger.debug("Extracted %d colours from %dx%d image", len(palette), pixels.width, pixels.height)
        return palette
