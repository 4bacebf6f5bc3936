"""Binary image payloads exchanged with uploads and the image model."""

from __future__ import annotations

import base64
import binascii
import time
from dataclasses import dataclass


class InputError(ValueError):
    """Raised when an uploaded file cannot be accepted as an image."""


@dataclass(frozen=True, slots=True)
class ImagePayload:
    """Encoded image bytes together with their MIME type."""

    data: bytes
    mime_type: str

    @classmethod
    def from_upload(
        cls,
        data: bytes,
        content_type: str | None,
        *,
        max_bytes: int | None = None,
    ) -> ImagePayload:
        """Validate an uploaded file and wrap it as a payload."""

        if not content_type or not content_type.startswith("image/"):
            raise InputError("Please select a valid image file.")
        if not data:
            raise InputError("The uploaded image is empty.")
        if max_bytes is not None and len(data) > max_bytes:
            raise InputError(f"The uploaded image exceeds the {max_bytes} byte limit.")
        return cls(data=data, mime_type=content_type)

    @classmethod
    def from_base64(cls, data: str, mime_type: str) -> ImagePayload:
        try:
            raw = base64.b64decode(data, validate=True)
        except (ValueError, binascii.Error) as exc:
            raise InputError("Image data is not valid base64.") from exc
        return cls(data=raw, mime_type=mime_type)

    def to_base64(self) -> str:
        return base64.b64encode(self.data).decode("ascii")

    @property
    def data_url(self) -> str:
        return f"data:{self.mime_type};base64,{self.to_base64()}"

    @property
    def extension(self) -> str:
        """File extension derived from the MIME subtype, e.g. ``svg`` for ``image/svg+xml``."""

        _, _, subtype = self.mime_type.partition("/")
        return subtype.split("+", 1)[0] or "png"

    def download_filename(self, timestamp_ms: int | None = None) -> str:
        if timestamp_ms is None:
            timestamp_ms = int(time.time() * 1000)
        return f"styled-image-{timestamp_ms}.{self.extension}"
