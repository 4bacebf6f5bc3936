"""Async client for Gemini image generation over the Generative Language REST API."""

from __future__ import annotations

import base64
import binascii
import logging
from dataclasses import replace
from typing import Any, Mapping, Sequence

import httpx

from studio.config.settings import Settings, get_settings, read_api_key
from studio.imggen.payload import ImagePayload

logger = logging.getLogger(__name__)

RESPONSE_MODALITIES = ("IMAGE", "TEXT")


class RemoteCallError(RuntimeError):
    """Raised when the image model fails or returns no image."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        self.status_code = status_code
        super().__init__(message)


class GeminiImageClient:
    """Sends ordered text and image parts to the model and returns the first image."""

    def __init__(
        self,
        settings: Settings | None = None,
        *,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        if settings is None:
            # The key may rotate while the process runs; the rest stays cached.
            settings = replace(get_settings(), gemini_api_key=read_api_key())
        if not settings.gemini_api_key:
            raise RemoteCallError("Gemini API key is not configured.")

        self._settings = settings
        self._client = httpx.AsyncClient(
            base_url=settings.gemini_base_url.rstrip("/"),
            timeout=settings.request_timeout,
            headers={"x-goog-api-key": settings.gemini_api_key},
            transport=transport,
        )

    @property
    def model(self) -> str:
        return self._settings.gemini_image_model

    async def close(self) -> None:
        """Close the underlying HTTP client."""

        await self._client.aclose()

    async def _request_json(
        self,
        method: str,
        endpoint: str,
        *,
        json_body: Mapping[str, Any] | None = None,
    ) -> Any:
        try:
            response = await self._client.request(method, endpoint, json=json_body)
            response.raise_for_status()
            if not response.content:
                return {}
            return response.json()
        except httpx.HTTPStatusError as exc:
            raise RemoteCallError(
                f"Image service returned {exc.response.status_code}: {exc.response.text}",
                status_code=exc.response.status_code,
            ) from exc
        except httpx.HTTPError as exc:
            raise RemoteCallError(f"Image service request failed: {exc}") from exc
        except ValueError as exc:
            raise RemoteCallError("Image service returned a malformed response.") from exc

    def build_request(self, parts: Sequence[Mapping[str, Any]]) -> dict[str, Any]:
        """Return the generateContent body for the given ordered parts."""

        return {
            "contents": [{"parts": list(parts)}],
            "generationConfig": {"responseModalities": list(RESPONSE_MODALITIES)},
        }

    async def generate_image(self, parts: Sequence[Mapping[str, Any]]) -> ImagePayload:
        """Call the model and return the first inline image it produced."""

        logger.info("Requesting image from %s with %d parts", self.model, len(parts))
        response = await self._request_json(
            "POST",
            f"/models/{self.model}:generateContent",
            json_body=self.build_request(parts),
        )
        image = self.first_inline_image(response)
        if image is None:
            logger.warning("Image response has no inline image: %s", _describe(response))
            raise RemoteCallError("API response did not contain an image.")
        return image

    @staticmethod
    def first_inline_image(response: Any) -> ImagePayload | None:
        """Scan the first candidate's parts for inline image data."""

        if not isinstance(response, Mapping):
            return None
        candidates = response.get("candidates")
        if not isinstance(candidates, list) or not candidates:
            return None
        first = candidates[0]
        if not isinstance(first, Mapping):
            return None
        content = first.get("content")
        if not isinstance(content, Mapping):
            return None
        parts = content.get("parts")
        if not isinstance(parts, list):
            return None
        for part in parts:
            if not isinstance(part, Mapping):
                continue
            inline = part.get("inlineData") or part.get("inline_data")
            if not isinstance(inline, Mapping) or not inline.get("data"):
                continue
            mime_type = inline.get("mimeType") or inline.get("mime_type") or "image/png"
            try:
                data = base64.b64decode(inline["data"])
            except (ValueError, binascii.Error) as exc:
                raise RemoteCallError("Image data in the response is not valid base64.") from exc
            return ImagePayload(data=data, mime_type=mime_type)
        return None

    async def ping(self) -> bool:
        """Return ``True`` when the service responds to a model listing call."""

        payload = await self._request_json("GET", "/models")
        return isinstance(payload, Mapping) and bool(payload.get("models"))


def _describe(response: Any) -> str:
    if not isinstance(response, Mapping):
        return f"unexpected {type(response).__name__} body"
    candidates = response.get("candidates")
    if not isinstance(candidates, list) or not candidates:
        return "no candidates"
    first = candidates[0]
    if not isinstance(first, Mapping):
        return "malformed candidate"
    reason = first.get("finishReason", "unknown")
    content = first.get("content")
    parts = content.get("parts") if isinstance(content, Mapping) else None
    texts = [
        str(part["text"])
        for part in parts or []
        if isinstance(part, Mapping) and part.get("text")
    ]
    return f"finishReason={reason} text={' '.join(texts)[:200]!r}"
