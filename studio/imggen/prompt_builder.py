"""Prompt construction helpers for the image generation step."""

from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Iterable, Sequence

from studio.imggen.payload import ImagePayload

ENHANCER_STYLES: tuple[str, ...] = (
    "None",
    "Ghibli",
    "Ink Art",
    "Romantic Ink Outline",
    "Warm Watercolor Portrait",
    "Dreamy Wisteria Romance",
    "Golden Hour Embrace",
    "Vibrant Ink Portrait",
    "Sketchbook Romance",
    "Celestial Dreamscape",
    "Hyper realistic fantasy",
    "Cyberpunk",
    "Steampunk",
    "Biomechanical",
    "Solarpunk",
    "Synthwave",
    "Gothic Noir",
    "Cosmic Horror",
    "Dieselpunk",
    "Arcane Punk",
    "Surrealist Dreamscape",
)

ASPECT_RATIOS: tuple[str, ...] = ("1:1", "9:16", "16:9", "3:4", "4:3")
DEFAULT_ASPECT_RATIO = "9:16"

UPSCALE_PROMPT = (
    "Please upscale this image. Increase its resolution and enhance the details, "
    "while preserving the existing artistic style."
)


def normalise_enhancer(value: str | None) -> str:
    """Map the "None" option (or nothing) to an empty enhancer."""

    if not value or value == "None":
        return ""
    return value


def format_palette(palette: Iterable[str]) -> str:
    """Join palette colours into the human-readable list used in prompts."""

    return ", ".join(palette)


def strength_instruction(strength: int) -> str:
    """Describe how strongly the style should dominate for a 0-100 strength."""

    if strength <= 25:
        return "The style should be a very subtle influence, with the content image remaining dominant."
    if strength <= 50:
        return "Create a balanced blend between the content and the style."
    if strength <= 75:
        return "The style should be dominant, significantly transforming the content image."
    return (
        "Completely reimagine the content image in the provided style, "
        "making the style as strong as possible."
    )


@dataclass(slots=True)
class StylePromptContext:
    """User-selected options that shape the style transfer prompt."""

    strength: int = 50
    enhancer: str = ""
    aspect_ratio: str = DEFAULT_ASPECT_RATIO


class PromptBuilder:
    """Builds textual prompts for the image model."""

    def build_style_transfer(self, context: StylePromptContext) -> str:
        """Return the instruction sent alongside the content and style images."""

        strength_text = strength_instruction(context.strength)
        enhancer = normalise_enhancer(context.enhancer)

        if enhancer == "Ghibli":
            prompt = (
                "Your task is a specialized artistic transformation. You must redraw the content image "
                "in the iconic and beloved Ghibli art style. The final image should evoke a deep sense "
                "of nostalgia, wonder, and hand-painted charm.\n\n"
                "Key characteristics to replicate:\n"
                "- **Lush, Painterly Backgrounds:** Create beautiful, detailed backgrounds inspired by "
                "watercolor paintings. Emphasize natural elements like fluffy, voluminous clouds, rich "
                "green foliage, and sparkling water.\n"
                "- **Soft, Nostalgic Lighting:** The scene should be illuminated with a warm, gentle "
                "light. Create a soft, almost dreamlike atmosphere.\n"
                "- **Clean & Expressive Characters:** Characters from the content image should be "
                "rendered with clean, distinct outlines and simple, soft shading. Their features should "
                "be expressive and charming.\n"
                "- **Vibrant & Gentle Colors:** Use a rich and vibrant color palette that feels natural "
                "and harmonious, avoiding harsh or overly saturated tones.\n\n"
                "The provided style image should heavily influence the overall color and texture, while "
                f"the content image defines the subject and composition. {strength_text}"
            )
        else:
            prompt = (
                "Your task is to perform a radical and dramatic artistic style transfer. You must "
                "completely transform the content image into a new piece of art that looks like a "
                "painted ink art piece, created in the style of the style image. Heavily prioritize the "
                "style image's aesthetic above all else, making it the dominant force in the final "
                "output. Replicate its textured brushstrokes, its charcoal and watercolor feel, and its "
                "subtle imperfections. The content image should only serve as a very loose guide for "
                "the subject matter and composition; do not preserve its original photographic quality. "
                "Add dramatic, stylized details like bold border lines, artistically rendered hair, and "
                "rich textures or abstract designs in the background to create a complete, stylized "
                f"scene. {strength_text}"
            )
            if enhancer:
                prompt += f" Finally, infuse the result with a strong {enhancer} aesthetic."

        prompt += f" The final image must have a {context.aspect_ratio} aspect ratio."
        return prompt

    def build_upscale(self) -> str:
        return UPSCALE_PROMPT

    def build_recolor(self, palette: Sequence[str], intensity: int) -> str:
        """Return the instruction asking the model to apply ``palette`` at ``intensity`` percent."""

        return (
            f"Adjust the color scheme of this image. Apply the following color palette: "
            f"[{format_palette(palette)}]. The intensity of this adjustment should be {intensity}%. "
            "A lower intensity means a subtle tonal shift, while a higher intensity means the image's "
            "colors should closely match the provided palette. Do not change the composition, "
            "structure, or underlying style of the image; only adjust the colors to reflect the new "
            "palette."
        )


def text_part(text: str) -> dict[str, Any]:
    return {"text": text}


def image_part(image: ImagePayload) -> dict[str, Any]:
    return {"inlineData": {"data": image.to_base64(), "mimeType": image.mime_type}}


def style_transfer_parts(
    content: ImagePayload,
    style: ImagePayload,
    prompt: str,
) -> list[dict[str, Any]]:
    """Order the content image, style image and instruction as the model expects."""

    return [
        text_part("This is the content image:"),
        image_part(content),
        text_part("This is the style image:"),
        image_part(style),
        text_part(prompt),
    ]


def single_image_parts(image: ImagePayload, prompt: str) -> list[dict[str, Any]]:
    return [image_part(image), text_part(prompt)]
