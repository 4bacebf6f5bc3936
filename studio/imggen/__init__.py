"""Prompt building and image model access."""

from .generator_client import GeminiImageClient, RemoteCallError
from .payload import ImagePayload, InputError
from .prompt_builder import PromptBuilder, StylePromptContext

__all__ = [
    "GeminiImageClient",
    "ImagePayload",
    "InputError",
    "PromptBuilder",
    "RemoteCallError",
    "StylePromptContext",
]
