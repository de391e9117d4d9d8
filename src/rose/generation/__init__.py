"""Reply generation: prompts, model client, and fallback handling."""

from .generator import GenerationConfig, ResponseGenerator, build_turns
from .llm_client import GroqTextGenerator, TextGenerator
from .prompts import (
    GUEST_FALLBACK,
    PRIVILEGED_FALLBACK,
    TRANSCRIPT_MARKER,
    build_system_prompt,
    fallback_reply,
)

__all__ = [
    "GUEST_FALLBACK",
    "GenerationConfig",
    "GroqTextGenerator",
    "PRIVILEGED_FALLBACK",
    "ResponseGenerator",
    "TRANSCRIPT_MARKER",
    "TextGenerator",
    "build_system_prompt",
    "build_turns",
    "fallback_reply",
]
