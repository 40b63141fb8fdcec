"""AI field extraction."""

from .cache import ResponseCache
from .client import CompletionClient, OpenAICompletionClient, build_completion_client
from .extractor import AIExtractor, fallback_extraction, normalize_ai_payload

__all__ = [
    "AIExtractor",
    "CompletionClient",
    "OpenAICompletionClient",
    "ResponseCache",
    "build_completion_client",
    "fallback_extraction",
    "normalize_ai_payload",
]
