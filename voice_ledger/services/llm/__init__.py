"""LLM completion providers."""

from voice_ledger.services.llm.interface import (
    CompletionError,
    CompletionProvider,
    RateLimitError,
)
from voice_ledger.services.llm.gemini import GeminiCompletionProvider

__all__ = [
    "CompletionError",
    "CompletionProvider",
    "GeminiCompletionProvider",
    "RateLimitError",
]
