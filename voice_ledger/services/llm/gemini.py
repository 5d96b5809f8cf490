"""
Gemini Completion Provider

DESIGN DECISION: Gemini is used for structured extraction because:
1. It handles mixed Arabic/English transcripts well
2. Low temperature gives stable JSON output
3. The same SDK serves the audio transcription fallback

Rate-limit responses are retried with exponential backoff. Anything else
fails immediately and the caller falls back to pattern extraction.
"""

from typing import Optional

import google.generativeai as genai
import structlog
from google.api_core import exceptions as google_exceptions
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from voice_ledger.config import GeminiSettings, get_settings
from voice_ledger.services.llm.interface import (
    CompletionError,
    CompletionProvider,
    RateLimitError,
)


logger = structlog.get_logger(__name__)


class GeminiCompletionProvider(CompletionProvider):
    """Text completions from a Gemini model."""

    name = "gemini"

    def __init__(self, settings: Optional[GeminiSettings] = None):
        self._settings = settings or get_settings().gemini
        self._configure_genai()

    def _configure_genai(self):
        """Configure Google Generative AI."""
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.model_name,
            generation_config={
                "temperature": self._settings.temperature,
                "max_output_tokens": self._settings.max_tokens,
            }
        )

    @retry(
        retry=retry_if_exception_type(RateLimitError),
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
    async def complete(self, prompt: str) -> str:
        try:
            response = await self._model.generate_content_async(prompt)
            return response.text.strip()
        except google_exceptions.ResourceExhausted as e:
            logger.warning("gemini_rate_limited", error=str(e))
            raise RateLimitError(f"Gemini rate limit: {e}")
        except ValueError as e:
            # response.text raises ValueError when the candidate was blocked
            raise CompletionError(f"Gemini returned no text: {e}")
        except google_exceptions.GoogleAPIError as e:
            raise CompletionError(f"Gemini request failed: {e}")
