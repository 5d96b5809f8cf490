"""
Gemini Audio Transcription Provider

Fallback transcriber. Gemini accepts inline audio and is asked for a
verbatim transcript, so it keeps working when Speech-to-Text credentials
are missing or the service is down.
"""

from typing import Optional

import google.generativeai as genai
import structlog

from voice_ledger.config import GeminiSettings, get_settings
from voice_ledger.services.transcription.interface import (
    TranscriptionProvider,
    TranscriptionProviderError,
)


logger = structlog.get_logger(__name__)

TRANSCRIPTION_INSTRUCTION = """Transcribe this voice note verbatim.
The speaker may use Egyptian Arabic, English, or both in one sentence.
Keep numbers as spoken, do not translate, do not summarize.
If nothing is said, return an empty response.
Return only the transcript."""


class GeminiTranscriptionProvider(TranscriptionProvider):
    """Transcription via a multimodal Gemini model."""

    name = "gemini"

    def __init__(self, settings: Optional[GeminiSettings] = None):
        self._settings = settings or get_settings().gemini
        genai.configure(api_key=self._settings.api_key)
        self._model = genai.GenerativeModel(
            model_name=self._settings.transcription_model_name,
            generation_config={
                "temperature": 0.0,
                "max_output_tokens": self._settings.max_tokens,
            }
        )

    async def transcribe(self, audio: bytes, mime_type: str) -> str:
        try:
            response = await self._model.generate_content_async([
                TRANSCRIPTION_INSTRUCTION,
                {"mime_type": mime_type, "data": audio},
            ])
        except Exception as e:
            raise TranscriptionProviderError(f"Gemini transcription failed: {e}")

        text = self.read_response(response)
        logger.info("gemini_transcribed", text_length=len(text))
        return text

    @staticmethod
    def read_response(response) -> str:
        """
        Transcript text from a generate_content response.

        An empty string means nothing was said. Blocked or unfinished
        responses raise, so the next provider gets a turn.
        """
        block_reason = response.prompt_feedback.block_reason
        if block_reason:
            raise TranscriptionProviderError(f"Gemini blocked the request: {block_reason.name}")
        if not response.candidates:
            raise TranscriptionProviderError("Gemini returned no candidates")

        candidate = response.candidates[0]
        if candidate.finish_reason.name != "STOP":
            raise TranscriptionProviderError(
                f"Gemini stopped before finishing: {candidate.finish_reason.name}"
            )
        return "".join(part.text for part in candidate.content.parts).strip()
