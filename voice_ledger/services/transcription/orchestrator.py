"""
Transcription Orchestrator

Tries transcription providers in priority order. The first provider that
returns wins, even with empty text; empty text is the caller's
"no speech detected" case, not a failure. Each attempt is bounded by a
timeout and never retried: a provider that failed is assumed to keep
failing for the rest of the request.

Only when every provider fails is the request lost.
"""

from typing import Optional

import structlog
from pydantic import BaseModel, Field

from voice_ledger.config import PipelineSettings, get_settings
from voice_ledger.services.chain import (
    ChainExhausted,
    ChainStep,
    ProviderChain,
    ProviderFailure,
)
from voice_ledger.services.transcription.gemini_audio import GeminiTranscriptionProvider
from voice_ledger.services.transcription.google_speech import GoogleSpeechTranscriptionProvider
from voice_ledger.services.transcription.interface import TranscriptionProvider


logger = structlog.get_logger(__name__)

PROVIDER_FACTORIES = {
    "google_speech": GoogleSpeechTranscriptionProvider,
    "gemini": GeminiTranscriptionProvider,
}

MANUAL_ENTRY_HINT = "You can add expenses manually using the \"Add Expense\" button."


class TranscriptionOutcome(BaseModel):
    """Text from the first provider that succeeded."""
    text: str
    provider_used: str
    failures: list[ProviderFailure] = Field(default_factory=list)


class TranscriptionFailed(Exception):
    """Every transcription provider failed."""

    def __init__(self, failures: list[ProviderFailure]):
        self.failures = failures
        reasons = "; ".join(str(f) for f in failures) or "no transcription providers configured"
        super().__init__(f"Speech recognition failed ({reasons}). {MANUAL_ENTRY_HINT}")

    @property
    def reasons(self) -> list[str]:
        return [str(f) for f in self.failures]


class TranscriptionOrchestrator:
    """
    Ordered fallback over transcription providers.

    Args:
        providers: Providers in priority order
        timeout: Seconds allowed per provider attempt
    """

    def __init__(
        self,
        providers: list[TranscriptionProvider],
        timeout: float = 30.0,
    ):
        self._providers = list(providers)
        self._chain = ProviderChain(
            [ChainStep(p.name, p.transcribe) for p in self._providers],
            timeout=timeout,
        )

    @property
    def provider_names(self) -> list[str]:
        return self._chain.names

    @classmethod
    def from_settings(
        cls,
        settings: Optional[PipelineSettings] = None,
    ) -> "TranscriptionOrchestrator":
        """
        Build providers in the configured order.

        A provider that cannot be constructed (missing credentials, unknown
        name) is left out with a warning; the chain runs with the rest.
        """
        settings = settings or get_settings().pipeline
        providers = []
        for name in settings.transcription_providers_list:
            factory = PROVIDER_FACTORIES.get(name)
            if factory is None:
                logger.warning("unknown_transcription_provider", provider=name)
                continue
            try:
                providers.append(factory())
            except Exception as e:
                logger.warning(
                    "transcription_provider_unavailable",
                    provider=name,
                    error=str(e),
                )
        return cls(providers, timeout=settings.provider_timeout_seconds)

    async def transcribe(self, audio: bytes, mime_type: str) -> TranscriptionOutcome:
        """
        Transcribe with the first provider that succeeds.

        Raises:
            TranscriptionFailed: If every provider raised or timed out
        """
        try:
            result = await self._chain.run(audio, mime_type)
        except ChainExhausted as e:
            logger.error(
                "transcription_failed",
                reasons=[str(f) for f in e.failures],
            )
            raise TranscriptionFailed(e.failures)

        text = (result.value or "").strip()
        logger.info(
            "transcription_completed",
            provider=result.provider,
            text_length=len(text),
            failed_providers=[f.provider for f in result.failures],
        )
        return TranscriptionOutcome(
            text=text,
            provider_used=result.provider,
            failures=result.failures,
        )
