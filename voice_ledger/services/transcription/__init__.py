"""Speech-to-text providers and the fallback orchestrator."""

from voice_ledger.services.transcription.interface import (
    TranscriptionProvider,
    TranscriptionProviderError,
)
from voice_ledger.services.transcription.google_speech import GoogleSpeechTranscriptionProvider
from voice_ledger.services.transcription.gemini_audio import GeminiTranscriptionProvider
from voice_ledger.services.transcription.orchestrator import (
    MANUAL_ENTRY_HINT,
    TranscriptionFailed,
    TranscriptionOrchestrator,
    TranscriptionOutcome,
)

__all__ = [
    "GeminiTranscriptionProvider",
    "GoogleSpeechTranscriptionProvider",
    "MANUAL_ENTRY_HINT",
    "TranscriptionFailed",
    "TranscriptionOrchestrator",
    "TranscriptionOutcome",
    "TranscriptionProvider",
    "TranscriptionProviderError",
]
