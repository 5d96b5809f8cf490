"""
Transcription Provider Interface

A provider turns audio bytes into text or raises. Returning an empty string
is a valid result meaning "nothing was said".
"""

from abc import ABC, abstractmethod


class TranscriptionProvider(ABC):
    """Speech-to-text backend."""

    name: str = "transcription"

    @abstractmethod
    async def transcribe(self, audio: bytes, mime_type: str) -> str:
        """
        Transcribe one utterance.

        Args:
            audio: Raw audio bytes
            mime_type: Audio mime type, without codec parameters

        Returns:
            The transcript, possibly empty

        Raises:
            TranscriptionProviderError: If the provider fails
        """
        pass


class TranscriptionProviderError(Exception):
    """A single provider failed to transcribe."""
    pass
