"""
Google Cloud Speech-to-Text Provider

DESIGN DECISION: Google Speech is the primary transcriber because:
1. Egyptian Arabic ("ar-EG") is supported with English as an alternative
2. The long-form model copes with noisy phone recordings
3. The service account is the same one used for Sheets

We call the REST endpoint through google-auth's AuthorizedSession rather
than pulling in the full gRPC client.
"""

import asyncio
import base64
from typing import Optional

import structlog
from google.auth.transport.requests import AuthorizedSession
from google.oauth2.service_account import Credentials

from voice_ledger.config import GoogleSpeechSettings, get_settings
from voice_ledger.services.transcription.interface import (
    TranscriptionProvider,
    TranscriptionProviderError,
)


logger = structlog.get_logger(__name__)

SCOPES = ["https://www.googleapis.com/auth/cloud-platform"]

# Speech API encodings by mime type
ENCODINGS = {
    "audio/webm": "WEBM_OPUS",
    "audio/ogg": "OGG_OPUS",
    "audio/wav": "LINEAR16",
    "audio/x-wav": "LINEAR16",
    "audio/mpeg": "MP3",
    "audio/flac": "FLAC",
}


class GoogleSpeechTranscriptionProvider(TranscriptionProvider):
    """Transcription via the speech:recognize REST method."""

    name = "google_speech"

    def __init__(self, settings: Optional[GoogleSpeechSettings] = None):
        self._settings = settings or get_settings().google_speech
        self._session: Optional[AuthorizedSession] = None

    def _get_session(self) -> AuthorizedSession:
        if self._session is None:
            try:
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=SCOPES,
                )
            except FileNotFoundError:
                raise TranscriptionProviderError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            self._session = AuthorizedSession(credentials)
        return self._session

    def build_request(self, audio: bytes, mime_type: str) -> dict:
        """Request body for speech:recognize."""
        encoding = ENCODINGS.get(mime_type, self._settings.encoding)
        config = {
            "encoding": encoding,
            "languageCode": self._settings.language_code,
            "alternativeLanguageCodes": self._settings.alternative_languages_list,
            "enableAutomaticPunctuation": True,
            "model": self._settings.model,
            "useEnhanced": True,
        }
        # WAV and FLAC carry the rate in their header
        if encoding not in ("LINEAR16", "FLAC"):
            config["sampleRateHertz"] = self._settings.sample_rate_hertz

        return {
            "config": config,
            "audio": {"content": base64.b64encode(audio).decode("ascii")},
        }

    @staticmethod
    def parse_response(data: dict) -> str:
        """Join the top alternative of every result; no results means no speech."""
        results = data.get("results") or []
        parts = []
        for result in results:
            alternatives = result.get("alternatives") or []
            if alternatives and alternatives[0].get("transcript"):
                parts.append(alternatives[0]["transcript"].strip())
        return " ".join(parts).strip()

    def _recognize(self, body: dict) -> dict:
        response = self._get_session().post(self._settings.endpoint, json=body, timeout=60)
        if response.status_code != 200:
            raise TranscriptionProviderError(
                f"Google Speech-to-Text returned {response.status_code}: {response.text[:200]}"
            )
        return response.json()

    async def transcribe(self, audio: bytes, mime_type: str) -> str:
        body = self.build_request(audio, mime_type)
        data = await asyncio.to_thread(self._recognize, body)
        text = self.parse_response(data)
        logger.info("google_speech_transcribed", text_length=len(text))
        return text
