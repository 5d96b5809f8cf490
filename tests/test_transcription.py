"""
Tests for the provider chain, transcription fallback and the Speech request codec.
"""

import base64
from types import SimpleNamespace

import pytest

from voice_ledger.config import GeminiSettings, GoogleSpeechSettings, PipelineSettings
from voice_ledger.services.chain import ChainExhausted, ChainStep, ProviderChain
from voice_ledger.services.transcription import (
    MANUAL_ENTRY_HINT,
    GeminiTranscriptionProvider,
    GoogleSpeechTranscriptionProvider,
    TranscriptionFailed,
    TranscriptionOrchestrator,
    TranscriptionProviderError,
)

from tests.fakes import ScriptedTranscriber, run


class TestProviderChain:
    """Tests for ordered fallback over async callables."""

    def test_first_success_wins(self):
        calls = []

        async def broken(value):
            calls.append("broken")
            raise RuntimeError("down")

        async def working(value):
            calls.append("working")
            return value * 2

        async def never(value):
            calls.append("never")
            return 0

        chain = ProviderChain([
            ChainStep("broken", broken),
            ChainStep("working", working),
            ChainStep("never", never),
        ])
        result = run(chain.run(21))

        assert result.value == 42
        assert result.provider == "working"
        assert [str(f) for f in result.failures] == ["broken: down"]
        assert calls == ["broken", "working"]

    def test_exhausted_carries_every_failure(self):
        async def fail(_):
            raise ValueError()

        chain = ProviderChain([ChainStep("a", fail), ChainStep("b", fail)])
        with pytest.raises(ChainExhausted) as exc_info:
            run(chain.run(None))

        assert [f.provider for f in exc_info.value.failures] == ["a", "b"]
        assert exc_info.value.failures[0].reason == "ValueError"

    def test_empty_chain(self):
        with pytest.raises(ChainExhausted, match="no providers configured"):
            run(ProviderChain([]).run())


class TestTranscriptionOrchestrator:
    """Tests for transcription fallback."""

    def test_primary_success_skips_fallback(self):
        primary = ScriptedTranscriber("primary", text="coffee 5")
        fallback = ScriptedTranscriber("fallback", text="unused")

        outcome = run(TranscriptionOrchestrator([primary, fallback]).transcribe(b"x", "audio/webm"))

        assert outcome.text == "coffee 5"
        assert outcome.provider_used == "primary"
        assert outcome.failures == []
        assert fallback.calls == 0

    def test_falls_back_on_error(self):
        primary = ScriptedTranscriber("primary", error=TranscriptionProviderError("HTTP 503"))
        fallback = ScriptedTranscriber("fallback", text="  lunch 15  ")

        outcome = run(TranscriptionOrchestrator([primary, fallback]).transcribe(b"x", "audio/webm"))

        assert outcome.text == "lunch 15"
        assert outcome.provider_used == "fallback"
        assert [f.provider for f in outcome.failures] == ["primary"]
        assert primary.calls == 1

    def test_falls_back_on_timeout(self):
        slow = ScriptedTranscriber("slow", text="too late", delay=0.5)
        fast = ScriptedTranscriber("fast", text="taxi 30")

        outcome = run(TranscriptionOrchestrator([slow, fast], timeout=0.05).transcribe(b"x", "audio/ogg"))

        assert outcome.provider_used == "fast"
        assert "timed out" in outcome.failures[0].reason

    def test_empty_text_is_success_not_failure(self):
        silent = ScriptedTranscriber("silent", text="")
        fallback = ScriptedTranscriber("fallback", text="coffee 5")

        outcome = run(TranscriptionOrchestrator([silent, fallback]).transcribe(b"x", "audio/webm"))

        assert outcome.text == ""
        assert outcome.provider_used == "silent"
        assert fallback.calls == 0

    def test_all_fail(self):
        providers = [
            ScriptedTranscriber("a", error=TranscriptionProviderError("quota")),
            ScriptedTranscriber("b", error=RuntimeError("network")),
        ]
        with pytest.raises(TranscriptionFailed) as exc_info:
            run(TranscriptionOrchestrator(providers).transcribe(b"x", "audio/webm"))

        assert exc_info.value.reasons == ["a: quota", "b: network"]
        assert MANUAL_ENTRY_HINT in str(exc_info.value)

    def test_unknown_providers_are_skipped(self):
        settings = PipelineSettings(transcription_providers="carrier_pigeon", _env_file=None)

        orchestrator = TranscriptionOrchestrator.from_settings(settings)

        assert orchestrator.provider_names == []
        with pytest.raises(TranscriptionFailed):
            run(orchestrator.transcribe(b"x", "audio/webm"))


@pytest.fixture
def speech_provider(tmp_path):
    credentials = tmp_path / "service_account.json"
    credentials.write_text("{}")
    return GoogleSpeechTranscriptionProvider(GoogleSpeechSettings(credentials_path=str(credentials)))


class TestGoogleSpeechCodec:
    """Tests for the speech:recognize request and response handling."""

    def test_build_request_for_webm(self, speech_provider):
        body = speech_provider.build_request(b"\x01\x02", "audio/webm")

        assert body["config"]["encoding"] == "WEBM_OPUS"
        assert body["config"]["languageCode"] == "ar-EG"
        assert body["config"]["alternativeLanguageCodes"] == ["en-US"]
        assert body["config"]["sampleRateHertz"] == 48000
        assert base64.b64decode(body["audio"]["content"]) == b"\x01\x02"

    def test_wav_omits_sample_rate(self, speech_provider):
        body = speech_provider.build_request(b"\x00", "audio/wav")
        assert body["config"]["encoding"] == "LINEAR16"
        assert "sampleRateHertz" not in body["config"]

    def test_parse_response_joins_results(self):
        data = {"results": [
            {"alternatives": [{"transcript": "coffee 5 "}, {"transcript": "copy five"}]},
            {"alternatives": [{"transcript": "lunch 15"}]},
        ]}
        assert GoogleSpeechTranscriptionProvider.parse_response(data) == "coffee 5 lunch 15"

    def test_parse_response_without_results_is_no_speech(self):
        assert GoogleSpeechTranscriptionProvider.parse_response({}) == ""


def _gemini_response(text="", block_reason=0, finish_reason="STOP", candidates=True):
    """Shaped like a generate_content response; enums expose .name."""
    feedback = SimpleNamespace(block_reason=SimpleNamespace(name="SAFETY") if block_reason else 0)
    candidate = SimpleNamespace(
        finish_reason=SimpleNamespace(name=finish_reason),
        content=SimpleNamespace(parts=[SimpleNamespace(text=text)] if text else []),
    )
    return SimpleNamespace(
        prompt_feedback=feedback,
        candidates=[candidate] if candidates else [],
    )


class BlockingModel:
    async def generate_content_async(self, contents):
        return _gemini_response(block_reason=1, candidates=False)


class TestGeminiTranscription:
    """Tests for reading Gemini transcription responses."""

    def test_transcript_text(self):
        response = _gemini_response(text=" coffee 5 ")
        assert GeminiTranscriptionProvider.read_response(response) == "coffee 5"

    def test_finished_without_text_is_no_speech(self):
        assert GeminiTranscriptionProvider.read_response(_gemini_response()) == ""

    @pytest.mark.parametrize("response", [
        _gemini_response(block_reason=1, candidates=False),
        _gemini_response(candidates=False),
        _gemini_response(text="coff", finish_reason="SAFETY"),
        _gemini_response(finish_reason="MAX_TOKENS"),
    ])
    def test_blocked_or_unfinished_raises(self, response):
        with pytest.raises(TranscriptionProviderError):
            GeminiTranscriptionProvider.read_response(response)

    def test_blocked_request_falls_back(self):
        gemini = GeminiTranscriptionProvider(GeminiSettings(api_key="test-key"))
        gemini._model = BlockingModel()
        fallback = ScriptedTranscriber("google_speech", text="lunch 15")

        outcome = run(TranscriptionOrchestrator([gemini, fallback]).transcribe(b"x", "audio/webm"))

        assert outcome.text == "lunch 15"
        assert outcome.provider_used == "google_speech"
        assert [f.provider for f in outcome.failures] == ["gemini"]
