"""
Integration tests for the voice expense flow.

Scripted transcribers and completion providers, in-memory stores.
"""

import pytest
from datetime import date
from decimal import Decimal

from voice_ledger.models.audit import AuditEventType
from voice_ledger.models.expense import ProcessingStatus, Utterance
from voice_ledger.orchestrator import (
    NO_EXPENSES_SUGGESTIONS,
    NO_SPEECH_SUGGESTIONS,
    SAVE_FAILED_SUGGESTION,
    InvalidUtterance,
    build_suggestions,
    new_request_context,
)
from voice_ledger.services.transcription import MANUAL_ENTRY_HINT, TranscriptionProviderError

from tests.fakes import (
    TODAY,
    BrokenBudgetStore,
    BrokenPatternStore,
    CannedCompletion,
    FlakyExpenseStore,
    ScriptedTranscriber,
    UnreadableExpenseStore,
    run,
)


AUDIO = b"\x1a\x45\xdf\xa3" + b"\x00" * 64


async def _event_types(audit_storage, correlation_id):
    events = await audit_storage.get_events_by_correlation_id(correlation_id)
    return [e.event_type for e in events]


class TestRequestContext:
    """Tests for request context construction."""

    def test_selected_month(self):
        ctx = new_request_context("user-1", "Mar 2025", today=TODAY)
        assert ctx.expense_date == date(2025, 3, 15)
        assert ctx.period == "2025-03"

    def test_defaults_to_today(self):
        ctx = new_request_context("user-1", today=TODAY)
        assert ctx.expense_date == TODAY
        assert ctx.period == "2025-01"


class TestVoiceFlow:
    """Tests for the audio path."""

    def test_audio_to_saved_expenses(self, make_flow, stores, ctx):
        flow = make_flow([ScriptedTranscriber("speech", text="coffee 5 dollars, lunch 15 dollars")])

        result = run(flow.process_audio(AUDIO, "audio/webm;codecs=opus", ctx))

        assert result.status == ProcessingStatus.COMPLETED
        assert result.transcription == "coffee 5 dollars, lunch 15 dollars"
        assert [(e.description, e.amount, e.category) for e in result.expenses] == [
            ("Coffee", Decimal("5.00"), "Food"),
            ("Lunch", Decimal("15.00"), "Food"),
        ]
        assert all(e.date == TODAY for e in result.expenses)
        assert result.confidence == 1.0
        assert result.metadata["transcription_provider"] == "speech"
        assert result.metadata["extraction_source"] == "regex"
        assert len(stores["expenses"].all_rows("user-1")) == 2

    def test_every_step_shares_the_correlation_id(self, make_flow, stores, ctx):
        flow = make_flow([ScriptedTranscriber("speech", text="taxi 30")])

        run(flow.process_audio(AUDIO, "audio/webm", ctx))

        types = run(_event_types(stores["audit"], ctx.correlation_id))
        for expected in (
            AuditEventType.VOICE_RECEIVED,
            AuditEventType.TRANSCRIPTION_COMPLETED,
            AuditEventType.EXTRACTION_COMPLETED,
            AuditEventType.EXPENSE_SAVED,
            AuditEventType.PROCESSING_SESSION_RECORDED,
        ):
            assert expected in types

    def test_arabic_indic_digits_from_transcriber(self, make_flow, ctx):
        flow = make_flow([ScriptedTranscriber("speech", text="قهوة ١٥ جنيه")])

        result = run(flow.process_audio(AUDIO, "audio/ogg", ctx))

        assert [(e.description, e.amount, e.category) for e in result.expenses] == [
            ("قهوة", Decimal("15.00"), "Food"),
        ]

    def test_fallback_transcriber_used(self, make_flow, stores, ctx):
        flow = make_flow([
            ScriptedTranscriber("speech", error=TranscriptionProviderError("HTTP 503")),
            ScriptedTranscriber("gemini", text="taxi 30"),
        ])

        result = run(flow.process_audio(AUDIO, "audio/webm", ctx))

        assert result.metadata["transcription_provider"] == "gemini"
        assert result.saved_count == 1
        types = run(_event_types(stores["audit"], ctx.correlation_id))
        assert AuditEventType.TRANSCRIPTION_PROVIDER_FAILED in types

    def test_no_speech_detected(self, make_flow, stores, ctx):
        flow = make_flow([ScriptedTranscriber("speech", text="   ")])

        result = run(flow.process_audio(AUDIO, "audio/webm", ctx))

        assert result.status == ProcessingStatus.NO_SPEECH_DETECTED
        assert result.expenses == []
        assert result.errors == []
        assert result.suggestions == NO_SPEECH_SUGGESTIONS
        assert stores["expenses"].all_rows("user-1") == []
        types = run(_event_types(stores["audit"], ctx.correlation_id))
        assert AuditEventType.NO_SPEECH_DETECTED in types

    def test_transcription_failure_loses_only_this_request(self, make_flow, stores, ctx):
        flow = make_flow([
            ScriptedTranscriber("speech", error=TranscriptionProviderError("quota exceeded")),
            ScriptedTranscriber("gemini", text="too slow", delay=0.5),
        ], timeout=0.05)

        result = run(flow.process_audio(AUDIO, "audio/webm", ctx))

        assert result.status == ProcessingStatus.TRANSCRIPTION_FAILED
        assert result.errors[0] == "speech: quota exceeded"
        assert "gemini: timed out" in result.errors[1]
        assert MANUAL_ENTRY_HINT in result.suggestions
        assert stores["expenses"].all_rows("user-1") == []
        types = run(_event_types(stores["audit"], ctx.correlation_id))
        assert AuditEventType.TRANSCRIPTION_FAILED in types

    def test_unsupported_format_rejected(self, make_flow, ctx):
        with pytest.raises(InvalidUtterance, match="Unsupported audio format"):
            run(make_flow().process_audio(AUDIO, "video/mp4", ctx))

    def test_empty_audio_rejected(self, make_flow, ctx):
        with pytest.raises(InvalidUtterance):
            run(make_flow().process_audio(b"", "audio/webm", ctx))

    def test_oversized_audio_rejected(self, make_flow, pipeline_settings, ctx):
        too_big = b"\x00" * (pipeline_settings.max_audio_size_bytes + 1)
        with pytest.raises(InvalidUtterance, match="too large"):
            run(make_flow().process_audio(too_big, "audio/webm", ctx))

    def test_utterance_with_text_skips_transcription(self, make_flow, ctx):
        transcriber = ScriptedTranscriber("speech", text="never used")
        flow = make_flow([transcriber])

        result = run(flow.process_utterance(Utterance(text="bus 7"), ctx))

        assert result.metadata["input_type"] == "text"
        assert result.expenses[0].category == "Transportation"
        assert transcriber.calls == 0


class TestDeduplication:
    """Submitting the same utterance twice stores nothing new."""

    def test_same_utterance_twice(self, make_flow, stores, ctx):
        flow = make_flow()
        text = "coffee 5 dollars, lunch 15 dollars"

        first = run(flow.process_text(text, ctx))
        second = run(flow.process_text(text, ctx))

        assert first.saved_count == 2
        assert second.saved_count == 0
        assert second.metadata["duplicates_skipped"] == 2
        assert "Skipped 2 expense(s) already recorded for this day." in second.suggestions
        assert len(stores["expenses"].all_rows("user-1")) == 2

    def test_repeat_within_one_utterance(self, make_flow, stores, ctx):
        result = run(make_flow().process_text("coffee 5, Coffee 5, coffee 6", ctx))

        assert [(e.description, e.amount) for e in result.expenses] == [
            ("Coffee", Decimal("5.00")),
            ("Coffee", Decimal("6.00")),
        ]
        assert result.metadata["duplicates_skipped"] == 1

    def test_same_expense_on_another_day_is_kept(self, make_flow, stores, ctx):
        flow = make_flow()
        run(flow.process_text("coffee 5", ctx))

        other_day = new_request_context("user-1", "Feb 2025", today=TODAY)
        result = run(flow.process_text("coffee 5", other_day))

        assert result.saved_count == 1
        assert len(stores["expenses"].all_rows("user-1")) == 2

    def test_insert_rejects_when_lookup_unavailable(self, make_flow, stores, ctx):
        store = UnreadableExpenseStore()
        flow = make_flow(expense_store=store)
        run(flow.process_text("coffee 5", ctx))

        second = run(flow.process_text("coffee 5", ctx))

        assert second.saved_count == 0
        assert second.metadata["duplicates_skipped"] == 1
        assert len(store.all_rows("user-1")) == 1
        types = run(_event_types(stores["audit"], ctx.correlation_id))
        assert AuditEventType.EXTERNAL_SERVICE_ERROR in types


class TestExtraction:
    """Structured extraction with pattern fallback."""

    def test_ai_items_keep_their_category(self, make_flow, stores, ctx):
        completion = CannedCompletion(
            '[{"amount": 30, "description": "groceries", "category": "Shopping"},'
            ' {"amount": 20, "description": "gas", "category": "Transport"}]'
        )
        flow = make_flow(completion=completion)

        result = run(flow.process_text("Spent 30 on groceries and 20 for gas", ctx))

        assert result.metadata["extraction_source"] == "ai"
        assert [(e.description, e.category) for e in result.expenses] == [
            ("Groceries", "Shopping"),
            ("Gas", "Transportation"),
        ]
        assert result.confidence == 0.9
        assert run(stores["patterns"].get_patterns("user-1")) == []

    def test_provider_failure_falls_back_to_patterns(self, make_flow, stores, ctx):
        flow = make_flow(completion=CannedCompletion(fail=True))

        result = run(flow.process_text("I spent 20 on groceries and 30 on gas", ctx))

        assert result.metadata["extraction_source"] == "regex"
        assert [(e.description, e.amount, e.category) for e in result.expenses] == [
            ("Groceries", Decimal("20.00"), "Shopping"),
            ("Gas", Decimal("30.00"), "Transportation"),
        ]
        types = run(_event_types(stores["audit"], ctx.correlation_id))
        assert AuditEventType.EXTRACTION_FALLBACK in types

    def test_unparseable_response_falls_back(self, make_flow, ctx):
        flow = make_flow(completion=CannedCompletion("I could not find any expenses, sorry!"))

        result = run(flow.process_text("movie tickets 50", ctx))

        assert result.metadata["extraction_source"] == "regex"
        assert result.expenses[0].category == "Entertainment"

    def test_nothing_extracted(self, make_flow, stores, ctx):
        result = run(make_flow().process_text("hello there", ctx))

        assert result.status == ProcessingStatus.COMPLETED
        assert result.expenses == []
        assert result.confidence == 0.0
        assert result.suggestions == NO_EXPENSES_SUGGESTIONS

    def test_learning_failure_still_saves(self, make_flow, ctx):
        flow = make_flow(pattern_store=BrokenPatternStore())

        result = run(flow.process_text("taxi 30", ctx))

        assert result.saved_count == 1
        assert result.expenses[0].category == "Transportation"

    def test_connector_phrases_learn_whole_words(self, make_flow, stores, ctx):
        flow = make_flow()

        first = run(flow.process_text("a sandwich for 10, gift for mom 100", ctx))
        run(flow.process_text("gift for 10", ctx))
        later = run(flow.process_text("doctor 50", ctx))

        assert [(e.description, e.category) for e in first.expenses] == [
            ("Sandwich", "Food"),
            ("Gift for mom", "Others"),
        ]
        assert [(e.description, e.category) for e in later.expenses] == [("Doctor", "Health")]

    def test_classification_is_learned(self, make_flow, stores, ctx):
        flow = make_flow()
        run(flow.process_text("xyzzy 12", ctx))

        learned = stores["patterns"].get("user-1", "xyzzy", "Others")

        assert learned.confidence_score == 0.3


class TestPersistenceFailures:
    """One failed insert never stops the others."""

    def test_failed_insert_reported(self, make_flow, ctx):
        flow = make_flow(expense_store=FlakyExpenseStore({"Lunch"}))

        result = run(flow.process_text("coffee 5, lunch 15, taxi 30", ctx))

        assert [e.description for e in result.expenses] == ["Coffee", "Taxi"]
        assert result.errors == ["Failed to save Lunch: row rejected"]
        assert SAVE_FAILED_SUGGESTION in result.suggestions
        assert result.status == ProcessingStatus.COMPLETED


class TestBudgetNotifications:
    """Budget thresholds after saving."""

    def test_warning_then_silence_then_exceeded(self, make_flow, stores, ctx):
        stores["budgets"].set_budget("user-1", "2025-01", Decimal("100"))
        flow = make_flow()

        warning = run(flow.process_text("groceries 80", ctx))
        quiet = run(flow.process_text("snack 5", ctx))
        exceeded = run(flow.process_text("shoes 20", ctx))

        assert warning.notification.title == "Budget Warning"
        assert quiet.notification is None
        assert exceeded.notification.title == "Budget Exceeded"
        assert [e.threshold for e in stores["notifications"].events_for("user-1")] == [75, 100]

    def test_no_notification_when_nothing_saved(self, make_flow, stores, ctx):
        stores["budgets"].set_budget("user-1", "2025-01", Decimal("10"))
        flow = make_flow()
        run(flow.process_text("groceries 80", ctx))
        stores["notifications"]._events.clear()

        repeat = run(flow.process_text("groceries 80", ctx))

        assert repeat.saved_count == 0
        assert repeat.notification is None

    def test_threshold_sweep_skips_notified(self, make_flow, stores, ctx):
        stores["budgets"].set_budget("user-1", "2025-01", Decimal("100"))
        flow = make_flow()
        run(flow.process_text("groceries 80", ctx))

        raised = run(flow.notification_gate.check_all_thresholds("user-1", "2025-01"))

        assert [e.threshold for e in raised] == [50]
        assert raised[0].title == "Budget Update"

    def test_budget_failure_is_not_fatal(self, make_flow, stores, ctx):
        flow = make_flow(budget_store=BrokenBudgetStore(stores["expenses"]))

        result = run(flow.process_text("groceries 80", ctx))

        assert result.saved_count == 1
        assert result.notification is None
        types = run(_event_types(stores["audit"], ctx.correlation_id))
        assert AuditEventType.BUDGET_CHECK_FAILED in types


class TestSuggestions:
    """Tests for result guidance."""

    def test_nothing_extracted(self):
        assert build_suggestions([]) == NO_EXPENSES_SUGGESTIONS

    def test_errors_listed_after_hint(self):
        suggestions = build_suggestions([], insertion_errors=["a", "b", "c"])
        assert suggestions[-3:] == [SAVE_FAILED_SUGGESTION, "a", "b"]
