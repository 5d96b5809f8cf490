"""
Tests for Voice Ledger

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests for flows (with scripted providers and in-memory stores)
3. No real API calls in tests
"""

import pytest
from datetime import date
from decimal import Decimal
from uuid import uuid4

from voice_ledger.models.expense import (
    CandidateItem,
    ExpenseCategory,
    ExtractionSource,
    LearnedPattern,
    PersistedExpense,
    ProcessingStatus,
    RequestContext,
    Utterance,
    VoiceProcessingResult,
    dedup_key,
    to_amount,
)
from voice_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestExpenseModels:
    """Tests for expense-related Pydantic models."""

    def test_to_amount_rounds_to_cents(self):
        """Amounts are quantized half-up to two decimals."""
        assert to_amount("5") == Decimal("5.00")
        assert to_amount(2.345) == Decimal("2.35")

    def test_to_amount_rejects_garbage(self):
        with pytest.raises(ValueError):
            to_amount("five")

    @pytest.mark.parametrize("value", [float("nan"), float("inf"), "NaN", "-Infinity"])
    def test_to_amount_rejects_non_finite(self, value):
        with pytest.raises(ValueError):
            to_amount(value)

    def test_candidate_item_strips_whitespace(self):
        item = CandidateItem(
            description="  Coffee  ",
            amount="5",
            source=ExtractionSource.REGEX,
        )
        assert item.description == "Coffee"
        assert item.amount == Decimal("5.00")
        assert item.category is None
        assert item.confidence is None

    def test_candidate_item_rejects_non_positive_amount(self):
        """Test that zero and negative amounts are rejected."""
        with pytest.raises(ValueError):
            CandidateItem(description="Coffee", amount=0, source=ExtractionSource.REGEX)
        with pytest.raises(ValueError):
            CandidateItem(description="Coffee", amount=-3, source=ExtractionSource.REGEX)

    def test_candidate_item_rejects_empty_description(self):
        with pytest.raises(ValueError):
            CandidateItem(description="   ", amount=5, source=ExtractionSource.AI)

    def test_dedup_key_ignores_case_and_padding(self):
        item = CandidateItem(description="Coffee", amount=5, source=ExtractionSource.AI)
        expense = PersistedExpense(
            user_id="u",
            description="coffee ",
            amount=Decimal("5.00"),
            category="Food",
            date=date(2025, 1, 20),
        )
        assert item.dedup_key == expense.dedup_key == dedup_key("COFFEE", "5")

    def test_dedup_key_distinguishes_amounts(self):
        assert dedup_key("coffee", 5) != dedup_key("coffee", 6)

    def test_learned_pattern_is_lowercased(self):
        pattern = LearnedPattern(
            user_id="u",
            description_pattern="  Uber Home ",
            suggested_category="Transportation",
            confidence_score=0.7,
        )
        assert pattern.description_pattern == "uber home"
        assert pattern.usage_count == 1

    def test_learned_pattern_confidence_bounds(self):
        with pytest.raises(ValueError):
            LearnedPattern(
                user_id="u",
                description_pattern="x",
                suggested_category="Food",
                confidence_score=1.5,
            )

    def test_categories_names(self):
        names = ExpenseCategory.names()
        assert names[0] == "Food"
        assert "Others" in names
        assert len(names) == 10


class TestRequestModels:
    """Tests for Utterance and RequestContext."""

    def test_utterance_requires_audio_or_text(self):
        with pytest.raises(ValueError):
            Utterance()

    def test_utterance_normalizes_mime_type(self):
        utterance = Utterance(audio=b"\x00\x01", mime_type="Audio/WebM;codecs=opus")
        assert utterance.mime_type == "audio/webm"

    def test_utterance_accepts_text_only(self):
        utterance = Utterance(text="coffee 5")
        assert utterance.audio is None

    def test_request_context_is_frozen(self):
        ctx = RequestContext(user_id="u", expense_date=date(2025, 1, 15), period="2025-01")
        with pytest.raises(ValueError):
            ctx.user_id = "other"

    def test_request_context_rejects_bad_period(self):
        with pytest.raises(ValueError):
            RequestContext(user_id="u", expense_date=date(2025, 1, 15), period="Jan 2025")

    def test_request_context_ids_are_unique(self):
        a = RequestContext(user_id="u", expense_date=date(2025, 1, 15), period="2025-01")
        b = RequestContext(user_id="u", expense_date=date(2025, 1, 15), period="2025-01")
        assert a.correlation_id != b.correlation_id
        assert a.session_id != b.session_id


class TestResultModel:
    """Tests for VoiceProcessingResult."""

    def test_defaults(self):
        result = VoiceProcessingResult()
        assert result.status == ProcessingStatus.COMPLETED
        assert result.saved_count == 0
        assert result.notification is None

    def test_saved_count_counts_expenses(self):
        expense = PersistedExpense(
            user_id="u",
            description="Lunch",
            amount=15,
            category="Food",
            date=date(2025, 1, 20),
        )
        result = VoiceProcessingResult(expenses=[expense, expense])
        assert result.saved_count == 2


class TestAuditModels:
    """Tests for audit event models."""

    def test_audit_event_creation(self):
        event = AuditEvent(
            event_type=AuditEventType.EXPENSE_SAVED,
            description="Test event",
        )
        assert event.event_type == AuditEventType.EXPENSE_SAVED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None
        assert event.timestamp is not None

    def test_audit_event_to_sheets_row(self):
        correlation_id = uuid4()
        event = AuditEvent(
            event_type=AuditEventType.VOICE_RECEIVED,
            user_id="user-1",
            correlation_id=correlation_id,
            description="Voice input received",
            details={"audio_size_bytes": 10},
        )
        row = event.to_sheets_row()
        assert len(row) == 12
        assert row[2] == "voice_received"
        assert row[4] == "user-1"
        assert row[7] == str(correlation_id)
        assert '"audio_size_bytes": 10' in row[9]

    def test_builder_voice_received(self):
        correlation_id = uuid4()
        session_id = uuid4()
        event = AuditEventBuilder.voice_received(
            user_id="user-1",
            session_id=session_id,
            audio_size=2048,
            mime_type="audio/webm",
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.VOICE_RECEIVED
        assert event.entity_id == session_id
        assert event.details["audio_size_bytes"] == 2048
        assert event.is_user_action is True

    def test_builder_transcription_failed(self):
        event = AuditEventBuilder.transcription_failed(
            user_id="user-1",
            reasons=["google_speech: 503", "gemini: timed out after 30.0s"],
            correlation_id=uuid4(),
        )
        assert event.severity == AuditSeverity.ERROR
        assert event.error_code == "transcription_failed"
        assert "gemini" in event.error_message

    def test_builder_session_merges_metadata(self):
        event = AuditEventBuilder.processing_session_recorded(
            user_id="user-1",
            session_id=uuid4(),
            transcription="coffee 5",
            item_count=1,
            saved_count=1,
            confidence=0.9,
            metadata={"extraction_source": "ai"},
            correlation_id=uuid4(),
        )
        assert event.details["extraction_source"] == "ai"
        assert event.details["saved_count"] == 1
