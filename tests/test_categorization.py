"""
Tests for category resolution, learning and confidence scoring.
"""

from decimal import Decimal

from voice_ledger.audit import AuditLogger
from voice_ledger.categorization import (
    CategoryClassifier,
    keyword_category,
    match_learned_pattern,
    overall_confidence,
    score,
)
from voice_ledger.models.audit import AuditEventType
from voice_ledger.models.expense import CandidateItem, ExtractionSource, LearnedPattern
from voice_ledger.services.storage import InMemoryAuditStorage, InMemoryPatternStore

from tests.fakes import BrokenPatternStore, run


def _pattern(text, category, confidence):
    return LearnedPattern(
        user_id="user-1",
        description_pattern=text,
        suggested_category=category,
        confidence_score=confidence,
    )


class TestKeywordTable:
    """Tests for the keyword fallback."""

    def test_single_hit(self):
        assert keyword_category("Morning coffee") == ("Food", 1)

    def test_most_hits_wins(self):
        category, hits = keyword_category("coffee and cake")
        assert category == "Food"
        assert hits == 2

    def test_tie_goes_to_earlier_category(self):
        assert keyword_category("taxi to the cinema")[0] == "Transportation"

    def test_arabic_keyword(self):
        assert keyword_category("بنزين")[0] == "Transportation"

    def test_no_hit_is_others(self):
        assert keyword_category("xyzzy") == ("Others", 0)


class TestLearnedPatterns:
    """Tests for matching learned patterns."""

    def test_highest_confidence_first(self):
        patterns = [
            _pattern("coffee", "Food", 0.7),
            _pattern("coffee beans", "Shopping", 0.9),
        ]
        match = match_learned_pattern("Coffee beans 1kg", patterns)
        assert match.suggested_category == "Shopping"

    def test_no_match(self):
        assert match_learned_pattern("Taxi", [_pattern("coffee", "Food", 0.9)]) is None


class TestCategoryClassifier:
    """Tests for classify-and-learn."""

    def test_keyword_result_is_learned(self, ctx):
        store = InMemoryPatternStore()
        classifier = CategoryClassifier(store, AuditLogger())

        category = run(classifier.classify_and_learn("Coffee", [], ctx))

        assert category == "Food"
        learned = store.get("user-1", "coffee", "Food")
        assert learned.confidence_score == 0.7
        assert learned.usage_count == 1

    def test_unknown_description_learned_at_low_confidence(self, ctx):
        store = InMemoryPatternStore()
        classifier = CategoryClassifier(store, AuditLogger())

        category = run(classifier.classify_and_learn("Xyzzy", [], ctx))

        assert category == "Others"
        assert store.get("user-1", "xyzzy", "Others").confidence_score == 0.3

    def test_learned_pattern_overrides_keywords(self, ctx):
        store = InMemoryPatternStore()
        classifier = CategoryClassifier(store, AuditLogger())
        patterns = [_pattern("coffee", "Shopping", 0.8)]

        category = run(classifier.classify_and_learn("Coffee beans", patterns, ctx))

        assert category == "Shopping"

    def test_repeated_phrasing_converges(self, ctx):
        """Confidence rises monotonically to the ceiling while usage keeps counting."""
        store = InMemoryPatternStore()
        classifier = CategoryClassifier(store, AuditLogger())

        confidences = []
        for _ in range(4):
            patterns = run(classifier.load_patterns(ctx))
            assert run(classifier.classify_and_learn("Coffee", patterns, ctx)) == "Food"
            confidences.append(store.get("user-1", "coffee", "Food").confidence_score)

        assert confidences == [0.7, 0.8, 0.9, 0.9]
        assert store.get("user-1", "coffee", "Food").usage_count == 4

    def test_learning_failure_does_not_change_result(self, ctx):
        audit_storage = InMemoryAuditStorage()
        classifier = CategoryClassifier(BrokenPatternStore(), AuditLogger(audit_storage))

        category = run(classifier.classify_and_learn("Taxi home", [], ctx))

        assert category == "Transportation"
        events = run(audit_storage.get_recent_events())
        assert [e.event_type for e in events] == [AuditEventType.LEARNING_FAILED]
        assert events[0].correlation_id == ctx.correlation_id

    def test_learned_pattern_traced_to_request(self, ctx):
        audit_storage = InMemoryAuditStorage()
        classifier = CategoryClassifier(InMemoryPatternStore(), AuditLogger(audit_storage))

        run(classifier.classify_and_learn("Taxi home", [], ctx))

        events = run(audit_storage.get_events_by_correlation_id(ctx.correlation_id))
        assert [e.event_type for e in events] == [AuditEventType.PATTERN_LEARNED]


class TestConfidence:
    """Tests for the additive confidence heuristic."""

    def test_full_marks(self):
        assert score("Coffee", Decimal("5"), "Food") == 1.0

    def test_short_description_implausible_amount(self):
        assert score("Tv", Decimal("20000"), "Others") == 0.6

    def test_currency_word_in_description(self):
        assert score("Xyz dollars", Decimal("20000"), "Others") == 0.9

    def test_tiny_amount(self):
        assert score("Lunch", Decimal("0.05"), "Food") == 0.9

    def test_overall_is_mean(self):
        items = [
            CandidateItem(description="a", amount=1, confidence=0.9, source=ExtractionSource.AI),
            CandidateItem(description="b", amount=1, confidence=0.6, source=ExtractionSource.REGEX),
        ]
        assert overall_confidence(items) == 0.75

    def test_overall_of_nothing(self):
        assert overall_confidence([]) == 0.0
