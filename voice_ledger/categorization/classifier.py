"""
Category Classifier

Resolves a category for an extracted description and feeds the result
back into the user's learned patterns.

Resolution order:
1. Learned patterns (highest confidence first): the first pattern that is
   a substring of the description wins, and is reinforced.
2. Keyword table: the category with the most keyword hits wins, ties go
   to the earlier table entry.
3. Others.

Keyword and default resolutions are recorded as observations (0.7 and
0.3), so phrasing the user repeats converges to a learned pattern.
Learning writes are best-effort: a failed write is logged and the
classification still stands.
"""

from typing import Optional

import structlog

from voice_ledger.audit import AuditLogger
from voice_ledger.extraction.tokens import CATEGORY_KEYWORDS
from voice_ledger.models.expense import ExpenseCategory, LearnedPattern, RequestContext
from voice_ledger.services.storage import PatternStorageInterface


logger = structlog.get_logger(__name__)

LEARNED_MATCH_CONFIDENCE = 0.9
KEYWORD_MATCH_CONFIDENCE = 0.7
DEFAULT_CONFIDENCE = 0.3


def keyword_category(description: str) -> tuple[str, int]:
    """
    Best keyword-table category for a description.

    Returns:
        (category, number of keyword hits); Others with 0 hits if none match
    """
    lowered = description.lower()
    best_category = ExpenseCategory.OTHERS.value
    best_score = 0

    for category, keywords in CATEGORY_KEYWORDS.items():
        score = sum(1 for keyword in keywords if keyword in lowered)
        if score > best_score:
            best_score = score
            best_category = category

    return best_category, best_score


def match_learned_pattern(
    description: str,
    learned_patterns: list[LearnedPattern],
) -> Optional[LearnedPattern]:
    """First learned pattern, by descending confidence, contained in the description."""
    lowered = description.lower()
    ordered = sorted(learned_patterns, key=lambda p: p.confidence_score, reverse=True)
    for pattern in ordered:
        if pattern.description_pattern and pattern.description_pattern.lower() in lowered:
            return pattern
    return None


class CategoryClassifier:
    """Classifies descriptions and records what it learned."""

    def __init__(
        self,
        pattern_storage: PatternStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
    ):
        self._patterns = pattern_storage
        self._audit = audit_logger or AuditLogger()

    async def load_patterns(self, ctx: RequestContext, limit: int = 50) -> list[LearnedPattern]:
        """
        Learned patterns for the request's user.

        A store failure means classifying without them, not failing.
        """
        try:
            return await self._patterns.get_patterns(ctx.user_id, limit=limit)
        except Exception as e:
            logger.warning("learned_patterns_unavailable", user_id=ctx.user_id, error=str(e))
            return []

    async def classify_and_learn(
        self,
        description: str,
        learned_patterns: list[LearnedPattern],
        ctx: RequestContext,
    ) -> str:
        """
        Resolve a category and write the learning signal. Never raises.
        """
        learned = match_learned_pattern(description, learned_patterns)
        if learned is not None:
            await self._learn(ctx, description, learned.suggested_category, LEARNED_MATCH_CONFIDENCE)
            return learned.suggested_category

        category, hits = keyword_category(description)
        observed = KEYWORD_MATCH_CONFIDENCE if hits else DEFAULT_CONFIDENCE
        await self._learn(ctx, description, category, observed)
        return category

    async def _learn(
        self,
        ctx: RequestContext,
        description: str,
        category: str,
        confidence: float,
    ) -> None:
        try:
            await self._patterns.upsert_pattern(ctx.user_id, description, category, confidence)
        except Exception as e:
            logger.warning(
                "category_learning_failed",
                user_id=ctx.user_id,
                pattern=description,
                error=str(e),
            )
            await self._audit.log_learning_failed(
                ctx.user_id, description, str(e), ctx.correlation_id
            )
            return

        await self._audit.log_pattern_learned(
            ctx.user_id, description, category, confidence, ctx.correlation_id
        )
