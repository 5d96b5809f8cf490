"""
Confidence scoring for pattern-extracted items.

Advisory only: the score is shown to the user, never used to reject an
item.
"""

from decimal import Decimal
from typing import Union

from voice_ledger.extraction.tokens import has_currency_token
from voice_ledger.models.expense import CandidateItem, ExpenseCategory

BASE_CONFIDENCE = 0.5
STEP = 0.1
PLAUSIBLE_AMOUNT_LIMIT = Decimal("10000")
MIN_MEANINGFUL_AMOUNT = Decimal("0.1")


def score(description: str, amount: Union[Decimal, float], category: str) -> float:
    """Additive heuristic in [0, 1]."""
    amount = Decimal(str(amount))
    confidence = BASE_CONFIDENCE

    if len(description) >= 3:
        confidence += STEP
    if len(description) >= 5:
        confidence += STEP

    if Decimal("0") < amount < PLAUSIBLE_AMOUNT_LIMIT:
        confidence += STEP
    if amount > MIN_MEANINGFUL_AMOUNT:
        confidence += STEP

    if category != ExpenseCategory.OTHERS.value:
        confidence += STEP

    if has_currency_token(description):
        confidence += STEP

    return round(min(confidence, 1.0), 2)


def overall_confidence(items: list[CandidateItem]) -> float:
    """Mean item confidence; 0 when there are no items."""
    scores = [item.confidence for item in items if item.confidence is not None]
    if not scores:
        return 0.0
    return round(sum(scores) / len(scores), 2)
