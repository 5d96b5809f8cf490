"""Category resolution, learning and confidence scoring."""

from voice_ledger.categorization.classifier import (
    CategoryClassifier,
    keyword_category,
    match_learned_pattern,
)
from voice_ledger.categorization.confidence import overall_confidence, score

__all__ = [
    "CategoryClassifier",
    "keyword_category",
    "match_learned_pattern",
    "overall_confidence",
    "score",
]
