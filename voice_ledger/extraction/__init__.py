"""Expense extraction from transcribed text."""

from voice_ledger.extraction.digits import normalize_digits
from voice_ledger.extraction.regex_extractor import (
    CASCADE,
    clean_description,
    extract_regex,
    split_clauses,
)
from voice_ledger.extraction.structured import (
    AI_CONFIDENCE,
    ExtractionInvalid,
    StructuredExtractor,
    normalize_category,
    parse_items,
)

__all__ = [
    "AI_CONFIDENCE",
    "CASCADE",
    "ExtractionInvalid",
    "StructuredExtractor",
    "clean_description",
    "extract_regex",
    "normalize_category",
    "normalize_digits",
    "parse_items",
    "split_clauses",
]
