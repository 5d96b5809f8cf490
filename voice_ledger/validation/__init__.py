"""Validation package."""

from voice_ledger.validation.deduplicator import (
    DedupResult,
    ExpenseDeduplicator,
    dedupe,
)

__all__ = ["DedupResult", "ExpenseDeduplicator", "dedupe"]
