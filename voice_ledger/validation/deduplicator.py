"""
Expense Deduplicator

DESIGN DECISION: The same logical expense must never be stored twice for
one user and day. Two expenses are the same when their descriptions match
case-insensitively and their amounts are equal.

Two passes:
1. Within the batch: keep the first occurrence of each key
2. Against storage: drop keys already stored for the request's date

The stored keys are read once per request. This is query-then-check, not
a lock: two concurrent requests can both pass it. The stores re-check on
insert and raise DuplicateError, which the pipeline treats as a skip.
"""

from decimal import Decimal
from typing import Optional

import structlog
from pydantic import BaseModel, Field

from voice_ledger.models.expense import CandidateItem, RequestContext
from voice_ledger.services.storage import ExpenseStorageInterface


logger = structlog.get_logger(__name__)


def dedupe(
    items: list[CandidateItem],
    existing: set[tuple[str, Decimal]],
) -> list[CandidateItem]:
    """Items that are neither repeated in the batch nor already stored."""
    seen: set[tuple[str, Decimal]] = set()
    kept = []
    for item in items:
        if item.amount <= 0:
            continue
        key = item.dedup_key
        if key in seen:
            continue
        seen.add(key)
        if key in existing:
            continue
        kept.append(item)
    return kept


class DedupResult(BaseModel):
    """Outcome of filtering one batch."""
    kept: list[CandidateItem] = Field(default_factory=list)
    skipped: list[CandidateItem] = Field(default_factory=list)


class ExpenseDeduplicator:
    """Filters a batch against itself and the expense store."""

    def __init__(self, expense_storage: Optional[ExpenseStorageInterface] = None):
        """
        Args:
            expense_storage: Store to check against.
                            If None, only in-batch duplicates are removed.
        """
        self._storage = expense_storage

    async def filter(
        self,
        items: list[CandidateItem],
        ctx: RequestContext,
    ) -> DedupResult:
        existing: set[tuple[str, Decimal]] = set()
        if self._storage is not None:
            existing = await self._storage.existing_for_date(ctx.user_id, ctx.expense_date)

        kept = dedupe(items, existing)
        kept_ids = {id(item) for item in kept}
        skipped = [item for item in items if id(item) not in kept_ids]

        if skipped:
            logger.info(
                "duplicates_skipped",
                user_id=ctx.user_id,
                skipped=len(skipped),
                kept=len(kept),
            )
        return DedupResult(kept=kept, skipped=skipped)
