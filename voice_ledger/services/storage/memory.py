"""
In-Memory Storage Implementation

Backs every storage interface with plain dictionaries. Used by tests and
for running the pipeline locally without Google Sheets.

Every method completes without awaiting, so each call is atomic with
respect to the event loop. insert() re-checks the dedup key and raises
DuplicateError as a backstop to the pipeline's query-then-check guard.
"""

from collections import defaultdict
from datetime import date
from decimal import Decimal
from typing import Optional
from uuid import UUID

from voice_ledger.budget.periods import month_bounds
from voice_ledger.models.audit import AuditEvent
from voice_ledger.models.expense import (
    BudgetSnapshot,
    LearnedPattern,
    NotificationEvent,
    PersistedExpense,
    dedup_key,
)
from voice_ledger.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    DuplicateError,
    ExpenseStorageInterface,
    NotificationStorageInterface,
    PatternStorageInterface,
    PersistenceFailed,
    reinforce_pattern,
)


class InMemoryExpenseStore(ExpenseStorageInterface):
    """Expenses keyed by user."""

    def __init__(self):
        self._rows: dict[str, list[PersistedExpense]] = defaultdict(list)

    async def existing_for_date(
        self,
        user_id: str,
        expense_date: date,
    ) -> set[tuple[str, Decimal]]:
        return {
            expense.dedup_key
            for expense in self._rows[user_id]
            if expense.date == expense_date
        }

    async def insert(
        self,
        user_id: str,
        description: str,
        amount: Decimal,
        category: str,
        expense_date: date,
    ) -> PersistedExpense:
        key = dedup_key(description, amount)
        if any(
            row.date == expense_date and row.dedup_key == key
            for row in self._rows[user_id]
        ):
            raise DuplicateError(f"Expense already stored: {description} {amount}")

        try:
            expense = PersistedExpense(
                user_id=user_id,
                description=description,
                amount=amount,
                category=category,
                date=expense_date,
            )
        except ValueError as e:
            raise PersistenceFailed(description, str(e)) from e

        self._rows[user_id].append(expense)
        return expense

    async def list_for_period(
        self,
        user_id: str,
        date_from: date,
        date_to: date,
    ) -> list[PersistedExpense]:
        rows = [
            expense for expense in self._rows[user_id]
            if date_from <= expense.date <= date_to
        ]
        return sorted(rows, key=lambda e: (e.date, e.created_at))

    def all_rows(self, user_id: str) -> list[PersistedExpense]:
        return list(self._rows[user_id])


class InMemoryPatternStore(PatternStorageInterface):
    """Learned patterns keyed by (user, pattern, category)."""

    def __init__(self):
        self._patterns: dict[tuple[str, str, str], LearnedPattern] = {}

    async def get_patterns(
        self,
        user_id: str,
        limit: int = 50,
    ) -> list[LearnedPattern]:
        patterns = [p for (uid, _, _), p in self._patterns.items() if uid == user_id]
        patterns.sort(key=lambda p: p.confidence_score, reverse=True)
        return patterns[:limit]

    async def upsert_pattern(
        self,
        user_id: str,
        pattern: str,
        category: str,
        confidence: float,
    ) -> LearnedPattern:
        key = (user_id, pattern.strip().lower(), category)
        learned = reinforce_pattern(
            self._patterns.get(key), user_id, pattern, category, confidence
        )
        self._patterns[key] = learned
        return learned

    def get(self, user_id: str, pattern: str, category: str) -> Optional[LearnedPattern]:
        return self._patterns.get((user_id, pattern.strip().lower(), category))


class InMemoryBudgetStore(BudgetStorageInterface):
    """Budgets keyed by (user, period); spend is read from an expense store."""

    def __init__(self, expense_store: InMemoryExpenseStore):
        self._expense_store = expense_store
        self._budgets: dict[tuple[str, str], BudgetSnapshot] = {}

    def set_budget(self, user_id: str, period: str, amount: Decimal) -> None:
        self._budgets[(user_id, period)] = BudgetSnapshot(
            month=period,
            budget_amount=Decimal(str(amount)),
        )

    async def get_budget(
        self,
        user_id: str,
        period: str,
    ) -> Optional[Decimal]:
        snapshot = self._budgets.get((user_id, period))
        return snapshot.budget_amount if snapshot else None

    async def sum_expenses(
        self,
        user_id: str,
        period: str,
    ) -> Decimal:
        date_from, date_to = month_bounds(period)
        rows = await self._expense_store.list_for_period(user_id, date_from, date_to)
        return sum((row.amount for row in rows), Decimal("0"))


class InMemoryNotificationStore(NotificationStorageInterface):
    """Raised notifications keyed by user."""

    def __init__(self):
        self._events: dict[str, list[NotificationEvent]] = defaultdict(list)

    async def has_notification(
        self,
        user_id: str,
        period: str,
        threshold: int,
    ) -> bool:
        return any(
            event.period == period and event.threshold == threshold
            for event in self._events[user_id]
        )

    async def record(
        self,
        user_id: str,
        event: NotificationEvent,
    ) -> bool:
        self._events[user_id].append(event)
        return True

    def events_for(self, user_id: str) -> list[NotificationEvent]:
        return list(self._events[user_id])


class InMemoryAuditStorage(AuditStorageInterface):
    """Append-only list of audit events."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        return sorted(events, key=lambda e: e.timestamp)

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        return sorted(self._events, key=lambda e: e.timestamp, reverse=True)[:limit]
