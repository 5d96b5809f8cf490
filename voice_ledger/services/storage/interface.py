"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for every store the
voice pipeline talks to. This allows us to:
1. Swap Google Sheets for a real database later
2. Use in-memory storage for testing
3. Keep pipeline logic decoupled from storage implementation

The interfaces are intentionally small: only the operations the
pipeline needs. Each call is one independent operation; the pipeline
never holds a lock across them.
"""

from abc import ABC, abstractmethod
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

from voice_ledger.models.expense import (
    LearnedPattern,
    NotificationEvent,
    PersistedExpense,
)
from voice_ledger.models.audit import AuditEvent


# Learned confidence never grows past this value
LEARNING_CEILING = 0.9
LEARNING_STEP = 0.1


def reinforce_pattern(
    existing: Optional[LearnedPattern],
    user_id: str,
    pattern: str,
    category: str,
    observed_confidence: float,
) -> LearnedPattern:
    """
    Apply one learning observation to a pattern.

    A new (pattern, category) pair starts at the observed confidence.
    Every reuse increments usage_count and moves confidence one step
    toward the ceiling, so repeated phrasing converges monotonically.
    """
    now = datetime.utcnow()
    if existing is None:
        return LearnedPattern(
            user_id=user_id,
            description_pattern=pattern,
            suggested_category=category,
            confidence_score=min(observed_confidence, LEARNING_CEILING),
            usage_count=1,
            last_used=now,
        )
    return existing.model_copy(update={
        "confidence_score": round(
            min(LEARNING_CEILING, existing.confidence_score + LEARNING_STEP), 4
        ),
        "usage_count": existing.usage_count + 1,
        "last_used": now,
    })


class ExpenseStorageInterface(ABC):
    """
    Abstract interface for expense storage.

    The dedup guarantee is enforced by the pipeline (query, then check),
    not by this interface.
    """

    @abstractmethod
    async def existing_for_date(
        self,
        user_id: str,
        expense_date: date,
    ) -> set[tuple[str, Decimal]]:
        """
        Get the (description lower-cased, amount) pairs already stored.

        Args:
            user_id: Owner of the expenses
            expense_date: The date to look at

        Returns:
            Set of dedup keys for that user and date
        """
        pass

    @abstractmethod
    async def insert(
        self,
        user_id: str,
        description: str,
        amount: Decimal,
        category: str,
        expense_date: date,
    ) -> PersistedExpense:
        """
        Insert one expense.

        Returns:
            The stored expense

        Raises:
            PersistenceFailed: If the write fails
        """
        pass

    @abstractmethod
    async def list_for_period(
        self,
        user_id: str,
        date_from: date,
        date_to: date,
    ) -> list[PersistedExpense]:
        """
        List expenses in an inclusive date range.

        Returns:
            Matching expenses, oldest first
        """
        pass


class PatternStorageInterface(ABC):
    """Abstract interface for learned category patterns."""

    @abstractmethod
    async def get_patterns(
        self,
        user_id: str,
        limit: int = 50,
    ) -> list[LearnedPattern]:
        """
        Get a user's learned patterns.

        Returns:
            Patterns ordered by confidence_score, highest first
        """
        pass

    @abstractmethod
    async def upsert_pattern(
        self,
        user_id: str,
        pattern: str,
        category: str,
        confidence: float,
    ) -> LearnedPattern:
        """
        Record one learning observation (see reinforce_pattern).

        Returns:
            The pattern as stored after the update
        """
        pass


class BudgetStorageInterface(ABC):
    """Abstract interface for budget lookups."""

    @abstractmethod
    async def get_budget(
        self,
        user_id: str,
        period: str,
    ) -> Optional[Decimal]:
        """
        Get the budget amount for a YYYY-MM period.

        Returns:
            The amount, or None if no budget is set
        """
        pass

    @abstractmethod
    async def sum_expenses(
        self,
        user_id: str,
        period: str,
    ) -> Decimal:
        """
        Total of all expenses in the period (first to last day, inclusive).
        """
        pass


class NotificationStorageInterface(ABC):
    """
    Abstract interface for raised budget notifications.

    Used only to keep notifications idempotent per period and threshold.
    """

    @abstractmethod
    async def has_notification(
        self,
        user_id: str,
        period: str,
        threshold: int,
    ) -> bool:
        """Check whether this threshold was already notified in the period."""
        pass

    @abstractmethod
    async def record(
        self,
        user_id: str,
        event: NotificationEvent,
    ) -> bool:
        """
        Record a raised notification.

        Returns:
            True if recorded successfully
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """
        Get all events for a correlation ID (one voice request).

        Returns:
            List of related events in chronological order
        """
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """
        Get the most recent audit events.

        Returns:
            List of recent events (newest first)
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class NotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a duplicate entity."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class PersistenceFailed(StorageError):
    """A single expense could not be written."""

    def __init__(self, description: str, reason: str):
        self.description = description
        self.reason = reason
        super().__init__(f"Failed to save {description}: {reason}")
