"""
Budget Threshold Evaluation

After expenses are saved, spend for the period is compared with the
period's budget:

- 100% or more → "Budget Exceeded"
- 75% or more  → "Budget Warning"
- otherwise    → nothing

Exactly one of these per evaluation, never both.

The notification gate makes raising idempotent: a threshold that was
already notified for a user and period is not raised again. The 50%
"Budget Update" is only produced by the full threshold walk.
"""

from decimal import ROUND_HALF_UP, Decimal
from typing import Optional

import structlog

from voice_ledger.budget.periods import month_name
from voice_ledger.models.expense import BudgetStatus, NotificationEvent
from voice_ledger.services.storage.interface import (
    BudgetStorageInterface,
    NotificationStorageInterface,
)


logger = structlog.get_logger(__name__)

WARNING_THRESHOLD = 75
EXCEEDED_THRESHOLD = 100
UPDATE_THRESHOLD = 50
DEFAULT_THRESHOLDS = [UPDATE_THRESHOLD, WARNING_THRESHOLD, EXCEEDED_THRESHOLD]


class BudgetCheckFailed(Exception):
    """Budget or spend could not be read; the notification is skipped."""
    pass


def percent_used(spent: Decimal, budget: Decimal) -> int:
    """Spend as a whole percentage of budget, rounded half-up."""
    if budget <= 0:
        return 0
    return int((spent / budget * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))


def build_notification(
    threshold: int,
    status: BudgetStatus,
    currency: str = "EGP",
) -> NotificationEvent:
    """Notification text for a crossed threshold."""
    month = month_name(status.period)

    if threshold >= EXCEEDED_THRESHOLD:
        title = "Budget Exceeded"
        body = f"You've exceeded your {month} budget!"
    elif threshold >= WARNING_THRESHOLD:
        title = "Budget Warning"
        body = (
            f"You've used {status.percent}% of your {month} budget. "
            f"{currency}{status.remaining} remaining."
        )
    else:
        title = "Budget Update"
        body = (
            f"You've spent {threshold}% of your {month} budget. "
            f"{currency}{status.remaining} remaining."
        )

    return NotificationEvent(
        title=title,
        body=body,
        threshold=threshold,
        percent=status.percent,
        period=status.period,
    )


class BudgetThresholdEvaluator:
    """Compares period spend with the period budget."""

    def __init__(
        self,
        budget_storage: BudgetStorageInterface,
        currency: str = "EGP",
    ):
        self._storage = budget_storage
        self._currency = currency

    async def status(self, user_id: str, period: str) -> Optional[BudgetStatus]:
        """
        Spend versus budget for a period.

        Returns:
            None when no budget is set

        Raises:
            BudgetCheckFailed: If the store cannot be read
        """
        try:
            budget = await self._storage.get_budget(user_id, period)
            if not budget or budget <= 0:
                return None
            spent = await self._storage.sum_expenses(user_id, period)
        except Exception as e:
            raise BudgetCheckFailed(f"Could not read budget for {period}: {e}") from e

        return BudgetStatus(
            period=period,
            budget=budget,
            spent=spent,
            remaining=max(Decimal("0"), budget - spent),
            percent=percent_used(spent, budget),
        )

    async def evaluate(self, user_id: str, period: str) -> Optional[NotificationEvent]:
        """
        Warning or exceeded notification for the period, if any.

        Raises:
            BudgetCheckFailed: If the store cannot be read
        """
        status = await self.status(user_id, period)
        if status is None:
            return None

        if status.percent >= EXCEEDED_THRESHOLD:
            threshold = EXCEEDED_THRESHOLD
        elif status.percent >= WARNING_THRESHOLD:
            threshold = WARNING_THRESHOLD
        else:
            return None

        logger.info(
            "budget_threshold_crossed",
            user_id=user_id,
            period=period,
            threshold=threshold,
            percent=status.percent,
        )
        return build_notification(threshold, status, self._currency)


class BudgetNotificationGate:
    """Lets each (user, period, threshold) notification through once."""

    def __init__(
        self,
        notification_storage: NotificationStorageInterface,
        evaluator: BudgetThresholdEvaluator,
        thresholds: Optional[list[int]] = None,
        currency: str = "EGP",
    ):
        self._storage = notification_storage
        self._evaluator = evaluator
        self._thresholds = sorted(thresholds or DEFAULT_THRESHOLDS)
        self._currency = currency

    async def admit(
        self,
        user_id: str,
        event: Optional[NotificationEvent],
    ) -> Optional[NotificationEvent]:
        """
        Record and return the event unless it was already raised.

        Raises:
            BudgetCheckFailed: If the notification store fails
        """
        if event is None:
            return None
        try:
            if await self._storage.has_notification(user_id, event.period, event.threshold):
                logger.info(
                    "budget_notification_already_raised",
                    user_id=user_id,
                    period=event.period,
                    threshold=event.threshold,
                )
                return None
            await self._storage.record(user_id, event)
        except Exception as e:
            raise BudgetCheckFailed(f"Notification store failed: {e}") from e
        return event

    async def check_all_thresholds(
        self,
        user_id: str,
        period: str,
    ) -> list[NotificationEvent]:
        """
        Raise every crossed threshold not yet notified, lowest first.

        Raises:
            BudgetCheckFailed: If a store cannot be read
        """
        status = await self._evaluator.status(user_id, period)
        if status is None:
            return []

        raised = []
        for threshold in self._thresholds:
            if status.percent < threshold:
                break
            event = await self.admit(
                user_id,
                build_notification(threshold, status, self._currency),
            )
            if event is not None:
                raised.append(event)
        return raised
