"""Budget periods, threshold evaluation and notification gating."""

from voice_ledger.budget.periods import (
    format_period,
    month_bounds,
    month_name,
    resolve_expense_date,
    resolve_period,
)
from voice_ledger.budget.evaluator import (
    BudgetCheckFailed,
    BudgetNotificationGate,
    BudgetThresholdEvaluator,
    build_notification,
    percent_used,
)

__all__ = [
    "BudgetCheckFailed",
    "BudgetNotificationGate",
    "BudgetThresholdEvaluator",
    "build_notification",
    "format_period",
    "month_bounds",
    "month_name",
    "percent_used",
    "resolve_expense_date",
    "resolve_period",
]
