"""
Data Models Package

This package contains all Pydantic models used in the Voice Ledger system.
All data flowing through the pipeline must conform to these schemas.
"""

from voice_ledger.models.expense import (
    BudgetSnapshot,
    BudgetStatus,
    CandidateItem,
    ExpenseCategory,
    ExtractionSource,
    LearnedPattern,
    NotificationEvent,
    PersistedExpense,
    ProcessingStatus,
    RequestContext,
    Utterance,
    VoiceProcessingResult,
    dedup_key,
    to_amount,
)
from voice_ledger.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Expense models
    "BudgetSnapshot",
    "BudgetStatus",
    "CandidateItem",
    "ExpenseCategory",
    "ExtractionSource",
    "LearnedPattern",
    "NotificationEvent",
    "PersistedExpense",
    "ProcessingStatus",
    "RequestContext",
    "Utterance",
    "VoiceProcessingResult",
    "dedup_key",
    "to_amount",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
