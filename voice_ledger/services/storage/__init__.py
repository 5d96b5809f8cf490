"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
Google Sheets is the production backend; the in-memory stores back tests
and local runs.
"""

from voice_ledger.services.storage.interface import (
    AuditStorageInterface,
    BudgetStorageInterface,
    ConnectionError,
    DuplicateError,
    ExpenseStorageInterface,
    NotFoundError,
    NotificationStorageInterface,
    PatternStorageInterface,
    PersistenceFailed,
    StorageError,
    reinforce_pattern,
)
from voice_ledger.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryBudgetStore,
    InMemoryExpenseStore,
    InMemoryNotificationStore,
    InMemoryPatternStore,
)
from voice_ledger.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    GoogleSheetsNotificationStorage,
    GoogleSheetsPatternStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "ExpenseStorageInterface",
    "NotificationStorageInterface",
    "PatternStorageInterface",
    "reinforce_pattern",
    # Exceptions
    "ConnectionError",
    "DuplicateError",
    "NotFoundError",
    "PersistenceFailed",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryBudgetStore",
    "InMemoryExpenseStore",
    "InMemoryNotificationStore",
    "InMemoryPatternStore",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsBudgetStorage",
    "GoogleSheetsClient",
    "GoogleSheetsExpenseStorage",
    "GoogleSheetsNotificationStorage",
    "GoogleSheetsPatternStorage",
]
