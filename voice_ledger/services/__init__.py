"""Services package."""

from voice_ledger.services.chain import (
    ChainExhausted,
    ChainResult,
    ChainStep,
    ProviderChain,
    ProviderFailure,
)
from voice_ledger.services.storage import (
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
)

__all__ = [
    # Provider chain
    "ChainExhausted",
    "ChainResult",
    "ChainStep",
    "ProviderChain",
    "ProviderFailure",
    # Storage services
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "ConnectionError",
    "DuplicateError",
    "ExpenseStorageInterface",
    "NotFoundError",
    "NotificationStorageInterface",
    "PatternStorageInterface",
    "PersistenceFailed",
    "StorageError",
]
