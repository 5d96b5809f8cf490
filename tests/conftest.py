"""
Shared fixtures for Voice Ledger tests.

Providers are scripted fakes and storage is in memory.
"""

from typing import Optional

import pytest

from voice_ledger.audit import AuditLogger
from voice_ledger.config import PipelineSettings
from voice_ledger.extraction import StructuredExtractor
from voice_ledger.models.expense import RequestContext
from voice_ledger.orchestrator import VoiceExpenseFlow
from voice_ledger.services.llm import CompletionProvider
from voice_ledger.services.storage import (
    InMemoryAuditStorage,
    InMemoryBudgetStore,
    InMemoryExpenseStore,
    InMemoryNotificationStore,
    InMemoryPatternStore,
)
from voice_ledger.services.transcription import (
    TranscriptionOrchestrator,
    TranscriptionProvider,
)

from tests.fakes import TODAY, ScriptedTranscriber


@pytest.fixture
def pipeline_settings():
    return PipelineSettings(_env_file=None)


@pytest.fixture
def ctx():
    return RequestContext(
        user_id="user-1",
        expense_date=TODAY,
        period="2025-01",
    )


@pytest.fixture
def stores():
    expenses = InMemoryExpenseStore()
    return {
        "expenses": expenses,
        "patterns": InMemoryPatternStore(),
        "budgets": InMemoryBudgetStore(expenses),
        "notifications": InMemoryNotificationStore(),
        "audit": InMemoryAuditStorage(),
    }


@pytest.fixture
def make_flow(pipeline_settings, stores):
    """Build a flow over the shared in-memory stores."""

    def _make(
        transcribers: Optional[list[TranscriptionProvider]] = None,
        completion: Optional[CompletionProvider] = None,
        expense_store=None,
        pattern_store=None,
        budget_store=None,
        timeout: float = 1.0,
    ) -> VoiceExpenseFlow:
        expense_store = expense_store or stores["expenses"]
        transcriber = TranscriptionOrchestrator(
            transcribers or [ScriptedTranscriber("fake", text="coffee 5")],
            timeout=timeout,
        )
        extractor = StructuredExtractor(completion) if completion else None
        return VoiceExpenseFlow(
            transcriber=transcriber,
            extractor=extractor,
            expense_storage=expense_store,
            pattern_storage=pattern_store or stores["patterns"],
            budget_storage=budget_store or stores["budgets"],
            notification_storage=stores["notifications"],
            audit_logger=AuditLogger(stores["audit"]),
            settings=pipeline_settings,
        )

    return _make
