"""
Audit Logger

DESIGN DECISION: Every step of a voice request is logged.
This provides:
1. Traceability from audio to stored expense
2. Debugging capability when a provider misbehaves
3. A record of every processing session for the user

The audit logger:
- Is async so it composes with the pipeline
- Gracefully handles failures (never fails a request because logging failed)
- Supports correlation IDs to trace all events of one request
"""

from typing import Optional
from uuid import UUID

import structlog

from voice_ledger.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity
from voice_ledger.models.expense import CandidateItem, NotificationEvent, PersistedExpense
from voice_ledger.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage, when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger(__name__)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
            self._logger.error("audit_event", **log_dict)
        elif event.severity == AuditSeverity.WARNING:
            self._logger.warning("audit_event", **log_dict)
        elif event.severity == AuditSeverity.DEBUG:
            self._logger.debug("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    async def log_voice_received(
        self,
        user_id: str,
        session_id: UUID,
        audio_size: int,
        mime_type: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.voice_received(
            user_id=user_id,
            session_id=session_id,
            audio_size=audio_size,
            mime_type=mime_type,
            correlation_id=correlation_id,
        ))

    async def log_transcription_completed(
        self,
        user_id: str,
        provider: str,
        text: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transcription_completed(
            user_id=user_id,
            provider=provider,
            text_length=len(text),
            correlation_id=correlation_id,
        ))

    async def log_provider_failures(
        self,
        user_id: str,
        failures: list,
        correlation_id: UUID,
    ) -> None:
        """Log one event per provider that failed before the chain settled."""
        for failure in failures:
            await self.log(AuditEventBuilder.transcription_provider_failed(
                user_id=user_id,
                provider=failure.provider,
                reason=failure.reason,
                correlation_id=correlation_id,
            ))

    async def log_transcription_failed(
        self,
        user_id: str,
        reasons: list[str],
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.transcription_failed(
            user_id=user_id,
            reasons=reasons,
            correlation_id=correlation_id,
        ))

    async def log_no_speech(
        self,
        user_id: str,
        provider: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.no_speech_detected(
            user_id=user_id,
            provider=provider,
            correlation_id=correlation_id,
        ))

    async def log_extraction(
        self,
        user_id: str,
        source: str,
        items: list[CandidateItem],
        correlation_id: UUID,
        fallback_reason: Optional[str] = None,
    ) -> None:
        """Log the extraction result, preceded by the fallback reason if any."""
        if fallback_reason:
            await self.log(AuditEventBuilder.extraction_fallback(
                user_id=user_id,
                reason=fallback_reason,
                correlation_id=correlation_id,
            ))
        await self.log(AuditEventBuilder.extraction_completed(
            user_id=user_id,
            source=source,
            item_count=len(items),
            correlation_id=correlation_id,
        ))

    async def log_pattern_learned(
        self,
        user_id: str,
        pattern: str,
        category: str,
        confidence: float,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.pattern_learned(
            user_id=user_id,
            pattern=pattern,
            category=category,
            confidence=confidence,
            correlation_id=correlation_id,
        ))

    async def log_learning_failed(
        self,
        user_id: str,
        pattern: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.learning_failed(
            user_id=user_id,
            pattern=pattern,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_expense_saved(
        self,
        expense: PersistedExpense,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.expense_saved(
            user_id=expense.user_id,
            expense_id=expense.id,
            description=expense.description,
            amount=str(expense.amount),
            category=expense.category,
            correlation_id=correlation_id,
        ))

    async def log_duplicate_skipped(
        self,
        user_id: str,
        item: CandidateItem,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.duplicate_skipped(
            user_id=user_id,
            description=item.description,
            amount=str(item.amount),
            correlation_id=correlation_id,
        ))

    async def log_save_failed(
        self,
        user_id: str,
        description: str,
        error_message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(AuditEventBuilder.save_failed(
            user_id=user_id,
            description=description,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_notification_raised(
        self,
        user_id: str,
        event: NotificationEvent,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.budget_notification_raised(
            user_id=user_id,
            period=event.period,
            threshold=event.threshold,
            percent=event.percent,
            correlation_id=correlation_id,
        ))

    async def log_budget_check_failed(
        self,
        user_id: str,
        period: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.budget_check_failed(
            user_id=user_id,
            period=period,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

    async def log_session(
        self,
        user_id: str,
        session_id: UUID,
        transcription: str,
        item_count: int,
        saved_count: int,
        confidence: float,
        metadata: dict,
        correlation_id: UUID,
    ) -> None:
        """Record the processing session, including metadata."""
        await self.log(AuditEventBuilder.processing_session_recorded(
            user_id=user_id,
            session_id=session_id,
            transcription=transcription,
            item_count=item_count,
            saved_count=saved_count,
            confidence=confidence,
            metadata=metadata,
            correlation_id=correlation_id,
        ))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        await self.log(AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        ))

    async def log_external_service_error(
        self,
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log external service error."""
        await self.log(AuditEventBuilder.external_service_error(
            service=service,
            error_message=error_message,
            correlation_id=correlation_id,
        ))

