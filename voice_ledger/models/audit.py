"""
Audit Models for Voice Ledger

Every significant step of a voice request is logged for audit purposes.
This provides:
1. Complete traceability from audio to persisted expense
2. Debugging information when a provider misbehaves
3. A processing-session history per user
4. Ability to reconstruct what the pipeline decided and why

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

import json
from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.

    Every stage of the voice pipeline has its own event types.
    """
    # Intake
    VOICE_RECEIVED = "voice_received"

    # Transcription
    TRANSCRIPTION_COMPLETED = "transcription_completed"
    TRANSCRIPTION_PROVIDER_FAILED = "transcription_provider_failed"
    TRANSCRIPTION_FAILED = "transcription_failed"
    NO_SPEECH_DETECTED = "no_speech_detected"

    # Extraction
    EXTRACTION_COMPLETED = "extraction_completed"
    EXTRACTION_FALLBACK = "extraction_fallback"

    # Learning
    PATTERN_LEARNED = "pattern_learned"
    LEARNING_FAILED = "learning_failed"

    # Persistence
    EXPENSE_SAVED = "expense_saved"
    DUPLICATE_SKIPPED = "duplicate_skipped"
    SAVE_FAILED = "save_failed"

    # Budget
    BUDGET_NOTIFICATION_RAISED = "budget_notification_raised"
    BUDGET_CHECK_FAILED = "budget_check_failed"

    # Session analytics
    PROCESSING_SESSION_RECORDED = "processing_session_recorded"

    # System events
    SYSTEM_ERROR = "system_error"
    EXTERNAL_SERVICE_ERROR = "external_service_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.utcnow,
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Who the event is about
    user_id: Optional[str] = Field(
        default=None,
        description="User the request belongs to"
    )

    # Context - what entity is this about?
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'expense', 'session', 'pattern')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (all events of one voice request)"
    )

    # Event details
    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )

    # Additional data (event-specific)
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, user_id, entity_type,
         entity_id, correlation_id, description, details_json, error_message,
         is_user_action]
        """
        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.voice_received(user_id, session_id, size, correlation_id)
        event = AuditEventBuilder.expense_saved(expense, correlation_id)
    """

    @staticmethod
    def voice_received(
        user_id: str,
        session_id: UUID,
        audio_size: int,
        mime_type: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VOICE_RECEIVED,
            user_id=user_id,
            entity_type="session",
            entity_id=session_id,
            correlation_id=correlation_id,
            description=f"Voice input received ({audio_size} bytes)",
            details={
                "audio_size_bytes": audio_size,
                "mime_type": mime_type,
            },
            is_user_action=True,
        )

    @staticmethod
    def transcription_completed(
        user_id: str,
        provider: str,
        text_length: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSCRIPTION_COMPLETED,
            user_id=user_id,
            entity_type="session",
            correlation_id=correlation_id,
            description=f"Transcribed by {provider}",
            details={
                "provider": provider,
                "text_length": text_length,
            },
        )

    @staticmethod
    def transcription_provider_failed(
        user_id: str,
        provider: str,
        reason: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSCRIPTION_PROVIDER_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="session",
            correlation_id=correlation_id,
            description=f"Transcription provider {provider} failed",
            error_message=reason,
            details={
                "provider": provider,
            },
        )

    @staticmethod
    def transcription_failed(
        user_id: str,
        reasons: list[str],
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.TRANSCRIPTION_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            entity_type="session",
            correlation_id=correlation_id,
            description="All transcription providers failed",
            error_code="transcription_failed",
            error_message="; ".join(reasons),
            details={
                "reasons": reasons,
            },
        )

    @staticmethod
    def no_speech_detected(
        user_id: str,
        provider: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.NO_SPEECH_DETECTED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="session",
            correlation_id=correlation_id,
            description="Transcription succeeded but contained no speech",
            details={
                "provider": provider,
            },
        )

    @staticmethod
    def extraction_completed(
        user_id: str,
        source: str,
        item_count: int,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_COMPLETED,
            user_id=user_id,
            entity_type="session",
            correlation_id=correlation_id,
            description=f"Extracted {item_count} items via {source}",
            details={
                "source": source,
                "item_count": item_count,
            },
        )

    @staticmethod
    def extraction_fallback(
        user_id: str,
        reason: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTRACTION_FALLBACK,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="session",
            correlation_id=correlation_id,
            description="Structured extraction unusable, falling back to patterns",
            error_message=reason,
        )

    @staticmethod
    def pattern_learned(
        user_id: str,
        pattern: str,
        category: str,
        confidence: float,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PATTERN_LEARNED,
            severity=AuditSeverity.DEBUG,
            user_id=user_id,
            entity_type="pattern",
            correlation_id=correlation_id,
            description=f"Learned '{pattern[:80]}' → {category}",
            details={
                "pattern": pattern,
                "category": category,
                "observed_confidence": confidence,
            },
        )

    @staticmethod
    def learning_failed(
        user_id: str,
        pattern: str,
        error_message: str,
        correlation_id: UUID,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.LEARNING_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="pattern",
            correlation_id=correlation_id,
            description="Could not record category learning",
            error_message=error_message,
            details={
                "pattern": pattern,
            },
        )

    @staticmethod
    def expense_saved(
        user_id: str,
        expense_id: UUID,
        description: str,
        amount: str,
        category: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXPENSE_SAVED,
            user_id=user_id,
            entity_type="expense",
            entity_id=expense_id,
            correlation_id=correlation_id,
            description=f"Expense saved: {description} - {amount}",
            details={
                "description": description,
                "amount": amount,
                "category": category,
            },
        )

    @staticmethod
    def duplicate_skipped(
        user_id: str,
        description: str,
        amount: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.DUPLICATE_SKIPPED,
            user_id=user_id,
            entity_type="expense",
            correlation_id=correlation_id,
            description=f"Skipped duplicate expense: {description} - {amount}",
            details={
                "description": description,
                "amount": amount,
            },
        )

    @staticmethod
    def save_failed(
        user_id: str,
        description: str,
        error_message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SAVE_FAILED,
            severity=AuditSeverity.ERROR,
            user_id=user_id,
            entity_type="expense",
            correlation_id=correlation_id,
            description=f"Failed to save expense: {description}",
            error_code="persistence_failed",
            error_message=error_message,
        )

    @staticmethod
    def budget_notification_raised(
        user_id: str,
        period: str,
        threshold: int,
        percent: int,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_NOTIFICATION_RAISED,
            user_id=user_id,
            entity_type="budget",
            correlation_id=correlation_id,
            description=f"Budget {threshold}% threshold crossed for {period}",
            details={
                "period": period,
                "threshold": threshold,
                "percent": percent,
            },
        )

    @staticmethod
    def budget_check_failed(
        user_id: str,
        period: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_CHECK_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="budget",
            correlation_id=correlation_id,
            description=f"Budget check failed for {period}",
            error_message=error_message,
        )

    @staticmethod
    def processing_session_recorded(
        user_id: str,
        session_id: UUID,
        transcription: str,
        item_count: int,
        saved_count: int,
        confidence: float,
        metadata: dict,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.PROCESSING_SESSION_RECORDED,
            user_id=user_id,
            entity_type="session",
            entity_id=session_id,
            correlation_id=correlation_id,
            description=f"Processed {item_count} expenses from voice input, saved {saved_count}",
            details={
                "transcription": transcription[:300],
                "item_count": item_count,
                "saved_count": saved_count,
                "confidence": confidence,
                **metadata,
            },
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def external_service_error(
        service: str,
        error_message: str,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.EXTERNAL_SERVICE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"External service error: {service}",
            error_message=error_message,
            details={
                "service": service,
            },
            correlation_id=correlation_id,
        )
