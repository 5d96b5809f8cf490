"""
Core Data Models for Voice Ledger

These models define the strict schemas for all data flowing through the
voice pipeline. They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be serializable for storage and logging
4. Support the audit trail

DESIGN DECISION: Categories are an "enum-ish" string. The enum below is the
canonical vocabulary, but learned patterns and stored rows carry plain
strings so a user-specific category never breaks deserialization.
"""

from datetime import date, datetime
from decimal import ROUND_HALF_UP, Decimal, InvalidOperation
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    field_validator,
    model_validator,
)


CENTS = Decimal("0.01")


def to_amount(value: Any) -> Decimal:
    """Convert a number-like value to a Decimal rounded to cents."""
    try:
        amount = Decimal(str(value).strip())
        if amount.is_finite():
            return amount.quantize(CENTS, rounding=ROUND_HALF_UP)
    except (InvalidOperation, TypeError) as e:
        raise ValueError(f"Not a valid amount: {value!r}") from e
    raise ValueError(f"Not a finite amount: {value!r}")


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class ExpenseCategory(str, Enum):
    """
    Supported expense categories.

    OTHERS is the default when nothing better is known.
    """
    FOOD = "Food"
    TRANSPORTATION = "Transportation"
    SHOPPING = "Shopping"
    ENTERTAINMENT = "Entertainment"
    HEALTH = "Health"
    UTILITIES = "Utilities"
    TRAVEL = "Travel"
    BILLS = "Bills"
    EDUCATION = "Education"
    OTHERS = "Others"

    @classmethod
    def names(cls) -> list[str]:
        return [category.value for category in cls]


class ExtractionSource(str, Enum):
    """Which extractor produced a candidate item."""
    AI = "ai"
    REGEX = "regex"


class ProcessingStatus(str, Enum):
    """
    Outcome of a voice request.

    NO_SPEECH_DETECTED is a successful transcription with no text,
    not an error.
    """
    COMPLETED = "completed"
    NO_SPEECH_DETECTED = "no_speech_detected"
    TRANSCRIPTION_FAILED = "transcription_failed"


# =============================================================================
# REQUEST MODELS
# =============================================================================

class Utterance(BaseModel):
    """
    One spoken request.

    Ephemeral: exists only for the duration of a single request.
    Either raw audio or an already-known transcript must be present.
    """

    audio: Optional[bytes] = Field(
        default=None,
        description="Raw audio bytes"
    )
    mime_type: str = Field(
        default="audio/webm",
        description="Audio mime type"
    )
    text: Optional[str] = Field(
        default=None,
        description="Already-known transcript, if any"
    )
    received_at: datetime = Field(
        default_factory=datetime.utcnow
    )

    @field_validator('mime_type')
    @classmethod
    def normalize_mime_type(cls, v: str) -> str:
        # "audio/webm;codecs=opus" → "audio/webm"
        return v.split(";")[0].strip().lower()

    @model_validator(mode='after')
    def require_audio_or_text(self) -> 'Utterance':
        if self.audio is None and self.text is None:
            raise ValueError("Utterance needs audio or text")
        return self


class RequestContext(BaseModel):
    """
    Request-scoped context threaded through every pipeline stage.

    Replaces per-instance user/session state: every stage receives
    exactly the identity and dates it works on.
    """
    model_config = ConfigDict(frozen=True)

    user_id: str = Field(
        ...,
        min_length=1,
        description="Authenticated user identifier"
    )
    session_id: UUID = Field(
        default_factory=uuid4,
        description="Identifier of this processing session"
    )
    correlation_id: UUID = Field(
        default_factory=uuid4,
        description="ID tying together all audit events of one request"
    )
    expense_date: date = Field(
        ...,
        description="Date every expense in this request is recorded on"
    )
    period: str = Field(
        ...,
        pattern=r"^\d{4}-\d{2}$",
        description="Budget period (YYYY-MM) the request belongs to"
    )


# =============================================================================
# EXPENSE MODELS
# =============================================================================

class CandidateItem(BaseModel):
    """
    An expense proposed by an extractor.

    Created during extraction; either persisted or discarded as a
    duplicate. Regex items start without category and confidence;
    both are filled in before persistence.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    description: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Short description of the purchase"
    )
    amount: Decimal = Field(
        ...,
        gt=0,
        description="Amount in the user's active currency"
    )
    category: Optional[str] = Field(
        default=None,
        description="Resolved category, None until classified"
    )
    confidence: Optional[float] = Field(
        default=None,
        ge=0.0,
        le=1.0,
        description="Advisory extraction confidence"
    )
    source: ExtractionSource = Field(
        ...,
        description="Extractor that produced this item"
    )

    @field_validator('amount', mode='before')
    @classmethod
    def quantize_amount(cls, v: Any) -> Decimal:
        return to_amount(v)

    @property
    def dedup_key(self) -> tuple[str, Decimal]:
        return dedup_key(self.description, self.amount)


class PersistedExpense(BaseModel):
    """
    An expense row owned by the Expense Store.

    Immutable once written (edits happen outside this pipeline).
    For a given (user_id, date) no two rows may share
    (description lower-cased, amount).
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique expense ID"
    )
    user_id: str
    description: str = Field(
        ...,
        min_length=1,
        max_length=200
    )
    amount: Decimal = Field(
        ...,
        gt=0
    )
    category: str
    date: date
    created_at: datetime = Field(
        default_factory=datetime.utcnow
    )
    origin: str = Field(
        default="voice",
        description="Where the expense came from"
    )

    @field_validator('amount', mode='before')
    @classmethod
    def quantize_amount(cls, v: Any) -> Decimal:
        return to_amount(v)

    @property
    def dedup_key(self) -> tuple[str, Decimal]:
        return dedup_key(self.description, self.amount)


def dedup_key(description: str, amount: Any) -> tuple[str, Decimal]:
    """Key under which two expenses count as the same logical expense."""
    return description.strip().lower(), to_amount(amount)


class LearnedPattern(BaseModel):
    """
    Per-user remembered mapping from a description fragment to a category.

    Confidence grows with reuse and never exceeds 0.9.
    Patterns are never deleted by the pipeline.
    """

    user_id: str
    description_pattern: str = Field(
        ...,
        min_length=1,
        description="Lower-cased description fragment"
    )
    suggested_category: str
    confidence_score: float = Field(
        ...,
        ge=0.0,
        le=1.0
    )
    usage_count: int = Field(
        default=1,
        ge=1
    )
    last_used: datetime = Field(
        default_factory=datetime.utcnow
    )

    @field_validator('description_pattern')
    @classmethod
    def lower_pattern(cls, v: str) -> str:
        return v.strip().lower()


# =============================================================================
# BUDGET MODELS
# =============================================================================

class BudgetSnapshot(BaseModel):
    """Budget configured for one month. Read-only to the pipeline."""

    month: str = Field(
        ...,
        pattern=r"^\d{4}-\d{2}$"
    )
    budget_amount: Decimal = Field(
        ...,
        gt=0
    )
    currency: str = "EGP"


class BudgetStatus(BaseModel):
    """Spend versus budget for one period."""

    period: str
    budget: Decimal
    spent: Decimal
    remaining: Decimal
    percent: int


class NotificationEvent(BaseModel):
    """
    Budget notification computed by the pipeline.

    Delivery is someone else's job; the pipeline only avoids raising
    the same threshold twice in one period.
    """

    title: str
    body: str
    threshold: int = Field(
        ...,
        description="Budget percentage that was crossed"
    )
    percent: int = Field(
        ...,
        ge=0
    )
    period: str
    kind: str = "budget"
    created_at: datetime = Field(
        default_factory=datetime.utcnow
    )


# =============================================================================
# RESULT MODEL
# =============================================================================

class VoiceProcessingResult(BaseModel):
    """What the caller receives for one voice request."""

    transcription: str = ""
    expenses: list[PersistedExpense] = Field(default_factory=list)
    suggestions: list[str] = Field(default_factory=list)
    confidence: float = Field(
        default=0.0,
        ge=0.0,
        le=1.0,
        description="Mean confidence of the extracted items"
    )
    notification: Optional[NotificationEvent] = None
    errors: list[str] = Field(default_factory=list)

    status: ProcessingStatus = ProcessingStatus.COMPLETED
    session_id: Optional[UUID] = None
    metadata: dict[str, Any] = Field(default_factory=dict)

    @property
    def saved_count(self) -> int:
        return len(self.expenses)
