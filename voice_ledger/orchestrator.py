"""
Main Orchestrator for Voice Ledger

This module ties together all the components and defines the end-to-end
voice flow:

    audio → transcribe → normalize digits → extract (AI, else patterns)
          → categorize + score → dedupe → save → budget check

DESIGN DECISION: The orchestrator enforces the failure policy:
- Only total transcription failure loses the request
- AI extraction, learning writes, budget checks and audit writes are
  enhancements; when they fail the user still gets a best-effort result
- A single expense that fails to save never stops the others
- Every step is audited under one correlation ID

All per-request state lives in a RequestContext passed through every
stage. Flow instances hold collaborators only and can serve concurrent
requests.
"""

import time
from datetime import date
from typing import Optional

import structlog

from voice_ledger.audit import AuditLogger
from voice_ledger.budget import (
    BudgetCheckFailed,
    BudgetNotificationGate,
    BudgetThresholdEvaluator,
    resolve_expense_date,
    resolve_period,
)
from voice_ledger.categorization import CategoryClassifier, overall_confidence, score
from voice_ledger.config import PipelineSettings, get_settings
from voice_ledger.extraction import (
    StructuredExtractor,
    extract_regex,
    normalize_digits,
)
from voice_ledger.models.expense import (
    CandidateItem,
    ExpenseCategory,
    ExtractionSource,
    NotificationEvent,
    PersistedExpense,
    ProcessingStatus,
    RequestContext,
    Utterance,
    VoiceProcessingResult,
)
from voice_ledger.services.chain import ChainExhausted, ChainStep, ProviderChain
from voice_ledger.services.llm import GeminiCompletionProvider
from voice_ledger.services.storage import (
    BudgetStorageInterface,
    DuplicateError,
    ExpenseStorageInterface,
    GoogleSheetsAuditStorage,
    GoogleSheetsBudgetStorage,
    GoogleSheetsClient,
    GoogleSheetsExpenseStorage,
    GoogleSheetsNotificationStorage,
    GoogleSheetsPatternStorage,
    InMemoryAuditStorage,
    InMemoryBudgetStore,
    InMemoryExpenseStore,
    InMemoryNotificationStore,
    InMemoryPatternStore,
    NotificationStorageInterface,
    PatternStorageInterface,
    PersistenceFailed,
    StorageError,
)
from voice_ledger.services.transcription import (
    MANUAL_ENTRY_HINT,
    TranscriptionFailed,
    TranscriptionOrchestrator,
)
from voice_ledger.validation import ExpenseDeduplicator, dedupe


logger = structlog.get_logger(__name__)

LOW_CONFIDENCE = 0.7

NO_SPEECH_SUGGESTIONS = [
    "Try speaking more clearly or check your microphone",
    "Make sure you're in a quiet environment",
    'Try saying: "Coffee 5 dollars, lunch 15 dollars"',
]

NO_EXPENSES_SUGGESTIONS = [
    "Try saying: 'Coffee 5 EGP, lunch 15 EGP, movie tickets 50 EGP'",
    "Or: 'I spent 20 on groceries and 30 on gas'",
    "You can also say: 'Bought a shirt for 25 dollars'",
]

TRANSCRIPTION_FAILED_SUGGESTIONS = [
    "Speech recognition is unavailable right now. Please try again in a moment.",
    MANUAL_ENTRY_HINT,
    "Make sure your microphone is working and you have granted permission.",
]

SAVE_FAILED_SUGGESTION = "Some expenses could not be saved. Please try adding them manually."


class InvalidUtterance(ValueError):
    """The audio cannot be processed (unsupported format or too large)."""
    pass


def new_request_context(
    user_id: str,
    selected_month: Optional[str] = None,
    today: Optional[date] = None,
) -> RequestContext:
    """
    Context for one request.

    selected_month accepts "YYYY-MM" or "Mon YYYY"; expenses land on the
    15th of that month, or today when no valid month is given.
    """
    return RequestContext(
        user_id=user_id,
        expense_date=resolve_expense_date(selected_month, today),
        period=resolve_period(selected_month, today),
    )


def build_suggestions(
    items: list[CandidateItem],
    skipped_count: int = 0,
    insertion_errors: Optional[list[str]] = None,
) -> list[str]:
    """Guidance shown next to the result."""
    suggestions: list[str] = []

    if not items:
        suggestions.extend(NO_EXPENSES_SUGGESTIONS)
    else:
        if any((item.confidence or 0) < LOW_CONFIDENCE for item in items):
            suggestions.append("Consider adding more details for better categorization")

        categories = {item.category for item in items}
        if ExpenseCategory.FOOD.value not in categories:
            suggestions.append("Don't forget to add food expenses!")
        if ExpenseCategory.TRANSPORTATION.value not in categories:
            suggestions.append("Remember to include transportation costs")

    if skipped_count:
        suggestions.append(
            f"Skipped {skipped_count} expense(s) already recorded for this day."
        )

    if insertion_errors:
        suggestions.append(SAVE_FAILED_SUGGESTION)
        suggestions.extend(insertion_errors[:2])

    return suggestions


class VoiceExpenseFlow:
    """
    Orchestrates the voice expense flow.

    Flow:
    1. Validate → audio format and size
    2. Transcribe → providers in priority order
    3. Extract → AI first, pattern fallback on the same normalized text
    4. Categorize → learned patterns, keyword table, Others
    5. Dedupe → in-batch and against the day's stored expenses
    6. Save → one insert per surviving item
    7. Budget → threshold check against the updated total
    """

    def __init__(
        self,
        transcriber: Optional[TranscriptionOrchestrator],
        extractor: Optional[StructuredExtractor],
        expense_storage: ExpenseStorageInterface,
        pattern_storage: PatternStorageInterface,
        budget_storage: BudgetStorageInterface,
        notification_storage: NotificationStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[PipelineSettings] = None,
    ):
        self._settings = settings or get_settings().pipeline
        self._transcriber = transcriber
        self._extractor = extractor
        self._expense_storage = expense_storage
        self._audit_logger = audit_logger or AuditLogger()

        self._classifier = CategoryClassifier(pattern_storage, self._audit_logger)
        self._deduplicator = ExpenseDeduplicator(expense_storage)
        self._evaluator = BudgetThresholdEvaluator(
            budget_storage,
            currency=self._settings.default_currency,
        )
        self._gate = BudgetNotificationGate(
            notification_storage,
            self._evaluator,
            thresholds=self._settings.budget_thresholds_list,
            currency=self._settings.default_currency,
        )

        steps = []
        if extractor is not None:
            steps.append(ChainStep(ExtractionSource.AI.value, extractor.extract))
        steps.append(ChainStep(ExtractionSource.REGEX.value, self._extract_with_patterns))
        self._extraction_chain = ProviderChain(steps)

    @property
    def notification_gate(self) -> BudgetNotificationGate:
        return self._gate

    # =========================================================================
    # ENTRY POINTS
    # =========================================================================

    async def process_utterance(
        self,
        utterance: Utterance,
        ctx: RequestContext,
    ) -> VoiceProcessingResult:
        """Process audio, or the transcript when one is already known."""
        if utterance.text is not None:
            return await self.process_text(utterance.text, ctx)
        return await self.process_audio(utterance.audio, utterance.mime_type, ctx)

    async def process_audio(
        self,
        audio: bytes,
        mime_type: str,
        ctx: RequestContext,
    ) -> VoiceProcessingResult:
        """
        Run the full pipeline on recorded audio.

        Raises:
            InvalidUtterance: If the audio format or size is not accepted
        """
        started = time.monotonic()
        mime_type = mime_type.split(";")[0].strip().lower()
        self._validate_audio(audio, mime_type)

        await self._audit_logger.log_voice_received(
            user_id=ctx.user_id,
            session_id=ctx.session_id,
            audio_size=len(audio),
            mime_type=mime_type,
            correlation_id=ctx.correlation_id,
        )

        if self._transcriber is None:
            return await self._transcription_failed(ctx, [], started)

        try:
            outcome = await self._transcriber.transcribe(audio, mime_type)
        except TranscriptionFailed as e:
            await self._audit_logger.log_provider_failures(
                ctx.user_id, e.failures, ctx.correlation_id
            )
            return await self._transcription_failed(ctx, e.reasons, started)

        await self._audit_logger.log_provider_failures(
            ctx.user_id, outcome.failures, ctx.correlation_id
        )
        await self._audit_logger.log_transcription_completed(
            ctx.user_id, outcome.provider_used, outcome.text, ctx.correlation_id
        )

        metadata = {
            "input_type": "voice",
            "transcription_provider": outcome.provider_used,
        }
        if not outcome.text:
            await self._audit_logger.log_no_speech(
                ctx.user_id, outcome.provider_used, ctx.correlation_id
            )
            return self._no_speech(ctx, metadata, started)

        return await self._run_pipeline(outcome.text, ctx, metadata, started)

    async def process_text(
        self,
        text: str,
        ctx: RequestContext,
    ) -> VoiceProcessingResult:
        """Run the pipeline on an already-known transcript."""
        started = time.monotonic()
        metadata = {"input_type": "text"}
        text = (text or "").strip()
        if not text:
            return self._no_speech(ctx, metadata, started)
        return await self._run_pipeline(text, ctx, metadata, started)

    # =========================================================================
    # PIPELINE
    # =========================================================================

    async def _run_pipeline(
        self,
        transcription: str,
        ctx: RequestContext,
        metadata: dict,
        started: float,
    ) -> VoiceProcessingResult:
        normalized = normalize_digits(transcription)

        items, source = await self._extract(normalized, ctx)
        items = await self._categorize(items, ctx)
        confidence = overall_confidence(items)

        kept, skipped = await self._dedupe(items, ctx)
        for item in skipped:
            await self._audit_logger.log_duplicate_skipped(ctx.user_id, item, ctx.correlation_id)

        saved, insertion_errors, duplicates = await self._save(kept, ctx)
        skipped_count = len(skipped) + duplicates

        notification = None
        if saved:
            notification = await self._check_budget(ctx)

        metadata = {
            **metadata,
            "processing_time_ms": int((time.monotonic() - started) * 1000),
            "extraction_source": source,
            "expense_date": ctx.expense_date.isoformat(),
            "period": ctx.period,
            "duplicates_skipped": skipped_count,
            "insertion_errors": len(insertion_errors),
        }
        await self._audit_logger.log_session(
            user_id=ctx.user_id,
            session_id=ctx.session_id,
            transcription=transcription,
            item_count=len(items),
            saved_count=len(saved),
            confidence=confidence,
            metadata=metadata,
            correlation_id=ctx.correlation_id,
        )

        return VoiceProcessingResult(
            transcription=transcription,
            expenses=saved,
            suggestions=build_suggestions(items, skipped_count, insertion_errors),
            confidence=confidence,
            notification=notification,
            errors=insertion_errors,
            status=ProcessingStatus.COMPLETED,
            session_id=ctx.session_id,
            metadata=metadata,
        )

    async def _extract_with_patterns(self, text: str) -> list[CandidateItem]:
        return extract_regex(text)

    async def _extract(
        self,
        text: str,
        ctx: RequestContext,
    ) -> tuple[list[CandidateItem], str]:
        """AI extraction, falling back to patterns on the same text."""
        try:
            result = await self._extraction_chain.run(text)
        except ChainExhausted as e:
            await self._audit_logger.log_error(
                error_type="extraction_failed",
                error_message=str(e),
                correlation_id=ctx.correlation_id,
            )
            return [], ExtractionSource.REGEX.value

        fallback_reason = "; ".join(f.reason for f in result.failures) or None
        if fallback_reason:
            logger.warning(
                "structured_extraction_fallback",
                user_id=ctx.user_id,
                reason=fallback_reason,
            )
        await self._audit_logger.log_extraction(
            user_id=ctx.user_id,
            source=result.provider,
            items=result.value,
            correlation_id=ctx.correlation_id,
            fallback_reason=fallback_reason,
        )
        return list(result.value), result.provider

    async def _categorize(
        self,
        items: list[CandidateItem],
        ctx: RequestContext,
    ) -> list[CandidateItem]:
        """Fill in category and confidence where the extractor left them unset."""
        if not items:
            return []

        needs_category = any(item.category is None for item in items)
        patterns = []
        if needs_category:
            patterns = await self._classifier.load_patterns(
                ctx, limit=self._settings.max_learned_patterns
            )

        categorized = []
        for item in items:
            category = item.category
            if category is None:
                category = await self._classifier.classify_and_learn(
                    item.description, patterns, ctx
                )
            confidence = item.confidence
            if confidence is None:
                confidence = score(item.description, item.amount, category)
            categorized.append(item.model_copy(update={
                "category": category,
                "confidence": confidence,
            }))
        return categorized

    async def _dedupe(
        self,
        items: list[CandidateItem],
        ctx: RequestContext,
    ) -> tuple[list[CandidateItem], list[CandidateItem]]:
        try:
            result = await self._deduplicator.filter(items, ctx)
            return result.kept, result.skipped
        except StorageError as e:
            # Without the stored keys only in-batch duplicates can be caught;
            # insert() still rejects stored ones.
            logger.warning("existing_expenses_unavailable", user_id=ctx.user_id, error=str(e))
            await self._audit_logger.log_external_service_error(
                service="expense_store",
                error_message=str(e),
                correlation_id=ctx.correlation_id,
            )
            kept = dedupe(items, set())
            kept_ids = {id(item) for item in kept}
            return kept, [item for item in items if id(item) not in kept_ids]

    async def _save(
        self,
        items: list[CandidateItem],
        ctx: RequestContext,
    ) -> tuple[list[PersistedExpense], list[str], int]:
        """
        Insert items one by one.

        Returns:
            (saved expenses, error messages, number rejected as duplicates)
        """
        saved: list[PersistedExpense] = []
        errors: list[str] = []
        duplicates = 0

        for item in items:
            try:
                expense = await self._expense_storage.insert(
                    user_id=ctx.user_id,
                    description=item.description,
                    amount=item.amount,
                    category=item.category or ExpenseCategory.OTHERS.value,
                    expense_date=ctx.expense_date,
                )
            except DuplicateError:
                duplicates += 1
                await self._audit_logger.log_duplicate_skipped(
                    ctx.user_id, item, ctx.correlation_id
                )
                continue
            except PersistenceFailed as e:
                errors.append(str(e))
                await self._audit_logger.log_save_failed(
                    ctx.user_id, item.description, e.reason, ctx.correlation_id
                )
                continue
            except Exception as e:
                logger.error(
                    "expense_insert_failed",
                    user_id=ctx.user_id,
                    description=item.description,
                    error=str(e),
                )
                errors.append(f"Failed to process {item.description}")
                await self._audit_logger.log_save_failed(
                    ctx.user_id, item.description, str(e), ctx.correlation_id
                )
                continue

            saved.append(expense)
            await self._audit_logger.log_expense_saved(expense, ctx.correlation_id)

        return saved, errors, duplicates

    async def _check_budget(self, ctx: RequestContext) -> Optional[NotificationEvent]:
        try:
            event = await self._evaluator.evaluate(ctx.user_id, ctx.period)
            notification = await self._gate.admit(ctx.user_id, event)
        except BudgetCheckFailed as e:
            logger.warning("budget_check_failed", user_id=ctx.user_id, error=str(e))
            await self._audit_logger.log_budget_check_failed(
                ctx.user_id, ctx.period, str(e), ctx.correlation_id
            )
            return None

        if notification is not None:
            await self._audit_logger.log_notification_raised(
                ctx.user_id, notification, ctx.correlation_id
            )
        return notification

    # =========================================================================
    # EARLY EXITS
    # =========================================================================

    def _validate_audio(self, audio: Optional[bytes], mime_type: str) -> None:
        if not audio:
            raise InvalidUtterance("No audio received")
        if mime_type not in self._settings.supported_formats_list:
            raise InvalidUtterance(
                f"Unsupported audio format: {mime_type}. "
                f"Supported: {', '.join(self._settings.supported_formats_list)}"
            )
        if len(audio) > self._settings.max_audio_size_bytes:
            raise InvalidUtterance(
                f"Audio too large: {len(audio)} bytes "
                f"(max {self._settings.max_audio_size_mb}MB)"
            )

    async def _transcription_failed(
        self,
        ctx: RequestContext,
        reasons: list[str],
        started: float,
    ) -> VoiceProcessingResult:
        await self._audit_logger.log_transcription_failed(
            ctx.user_id, reasons, ctx.correlation_id
        )
        return VoiceProcessingResult(
            suggestions=list(TRANSCRIPTION_FAILED_SUGGESTIONS),
            errors=reasons or ["No transcription providers are configured"],
            status=ProcessingStatus.TRANSCRIPTION_FAILED,
            session_id=ctx.session_id,
            metadata={
                "input_type": "voice",
                "processing_time_ms": int((time.monotonic() - started) * 1000),
            },
        )

    def _no_speech(
        self,
        ctx: RequestContext,
        metadata: dict,
        started: float,
    ) -> VoiceProcessingResult:
        return VoiceProcessingResult(
            suggestions=list(NO_SPEECH_SUGGESTIONS),
            confidence=0.0,
            status=ProcessingStatus.NO_SPEECH_DETECTED,
            session_id=ctx.session_id,
            metadata={
                **metadata,
                "processing_time_ms": int((time.monotonic() - started) * 1000),
            },
        )


def create_app_components(
    use_storage: bool = True,
) -> tuple[VoiceExpenseFlow, Optional[GoogleSheetsClient]]:
    """
    Factory function to create all application components.

    Args:
        use_storage: Whether to initialize Google Sheets storage.
                    Set to False to run on in-memory stores.

    Returns:
        (voice_flow, sheets_client)
    """
    sheets_client = None

    if use_storage:
        try:
            sheets_client = GoogleSheetsClient()
            expense_storage = GoogleSheetsExpenseStorage(sheets_client)
            pattern_storage = GoogleSheetsPatternStorage(sheets_client)
            budget_storage = GoogleSheetsBudgetStorage(sheets_client, expense_storage)
            notification_storage = GoogleSheetsNotificationStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        except Exception as e:
            logger.warning("storage_not_configured", error=str(e))
            sheets_client = None
            use_storage = False

    if not use_storage:
        expense_storage = InMemoryExpenseStore()
        pattern_storage = InMemoryPatternStore()
        budget_storage = InMemoryBudgetStore(expense_storage)
        notification_storage = InMemoryNotificationStore()
        audit_logger = AuditLogger(InMemoryAuditStorage())

    extractor = None
    try:
        extractor = StructuredExtractor(GeminiCompletionProvider())
    except Exception as e:
        # Pattern extraction still works without an LLM
        logger.warning("structured_extraction_unavailable", error=str(e))

    voice_flow = VoiceExpenseFlow(
        transcriber=TranscriptionOrchestrator.from_settings(),
        extractor=extractor,
        expense_storage=expense_storage,
        pattern_storage=pattern_storage,
        budget_storage=budget_storage,
        notification_storage=notification_storage,
        audit_logger=audit_logger,
    )

    return voice_flow, sheets_client
