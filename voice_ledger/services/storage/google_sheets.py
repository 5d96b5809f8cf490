"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is used as the default storage backend because:
1. Users can view their expenses and learned patterns directly in Sheets
2. No database setup required
3. Built-in backup (Google's infrastructure)
4. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions and no uniqueness constraints. insert() re-reads the
  day's rows before appending, which narrows but does not close the
  window for concurrent duplicate submissions.
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interfaces, so we can swap
to PostgreSQL/SQLite later without changing pipeline logic.
"""

import json
from datetime import date, datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_not_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from voice_ledger.budget.periods import month_bounds
from voice_ledger.config import get_settings
from voice_ledger.models.audit import AuditEvent, AuditEventType, AuditSeverity
from voice_ledger.models.expense import (
    BudgetSnapshot,
    LearnedPattern,
    NotificationEvent,
    PersistedExpense,
    dedup_key,
)
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


# Column mappings for each sheet
EXPENSE_COLUMNS = [
    "id",
    "user_id",
    "description",
    "amount",
    "category",
    "date",
    "created_at",
    "origin",
]

PATTERN_COLUMNS = [
    "user_id",
    "description_pattern",
    "suggested_category",
    "confidence_score",
    "usage_count",
    "last_used",
]

BUDGET_COLUMNS = [
    "user_id",
    "month",
    "budget_amount",
    "currency",
]

NOTIFICATION_COLUMNS = [
    "user_id",
    "period",
    "threshold",
    "percent",
    "kind",
    "title",
    "body",
    "created_at",
]

AUDIT_COLUMNS = [
    "event_id",
    "timestamp",
    "event_type",
    "severity",
    "user_id",
    "entity_type",
    "entity_id",
    "correlation_id",
    "description",
    "details_json",
    "error_message",
    "is_user_action",
]

_sheets_retry = retry(
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    retry=retry_if_not_exception_type(DuplicateError),
    reraise=True,
)


def _safe_get(row: list, index: int, default: str = "") -> str:
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and creates worksheets on first use.
    """

    def __init__(self):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = get_settings().google_sheets

    @_sheets_retry
    def connect(self) -> gspread.Client:
        """
        Establish connection to Google Sheets.

        Uses service account credentials for authentication.
        """
        if self._client is None:
            try:
                scopes = [
                    "https://www.googleapis.com/auth/spreadsheets",
                    "https://www.googleapis.com/auth/drive",
                ]
                credentials = Credentials.from_service_account_file(
                    self._settings.credentials_path,
                    scopes=scopes,
                )
                self._client = gspread.authorize(credentials)
            except FileNotFoundError:
                raise ConnectionError(
                    f"Google credentials file not found: {self._settings.credentials_path}"
                )
            except Exception as e:
                raise ConnectionError(f"Failed to connect to Google Sheets: {e}")

        return self._client

    def get_spreadsheet(self) -> gspread.Spreadsheet:
        """Get the configured spreadsheet."""
        if self._spreadsheet is None:
            client = self.connect()
            try:
                self._spreadsheet = client.open_by_key(
                    self._settings.spreadsheet_id
                )
            except gspread.SpreadsheetNotFound:
                raise NotFoundError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str], rows: int = 1000) -> gspread.Worksheet:
        """Get or create a worksheet with a header row."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=rows,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet

    def get_expenses_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.expenses_sheet_name, EXPENSE_COLUMNS)

    def get_patterns_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.patterns_sheet_name, PATTERN_COLUMNS)

    def get_budgets_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.budgets_sheet_name, BUDGET_COLUMNS, rows=200)

    def get_notifications_sheet(self) -> gspread.Worksheet:
        return self.get_worksheet(self._settings.notifications_sheet_name, NOTIFICATION_COLUMNS)

    def get_audit_sheet(self) -> gspread.Worksheet:
        # More rows for audit log
        return self.get_worksheet(self._settings.audit_sheet_name, AUDIT_COLUMNS, rows=5000)


class GoogleSheetsExpenseStorage(ExpenseStorageInterface):
    """
    Google Sheets implementation of expense storage.

    One expense per row.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _expense_to_row(self, expense: PersistedExpense) -> list:
        return [
            str(expense.id),
            expense.user_id,
            expense.description,
            str(expense.amount),
            expense.category,
            expense.date.isoformat(),
            expense.created_at.isoformat(),
            expense.origin,
        ]

    def _row_to_expense(self, row: list) -> PersistedExpense:
        return PersistedExpense(
            id=UUID(_safe_get(row, 0)),
            user_id=_safe_get(row, 1),
            description=_safe_get(row, 2),
            amount=Decimal(_safe_get(row, 3)),
            category=_safe_get(row, 4, "Others"),
            date=date.fromisoformat(_safe_get(row, 5)),
            created_at=datetime.fromisoformat(_safe_get(row, 6)),
            origin=_safe_get(row, 7, "voice"),
        )

    def _user_rows(self, user_id: str) -> list[PersistedExpense]:
        sheet = self._client.get_expenses_sheet()
        all_rows = sheet.get_all_values()[1:]  # Skip header

        expenses = []
        for row in all_rows:
            if not row or not row[0] or _safe_get(row, 1) != user_id:
                continue
            try:
                expenses.append(self._row_to_expense(row))
            except Exception:
                continue  # Skip malformed rows
        return expenses

    async def existing_for_date(
        self,
        user_id: str,
        expense_date: date,
    ) -> set[tuple[str, Decimal]]:
        try:
            return {
                expense.dedup_key
                for expense in self._user_rows(user_id)
                if expense.date == expense_date
            }
        except Exception as e:
            raise StorageError(f"Failed to read expenses: {e}")

    @_sheets_retry
    async def insert(
        self,
        user_id: str,
        description: str,
        amount: Decimal,
        category: str,
        expense_date: date,
    ) -> PersistedExpense:
        try:
            key = dedup_key(description, amount)
            if key in await self.existing_for_date(user_id, expense_date):
                raise DuplicateError(f"Expense already stored: {description} {amount}")

            expense = PersistedExpense(
                user_id=user_id,
                description=description,
                amount=amount,
                category=category,
                date=expense_date,
            )
            sheet = self._client.get_expenses_sheet()
            sheet.append_row(self._expense_to_row(expense), value_input_option="RAW")
            return expense
        except DuplicateError:
            raise
        except Exception as e:
            raise PersistenceFailed(description, str(e))

    async def list_for_period(
        self,
        user_id: str,
        date_from: date,
        date_to: date,
    ) -> list[PersistedExpense]:
        try:
            rows = [
                expense for expense in self._user_rows(user_id)
                if date_from <= expense.date <= date_to
            ]
            rows.sort(key=lambda e: (e.date, e.created_at))
            return rows
        except Exception as e:
            raise StorageError(f"Failed to list expenses: {e}")


class GoogleSheetsPatternStorage(PatternStorageInterface):
    """
    Google Sheets implementation of learned pattern storage.

    One (user, pattern, category) per row; reuse updates the row in place.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _pattern_to_row(self, pattern: LearnedPattern) -> list:
        return [
            pattern.user_id,
            pattern.description_pattern,
            pattern.suggested_category,
            str(pattern.confidence_score),
            str(pattern.usage_count),
            pattern.last_used.isoformat(),
        ]

    def _row_to_pattern(self, row: list) -> LearnedPattern:
        return LearnedPattern(
            user_id=_safe_get(row, 0),
            description_pattern=_safe_get(row, 1),
            suggested_category=_safe_get(row, 2),
            confidence_score=float(_safe_get(row, 3, "0")),
            usage_count=int(_safe_get(row, 4, "1")),
            last_used=datetime.fromisoformat(_safe_get(row, 5)),
        )

    async def get_patterns(
        self,
        user_id: str,
        limit: int = 50,
    ) -> list[LearnedPattern]:
        try:
            sheet = self._client.get_patterns_sheet()
            all_rows = sheet.get_all_values()[1:]

            patterns = []
            for row in all_rows:
                if not row or _safe_get(row, 0) != user_id:
                    continue
                try:
                    patterns.append(self._row_to_pattern(row))
                except Exception:
                    continue

            patterns.sort(key=lambda p: p.confidence_score, reverse=True)
            return patterns[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get patterns: {e}")

    @_sheets_retry
    async def upsert_pattern(
        self,
        user_id: str,
        pattern: str,
        category: str,
        confidence: float,
    ) -> LearnedPattern:
        try:
            sheet = self._client.get_patterns_sheet()
            all_rows = sheet.get_all_values()
            wanted = pattern.strip().lower()

            # Row 1 is the header
            for idx, row in enumerate(all_rows[1:], start=2):
                if (
                    _safe_get(row, 0) == user_id
                    and _safe_get(row, 1) == wanted
                    and _safe_get(row, 2) == category
                ):
                    learned = reinforce_pattern(
                        self._row_to_pattern(row), user_id, pattern, category, confidence
                    )
                    sheet.update(
                        f"A{idx}:F{idx}",
                        [self._pattern_to_row(learned)],
                        value_input_option="RAW",
                    )
                    return learned

            learned = reinforce_pattern(None, user_id, pattern, category, confidence)
            sheet.append_row(self._pattern_to_row(learned), value_input_option="RAW")
            return learned
        except Exception as e:
            raise StorageError(f"Failed to upsert pattern: {e}")


class GoogleSheetsBudgetStorage(BudgetStorageInterface):
    """
    Google Sheets implementation of budget lookups.

    Budgets live in their own sheet; spend is summed from the expenses sheet.
    """

    def __init__(
        self,
        client: Optional[GoogleSheetsClient] = None,
        expense_storage: Optional[GoogleSheetsExpenseStorage] = None,
    ):
        self._client = client or GoogleSheetsClient()
        self._expense_storage = expense_storage or GoogleSheetsExpenseStorage(self._client)

    async def get_budget(
        self,
        user_id: str,
        period: str,
    ) -> Optional[Decimal]:
        try:
            sheet = self._client.get_budgets_sheet()
            for row in sheet.get_all_values()[1:]:
                if _safe_get(row, 0) == user_id and _safe_get(row, 1) == period:
                    amount = _safe_get(row, 2)
                    if not amount or Decimal(amount) <= 0:
                        return None
                    snapshot = BudgetSnapshot(
                        month=period,
                        budget_amount=Decimal(amount),
                        currency=_safe_get(row, 3) or "EGP",
                    )
                    return snapshot.budget_amount
            return None
        except Exception as e:
            raise StorageError(f"Failed to get budget: {e}")

    async def sum_expenses(
        self,
        user_id: str,
        period: str,
    ) -> Decimal:
        date_from, date_to = month_bounds(period)
        expenses = await self._expense_storage.list_for_period(user_id, date_from, date_to)
        return sum((expense.amount for expense in expenses), Decimal("0"))


class GoogleSheetsNotificationStorage(NotificationStorageInterface):
    """Google Sheets implementation of raised-notification storage."""

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    async def has_notification(
        self,
        user_id: str,
        period: str,
        threshold: int,
    ) -> bool:
        try:
            sheet = self._client.get_notifications_sheet()
            return any(
                _safe_get(row, 0) == user_id
                and _safe_get(row, 1) == period
                and _safe_get(row, 2) == str(threshold)
                for row in sheet.get_all_values()[1:]
            )
        except Exception as e:
            raise StorageError(f"Failed to read notifications: {e}")

    @_sheets_retry
    async def record(
        self,
        user_id: str,
        event: NotificationEvent,
    ) -> bool:
        try:
            sheet = self._client.get_notifications_sheet()
            sheet.append_row(
                [
                    user_id,
                    event.period,
                    str(event.threshold),
                    str(event.percent),
                    event.kind,
                    event.title,
                    event.body,
                    event.created_at.isoformat(),
                ],
                value_input_option="RAW",
            )
            return True
        except Exception as e:
            raise StorageError(f"Failed to record notification: {e}")


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()

    def _row_to_event(self, row: list) -> AuditEvent:
        return AuditEvent(
            event_id=UUID(_safe_get(row, 0)),
            timestamp=datetime.fromisoformat(_safe_get(row, 1)),
            event_type=AuditEventType(_safe_get(row, 2)),
            severity=AuditSeverity(_safe_get(row, 3)),
            user_id=_safe_get(row, 4) or None,
            entity_type=_safe_get(row, 5) or None,
            entity_id=UUID(_safe_get(row, 6)) if _safe_get(row, 6) else None,
            correlation_id=UUID(_safe_get(row, 7)) if _safe_get(row, 7) else None,
            description=_safe_get(row, 8),
            details=json.loads(_safe_get(row, 9)) if _safe_get(row, 9) else {},
            error_message=_safe_get(row, 10) or None,
            is_user_action=_safe_get(row, 11).lower() == "true",
        )

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            sheet = self._client.get_audit_sheet()
            sheet.append_row(event.to_sheets_row(), value_input_option="RAW")
            return True
        except Exception as e:
            raise StorageError(f"Failed to write audit event: {e}")

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get events by correlation ID."""
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]

            events = []
            for row in all_rows:
                if row and len(row) > 7 and row[7] == str(correlation_id):
                    try:
                        events.append(self._row_to_event(row))
                    except Exception:
                        continue

            # Sort chronologically
            events.sort(key=lambda e: e.timestamp)
            return events
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get recent events."""
        try:
            sheet = self._client.get_audit_sheet()
            all_rows = sheet.get_all_values()[1:]

            events = []
            for row in all_rows:
                if row and row[0]:
                    try:
                        events.append(self._row_to_event(row))
                    except Exception:
                        continue

            # Sort newest first
            events.sort(key=lambda e: e.timestamp, reverse=True)
            return events[:limit]
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
