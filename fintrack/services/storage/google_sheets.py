"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is offered as a storage backend because:
1. Users can view their ledger directly in Sheets
2. No database setup required
3. Easy to export/migrate later

TRADEOFFS:
- Not suitable for high-volume data (we're fine for personal use)
- No transactions: archive is append-then-delete with a compensating
  delete when the second step fails (see commit_archive)
- Uniqueness of (user, category, month, year) is checked by reading the
  sheet before appending, so two concurrent creates can both pass
- Limited query capabilities (we filter in Python)

The implementation follows the abstract interface, so we can swap
to PostgreSQL/SQLite later without changing business logic.
"""

import json
from datetime import datetime
from decimal import Decimal
from typing import Optional
from uuid import UUID

import gspread
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from fintrack.config import GoogleSheetsSettings, get_settings
from fintrack.models.audit import AuditEvent, AuditEventType, AuditSeverity
from fintrack.models.ledger import (
    Budget,
    BudgetHistory,
    BudgetStatus,
    Transaction,
    TransactionType,
)
from fintrack.models.period import PeriodFilter
from fintrack.services.storage.interface import (
    ArchiveIncompleteError,
    ArchiveRolledBackError,
    AuditStorageInterface,
    ConnectionError,
    DuplicateError,
    LedgerStorageInterface,
    RecordNotFoundError,
    StorageError,
    TransactionQuery,
)


logger = structlog.get_logger(__name__)


# Column mappings for each worksheet
TRANSACTION_COLUMNS = [
    "id",
    "user_id",
    "type",
    "category",
    "amount",
    "description",
    "date",
    "created_at",
    "updated_at",
]

BUDGET_COLUMNS = [
    "id",
    "user_id",
    "category",
    "amount",
    "month",
    "year",
    "spent",
    "created_at",
    "updated_at",
]

HISTORY_COLUMNS = [
    "id",
    "user_id",
    "category",
    "budgeted_amount",
    "spent_amount",
    "month",
    "year",
    "status",
    "utilization_percentage",
    "archived_at",
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

# Transient API failures are retried; anything else surfaces immediately
sheets_retry = retry(
    retry=retry_if_exception_type(gspread.exceptions.APIError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


class GoogleSheetsClient:
    """
    Low-level Google Sheets client wrapper.

    Handles authentication and provides retry logic for API calls.
    """

    def __init__(self, settings: Optional[GoogleSheetsSettings] = None):
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._settings = settings or get_settings().google_sheets

    @property
    def settings(self) -> GoogleSheetsSettings:
        return self._settings

    @retry(
        stop=stop_after_attempt(3),
        wait=wait_exponential(multiplier=1, min=2, max=10),
        reraise=True,
    )
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
                raise ConnectionError(
                    f"Spreadsheet not found: {self._settings.spreadsheet_id}"
                )
        return self._spreadsheet

    def get_worksheet(self, title: str, columns: list[str]) -> gspread.Worksheet:
        """Get or create a worksheet with the given header row."""
        spreadsheet = self.get_spreadsheet()
        try:
            sheet = spreadsheet.worksheet(title)
        except gspread.WorksheetNotFound:
            sheet = spreadsheet.add_worksheet(
                title=title,
                rows=1000,
                cols=len(columns),
            )
            sheet.append_row(columns)
        return sheet


def _safe_get(row: list, index: int, default: str = "") -> str:
    """Cell value, tolerating short rows."""
    try:
        return row[index] if row[index] else default
    except IndexError:
        return default


class _SheetTable:
    """
    One worksheet treated as a table whose first column is the row id.

    Row numbers are 1-based and include the header row, matching the
    gspread API.
    """

    def __init__(self, client: GoogleSheetsClient, title: str, columns: list[str]):
        self._client = client
        self._title = title
        self._columns = columns

    def _sheet(self) -> gspread.Worksheet:
        return self._client.get_worksheet(self._title, self._columns)

    @sheets_retry
    def rows(self) -> list[list]:
        """All data rows (header excluded, blank rows skipped)."""
        return [row for row in self._sheet().get_all_values()[1:] if row and row[0]]

    @sheets_retry
    def append(self, row: list) -> None:
        self._sheet().append_row(row, value_input_option="RAW")

    def _locate(self, row_id: str) -> Optional[int]:
        all_rows = self._sheet().get_all_values()
        for idx, row in enumerate(all_rows[1:], start=2):
            if row and row[0] == row_id:
                return idx
        return None

    @sheets_retry
    def replace(self, row_id: str, row: list) -> bool:
        idx = self._locate(row_id)
        if idx is None:
            return False
        sheet = self._sheet()
        for col_idx, value in enumerate(row, start=1):
            sheet.update_cell(idx, col_idx, value)
        return True

    @sheets_retry
    def delete(self, row_id: str) -> bool:
        idx = self._locate(row_id)
        if idx is None:
            return False
        self._sheet().delete_rows(idx)
        return True


class GoogleSheetsLedgerStorage(LedgerStorageInterface):
    """
    Google Sheets implementation of ledger storage.

    Transactions, budgets and history each live in their own worksheet,
    one entity per row.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        settings = self._client.settings
        self._transactions = _SheetTable(
            self._client, settings.transactions_sheet_name, TRANSACTION_COLUMNS
        )
        self._budgets = _SheetTable(
            self._client, settings.budgets_sheet_name, BUDGET_COLUMNS
        )
        self._history = _SheetTable(
            self._client, settings.history_sheet_name, HISTORY_COLUMNS
        )

    # -------------------------------------------------------------------------
    # Row conversion
    # -------------------------------------------------------------------------

    @staticmethod
    def _transaction_to_row(transaction: Transaction) -> list:
        return [
            str(transaction.id),
            transaction.user_id,
            transaction.type.value,
            transaction.category,
            str(transaction.amount),
            transaction.description,
            transaction.date.isoformat(),
            transaction.created_at.isoformat(),
            transaction.updated_at.isoformat(),
        ]

    @staticmethod
    def _row_to_transaction(row: list) -> Transaction:
        return Transaction(
            id=UUID(_safe_get(row, 0)),
            user_id=_safe_get(row, 1),
            type=TransactionType(_safe_get(row, 2)),
            category=_safe_get(row, 3),
            amount=Decimal(_safe_get(row, 4, "0")),
            description=_safe_get(row, 5),
            date=datetime.fromisoformat(_safe_get(row, 6)),
            created_at=datetime.fromisoformat(_safe_get(row, 7)),
            updated_at=datetime.fromisoformat(_safe_get(row, 8)),
        )

    @staticmethod
    def _budget_to_row(budget: Budget) -> list:
        return [
            str(budget.id),
            budget.user_id,
            budget.category,
            str(budget.amount),
            str(budget.month),
            str(budget.year),
            str(budget.spent),
            budget.created_at.isoformat(),
            budget.updated_at.isoformat(),
        ]

    @staticmethod
    def _row_to_budget(row: list) -> Budget:
        return Budget(
            id=UUID(_safe_get(row, 0)),
            user_id=_safe_get(row, 1),
            category=_safe_get(row, 2),
            amount=Decimal(_safe_get(row, 3, "0")),
            month=int(_safe_get(row, 4)),
            year=int(_safe_get(row, 5)),
            spent=Decimal(_safe_get(row, 6, "0")),
            created_at=datetime.fromisoformat(_safe_get(row, 7)),
            updated_at=datetime.fromisoformat(_safe_get(row, 8)),
        )

    @staticmethod
    def _history_to_row(history: BudgetHistory) -> list:
        return [
            str(history.id),
            history.user_id,
            history.category,
            str(history.budgeted_amount),
            str(history.spent_amount),
            str(history.month),
            str(history.year),
            history.status.value,
            repr(history.utilization_percentage),
            history.archived_at.isoformat(),
        ]

    @staticmethod
    def _row_to_history(row: list) -> BudgetHistory:
        return BudgetHistory(
            id=UUID(_safe_get(row, 0)),
            user_id=_safe_get(row, 1),
            category=_safe_get(row, 2),
            budgeted_amount=Decimal(_safe_get(row, 3, "0")),
            spent_amount=Decimal(_safe_get(row, 4, "0")),
            month=int(_safe_get(row, 5)),
            year=int(_safe_get(row, 6)),
            status=BudgetStatus(_safe_get(row, 7)),
            utilization_percentage=float(_safe_get(row, 8, "0")),
            archived_at=datetime.fromisoformat(_safe_get(row, 9)),
        )

    def _parse_rows(self, rows: list[list], parser, kind: str) -> list:
        parsed = []
        for row in rows:
            try:
                parsed.append(parser(row))
            except (ValueError, TypeError) as e:
                logger.warning("sheets_row_skipped", kind=kind, row_id=row[0], error=str(e))
        return parsed

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def save_transaction(self, transaction: Transaction) -> Transaction:
        try:
            self._transactions.append(self._transaction_to_row(transaction))
            return transaction
        except Exception as e:
            raise StorageError(f"Failed to save transaction: {e}")

    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        try:
            for row in self._transactions.rows():
                if row[0] == str(transaction_id):
                    return self._row_to_transaction(row)
            return None
        except Exception as e:
            raise StorageError(f"Failed to get transaction: {e}")

    async def update_transaction(self, transaction: Transaction) -> Transaction:
        try:
            found = self._transactions.replace(
                str(transaction.id), self._transaction_to_row(transaction)
            )
        except Exception as e:
            raise StorageError(f"Failed to update transaction: {e}")
        if not found:
            raise RecordNotFoundError(f"Transaction not found: {transaction.id}")
        return transaction

    async def delete_transaction(self, transaction_id: UUID) -> bool:
        try:
            return self._transactions.delete(str(transaction_id))
        except Exception as e:
            raise StorageError(f"Failed to delete transaction: {e}")

    def _matching_transactions(self, query: TransactionQuery) -> list[Transaction]:
        try:
            rows = self._transactions.rows()
        except Exception as e:
            raise StorageError(f"Failed to list transactions: {e}")
        transactions = self._parse_rows(rows, self._row_to_transaction, "transaction")
        matches = [t for t in transactions if query.matches(t)]
        matches.sort(key=lambda t: t.date, reverse=True)
        return matches

    async def find_transactions(
        self,
        query: TransactionQuery,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Transaction]:
        matches = self._matching_transactions(query)
        end = offset + limit if limit is not None else None
        return matches[offset:end]

    async def count_transactions(self, query: TransactionQuery) -> int:
        return len(self._matching_transactions(query))

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    def _all_budgets(self) -> list[Budget]:
        try:
            rows = self._budgets.rows()
        except Exception as e:
            raise StorageError(f"Failed to list budgets: {e}")
        return self._parse_rows(rows, self._row_to_budget, "budget")

    async def create_budget(self, budget: Budget) -> Budget:
        if any(existing.key == budget.key for existing in self._all_budgets()):
            raise DuplicateError(
                f"Budget exists for {budget.category} {budget.year}-{budget.month:02d}"
            )
        try:
            self._budgets.append(self._budget_to_row(budget))
            return budget
        except Exception as e:
            raise StorageError(f"Failed to save budget: {e}")

    async def get_budget(self, budget_id: UUID) -> Optional[Budget]:
        for budget in self._all_budgets():
            if budget.id == budget_id:
                return budget
        return None

    async def update_budget(self, budget: Budget) -> Budget:
        try:
            found = self._budgets.replace(str(budget.id), self._budget_to_row(budget))
        except Exception as e:
            raise StorageError(f"Failed to update budget: {e}")
        if not found:
            raise RecordNotFoundError(f"Budget not found: {budget.id}")
        return budget

    async def delete_budget(self, budget_id: UUID) -> bool:
        try:
            return self._budgets.delete(str(budget_id))
        except Exception as e:
            raise StorageError(f"Failed to delete budget: {e}")

    async def find_budgets(
        self,
        user_id: str,
        period: PeriodFilter,
    ) -> list[Budget]:
        budgets = [
            b for b in self._all_budgets()
            if b.user_id == user_id and period.accepts(b.category, b.month, b.year)
        ]
        budgets.sort(key=lambda b: (b.year, b.month))
        return budgets

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    def _matching_history(
        self,
        user_id: str,
        period: PeriodFilter,
    ) -> list[BudgetHistory]:
        try:
            rows = self._history.rows()
        except Exception as e:
            raise StorageError(f"Failed to list budget history: {e}")
        history = self._parse_rows(rows, self._row_to_history, "history")
        matches = [
            h for h in history
            if h.user_id == user_id and period.accepts(h.category, h.month, h.year)
        ]
        matches.sort(key=lambda h: (h.year, h.month))
        return matches

    async def find_history(
        self,
        user_id: str,
        period: PeriodFilter,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[BudgetHistory]:
        matches = self._matching_history(user_id, period)
        end = offset + limit if limit is not None else None
        return matches[offset:end]

    async def count_history(self, user_id: str, period: PeriodFilter) -> int:
        return len(self._matching_history(user_id, period))

    async def commit_archive(self, history: BudgetHistory, budget_id: UUID) -> None:
        """
        Append the history row, then delete the budget row.

        If the delete fails the appended history row is removed again.
        If that removal also fails the sheet holds an orphaned history
        row next to a still-live budget; ArchiveIncompleteError carries
        both ids so the row can be removed by hand.
        """
        if await self.get_budget(budget_id) is None:
            raise RecordNotFoundError(f"Budget not found: {budget_id}")

        try:
            self._history.append(self._history_to_row(history))
        except Exception as e:
            raise StorageError(f"Failed to write budget history: {e}")

        try:
            deleted = self._budgets.delete(str(budget_id))
            if not deleted:
                raise RecordNotFoundError(f"Budget vanished during archive: {budget_id}")
        except Exception as delete_error:
            try:
                self._history.delete(str(history.id))
            except Exception as compensation_error:
                logger.critical(
                    "archive_partial_failure",
                    history_id=str(history.id),
                    budget_id=str(budget_id),
                    delete_error=str(delete_error),
                    compensation_error=str(compensation_error),
                )
                raise ArchiveIncompleteError(
                    f"Archive incomplete: history {history.id} written but "
                    f"budget {budget_id} not deleted",
                    history_id=history.id,
                    budget_id=budget_id,
                )
            logger.warning(
                "archive_compensated",
                history_id=str(history.id),
                budget_id=str(budget_id),
                error=str(delete_error),
            )
            raise ArchiveRolledBackError(
                f"Archive rolled back: {delete_error}",
                history_id=history.id,
                budget_id=budget_id,
            )


class GoogleSheetsAuditStorage(AuditStorageInterface):
    """
    Google Sheets implementation of audit log storage.

    Audit events are append-only.
    """

    def __init__(self, client: Optional[GoogleSheetsClient] = None):
        self._client = client or GoogleSheetsClient()
        self._table = _SheetTable(
            self._client, self._client.settings.audit_sheet_name, AUDIT_COLUMNS
        )

    @staticmethod
    def _row_to_event(row: list) -> AuditEvent:
        """Convert a spreadsheet row to an AuditEvent."""
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

    def _all_events(self) -> list[AuditEvent]:
        try:
            rows = self._table.rows()
        except Exception as e:
            raise StorageError(f"Failed to get audit events: {e}")
        events = []
        for row in rows:
            try:
                events.append(self._row_to_event(row))
            except (ValueError, TypeError):
                continue
        return events

    async def append_event(self, event: AuditEvent) -> bool:
        """Append an audit event."""
        try:
            self._table.append(event.to_sheets_row())
            return True
        except Exception as e:
            # Audit logging must not break the main flow
            logger.warning("audit_append_failed", event_id=str(event.event_id), error=str(e))
            return False

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._all_events() if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._all_events(), key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
