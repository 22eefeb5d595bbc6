"""
Main Orchestrator for fintrack

This module ties together all the components and is the one boundary the
presentation layer talks to. Every FinanceService method returns an
OperationResult; no domain or storage exception escapes it.

DESIGN DECISION: The orchestrator enforces the boundaries:
- Every operation is scoped to the calling user
- Every failure is mapped to one of four error codes
- Every unexpected failure is audited with full detail, while the caller
  only sees a generic message

Error code mapping:
    validation_error -> bad input (400)
    duplicate_budget -> budget already exists (400)
    not_found        -> missing or not the caller's (404)
    internal_error   -> storage or unexpected failure (500)
"""

from typing import Any, Awaitable, Callable, Optional
from uuid import UUID

import structlog

from fintrack.audit import AuditLogger, configure_logging, create_correlation_id
from fintrack.budgets import BudgetManager
from fintrack.config import Settings, get_settings, validate_all_settings
from fintrack.errors import FinanceError, ValidationError
from fintrack.history import HistoryEngine
from fintrack.models.ledger import OperationResult
from fintrack.models.period import HistoryFilter, PeriodFilter
from fintrack.services.storage import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
    LedgerStorageInterface,
)
from fintrack.transactions import TransactionService
from fintrack.validation import parse_filter


logger = structlog.get_logger(__name__)

GENERIC_ERROR_MESSAGE = "Something went wrong. Please try again."


class FinanceService:
    """
    Boundary facade over budgets, history and transactions.

    Each call gets its own correlation id unless one is passed in, so
    all audit events of one request can be traced together.
    """

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[Settings] = None,
    ):
        settings = settings or get_settings()
        app_settings = settings.app
        self._audit = audit_logger or AuditLogger()
        self._budgets = BudgetManager(storage, self._audit)
        self._history = HistoryEngine(storage, self._audit, app_settings)
        self._transactions = TransactionService(storage, self._audit, app_settings)

    async def _run(
        self,
        operation: str,
        user_id: str,
        correlation_id: UUID,
        call: Callable[[], Awaitable[OperationResult]],
    ) -> OperationResult:
        try:
            return await call()
        except ValidationError as e:
            await self._audit.log_validation_failed(
                operation=operation,
                issues=e.issues,
                user_id=user_id,
                correlation_id=correlation_id,
            )
            return OperationResult(
                success=False,
                message=e.message,
                error_code=e.code,
                issues=e.issues,
            )
        except FinanceError as e:
            return OperationResult(success=False, message=e.message, error_code=e.code)
        except Exception as e:
            await self._audit.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                details={"operation": operation, "user_id": user_id},
                correlation_id=correlation_id,
            )
            return OperationResult(
                success=False,
                message=GENERIC_ERROR_MESSAGE,
                error_code="internal_error",
            )

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    async def create_budget(
        self,
        user_id: str,
        category: Any,
        amount: Any,
        month: Any,
        year: Any,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        correlation_id = correlation_id or create_correlation_id()

        async def call():
            budget = await self._budgets.create(
                user_id, category, amount, month, year, correlation_id=correlation_id
            )
            return OperationResult(success=True, data=budget, message="Budget created successfully")

        return await self._run("create_budget", user_id, correlation_id, call)

    async def get_budget(
        self,
        user_id: str,
        budget_id: Any,
        refresh: bool = False,
    ) -> OperationResult:
        correlation_id = create_correlation_id()

        async def call():
            budget = await self._budgets.get(user_id, budget_id, refresh=refresh)
            return OperationResult(success=True, data=budget)

        return await self._run("get_budget", user_id, correlation_id, call)

    async def update_budget(
        self,
        user_id: str,
        budget_id: Any,
        amount: Any = None,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        correlation_id = correlation_id or create_correlation_id()

        async def call():
            budget = await self._budgets.update(
                user_id, budget_id, new_amount=amount, correlation_id=correlation_id
            )
            return OperationResult(success=True, data=budget, message="Budget updated successfully")

        return await self._run("update_budget", user_id, correlation_id, call)

    async def delete_budget(
        self,
        user_id: str,
        budget_id: Any,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        correlation_id = correlation_id or create_correlation_id()

        async def call():
            await self._budgets.delete(user_id, budget_id, correlation_id=correlation_id)
            return OperationResult(success=True, message="Budget deleted successfully")

        return await self._run("delete_budget", user_id, correlation_id, call)

    async def list_budgets(
        self,
        user_id: str,
        filters: Optional[dict] = None,
    ) -> OperationResult:
        """
        filters: month/year, start_date/end_date, category.
        """
        correlation_id = create_correlation_id()

        async def call():
            period = parse_filter(PeriodFilter, filters)
            budgets = await self._budgets.list(user_id, period)
            return OperationResult(
                success=True,
                data=budgets,
                count=len(budgets),
                total=len(budgets),
            )

        return await self._run("list_budgets", user_id, correlation_id, call)

    # -------------------------------------------------------------------------
    # Archive and history
    # -------------------------------------------------------------------------

    async def archive_budget(
        self,
        user_id: str,
        budget_id: Any,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        correlation_id = correlation_id or create_correlation_id()

        async def call():
            history = await self._history.archive(
                user_id, budget_id, correlation_id=correlation_id
            )
            return OperationResult(success=True, data=history, message="Budget archived successfully")

        return await self._run("archive_budget", user_id, correlation_id, call)

    async def get_budget_history(
        self,
        user_id: str,
        filters: Optional[dict] = None,
    ) -> OperationResult:
        """
        filters: month/year, start_date/end_date, category, limit, skip.
        """
        correlation_id = create_correlation_id()

        async def call():
            history_filter = parse_filter(HistoryFilter, filters)
            page = await self._history.get_history(
                user_id, history_filter, correlation_id=correlation_id
            )
            return OperationResult(
                success=True,
                data=page.items,
                count=page.count,
                total=page.total,
            )

        return await self._run("get_budget_history", user_id, correlation_id, call)

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def create_transaction(
        self,
        user_id: str,
        type: Any,
        category: Any,
        amount: Any,
        description: Any = None,
        date: Any = None,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        correlation_id = correlation_id or create_correlation_id()

        async def call():
            transaction = await self._transactions.create(
                user_id,
                type,
                category,
                amount,
                description=description,
                date=date,
                correlation_id=correlation_id,
            )
            return OperationResult(success=True, data=transaction, message="Transaction created successfully")

        return await self._run("create_transaction", user_id, correlation_id, call)

    async def get_transaction(self, user_id: str, transaction_id: Any) -> OperationResult:
        correlation_id = create_correlation_id()

        async def call():
            transaction = await self._transactions.get(user_id, transaction_id)
            return OperationResult(success=True, data=transaction)

        return await self._run("get_transaction", user_id, correlation_id, call)

    async def update_transaction(
        self,
        user_id: str,
        transaction_id: Any,
        changes: dict,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        correlation_id = correlation_id or create_correlation_id()

        async def call():
            transaction = await self._transactions.update(
                user_id, transaction_id, correlation_id=correlation_id, **changes
            )
            return OperationResult(success=True, data=transaction, message="Transaction updated successfully")

        return await self._run("update_transaction", user_id, correlation_id, call)

    async def delete_transaction(
        self,
        user_id: str,
        transaction_id: Any,
        correlation_id: Optional[UUID] = None,
    ) -> OperationResult:
        correlation_id = correlation_id or create_correlation_id()

        async def call():
            await self._transactions.delete(user_id, transaction_id, correlation_id=correlation_id)
            return OperationResult(success=True, message="Transaction deleted successfully")

        return await self._run("delete_transaction", user_id, correlation_id, call)

    async def list_transactions(
        self,
        user_id: str,
        filters: Optional[dict] = None,
    ) -> OperationResult:
        """
        filters: type, category, month/year, limit, skip.
        """
        correlation_id = create_correlation_id()
        filters = dict(filters or {})

        async def call():
            rows, total = await self._transactions.list(
                user_id,
                type=filters.get("type"),
                category=filters.get("category"),
                month=filters.get("month"),
                year=filters.get("year"),
                limit=filters.get("limit"),
                skip=filters.get("skip"),
            )
            return OperationResult(success=True, data=rows, count=len(rows), total=total)

        return await self._run("list_transactions", user_id, correlation_id, call)

    async def get_transaction_analytics(
        self,
        user_id: str,
        filters: Optional[dict] = None,
    ) -> OperationResult:
        """
        filters: month/year or start_date/end_date, optional category.
        """
        correlation_id = create_correlation_id()

        async def call():
            period = parse_filter(PeriodFilter, filters)
            analytics = await self._transactions.analytics(user_id, period)
            return OperationResult(success=True, data=analytics)

        return await self._run("get_transaction_analytics", user_id, correlation_id, call)


def create_app_components(
    settings: Optional[Settings] = None,
) -> FinanceService:
    """
    Factory function to create the service with its configured backend.

    Falls back to in-memory storage (with a warning) when the Google
    Sheets backend is selected but not configured.

    Raises:
        ValueError: If the application settings themselves are invalid
    """
    settings = settings or get_settings()
    status = validate_all_settings(settings)
    if not status["app"]:
        raise ValueError(f"Invalid application settings: {status['app_error']}")

    app_settings = settings.app
    configure_logging(app_settings.log_level)

    storage: LedgerStorageInterface = InMemoryLedgerStorage()
    audit_logger = AuditLogger(InMemoryAuditStorage())

    if app_settings.storage_backend == "google_sheets":
        if status.get("google_sheets"):
            sheets_client = GoogleSheetsClient(settings.google_sheets)
            storage = GoogleSheetsLedgerStorage(sheets_client)
            audit_logger = AuditLogger(GoogleSheetsAuditStorage(sheets_client))
        else:
            # Storage not configured - continue in memory
            logger.warning(
                "storage_not_configured",
                backend="google_sheets",
                error=status.get("google_sheets_error"),
            )

    return FinanceService(storage, audit_logger, settings)
