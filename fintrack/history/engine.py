"""
Archival/History Engine

A budget is Live until it is explicitly archived, then it exists only as
an immutable BudgetHistory row. There is no way back.

History queries read archived rows first. When the requested page of
archived rows is empty the engine derives history-shaped rows from the live
budgets of that period instead, so a user sees utilization for months
that were never closed.
"""

from typing import Any, Optional, Union
from uuid import UUID

import structlog
from pydantic import BaseModel, Field

from fintrack.audit import AuditLogger
from fintrack.config import AppSettings, get_settings
from fintrack.errors import NotFoundError
from fintrack.history.derivation import compute_utilization, derive_history
from fintrack.models.ledger import (
    BudgetHistory,
    DerivedBudgetHistory,
    TransactionType,
)
from fintrack.models.period import HistoryFilter, PeriodFilter
from fintrack.services.storage import (
    ArchiveIncompleteError,
    ArchiveRolledBackError,
    LedgerStorageInterface,
    RecordNotFoundError,
    TransactionQuery,
)
from fintrack.validation import parse_entity_id


logger = structlog.get_logger(__name__)


class HistoryPage(BaseModel):
    """
    One page of history.

    For archived rows `count` is the page length and `total` ignores
    pagination. Derived rows are never paginated: `count` is the number
    of rows and `total` is the archived total, or that number when
    nothing is archived.
    """

    items: list[Union[BudgetHistory, DerivedBudgetHistory]] = Field(default_factory=list)
    count: int = 0
    total: int = 0
    derived: bool = False


class HistoryEngine:
    """Archives budgets and answers history queries."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._storage = storage
        self._audit = audit_logger or AuditLogger()
        self._settings = settings or get_settings().app

    # -------------------------------------------------------------------------
    # Archive
    # -------------------------------------------------------------------------

    async def archive(
        self,
        user_id: str,
        budget_id: Any,
        correlation_id: Optional[UUID] = None,
    ) -> BudgetHistory:
        """
        Move a live budget into history.

        The snapshot uses the budget's stored `spent`; call update first
        to archive a fresh figure.

        Raises:
            NotFoundError: If the budget doesn't exist or isn't the user's
            ArchiveRolledBackError: If the backend undid a failed archive
            ArchiveIncompleteError: If the backend couldn't undo it
        """
        budget = await self._storage.get_budget(parse_entity_id(budget_id, "budget"))
        if budget is None or budget.user_id != user_id:
            raise NotFoundError("budget")

        utilization, status = compute_utilization(budget.spent, budget.amount)
        history = BudgetHistory(
            user_id=budget.user_id,
            category=budget.category,
            budgeted_amount=budget.amount,
            spent_amount=budget.spent,
            month=budget.month,
            year=budget.year,
            status=status,
            utilization_percentage=utilization,
        )

        try:
            await self._storage.commit_archive(history, budget.id)
        except RecordNotFoundError:
            # Archived or deleted by a concurrent request
            raise NotFoundError("budget")
        except ArchiveRolledBackError as e:
            await self._audit.log_archive_compensated(
                user_id=user_id,
                history_id=e.history_id,
                budget_id=e.budget_id,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise
        except ArchiveIncompleteError as e:
            await self._audit.log_archive_partial_failure(
                user_id=user_id,
                history_id=e.history_id,
                budget_id=e.budget_id,
                error_message=str(e),
                correlation_id=correlation_id,
            )
            raise

        await self._audit.log_budget_archived(
            user_id=user_id,
            history_id=history.id,
            budget_id=budget.id,
            status=status.value,
            utilization=utilization,
            correlation_id=correlation_id,
        )
        return history

    # -------------------------------------------------------------------------
    # Query
    # -------------------------------------------------------------------------

    async def get_history(
        self,
        user_id: str,
        filters: Optional[HistoryFilter] = None,
        correlation_id: Optional[UUID] = None,
    ) -> HistoryPage:
        """
        Archived history for the filter, or derived rows as a fallback.

        Derivation runs when a month or date range was given and the
        requested page of archived rows is empty. Derived rows are not
        paginated; `total` keeps the archived total when there is one.
        """
        filters = filters or HistoryFilter()
        limit = self._settings.clamp_page_size(filters.limit, self._settings.history_page_size)
        period = PeriodFilter(
            month=filters.month,
            year=filters.year,
            start_date=filters.start_date,
            end_date=filters.end_date,
            category=filters.category,
        )

        total = await self._storage.count_history(user_id, period)
        rows = await self._storage.find_history(
            user_id, period, limit=limit, offset=filters.skip
        )
        if rows or not period.has_period:
            page = HistoryPage(items=rows, count=len(rows), total=total)
        else:
            derived = await self._derive(user_id, period)
            page = HistoryPage(
                items=derived,
                count=len(derived),
                total=total or len(derived),
                derived=True,
            )

        await self._audit.log_history_queried(
            user_id=user_id,
            result_count=page.count,
            total=page.total,
            derived=page.derived,
            filters=filters.model_dump(mode="json", exclude_none=True),
            correlation_id=correlation_id,
        )
        return page

    async def _derive(
        self,
        user_id: str,
        period: PeriodFilter,
    ) -> list[DerivedBudgetHistory]:
        budgets = await self._storage.find_budgets(user_id, period)
        if not budgets:
            return []

        window = period.lookup_window()
        categories = tuple(sorted({budget.category for budget in budgets}))
        transactions = await self._storage.find_transactions(
            TransactionQuery(
                user_id=user_id,
                type=TransactionType.EXPENSE,
                categories=categories,
                date_from=window.start,
                date_to=window.end,
            )
        )
        logger.debug(
            "history_derived",
            user_id=user_id,
            budgets=len(budgets),
            transactions=len(transactions),
        )
        return derive_history(budgets, transactions, window)
