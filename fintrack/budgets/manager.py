"""
Budget Entity Manager

Owner-scoped CRUD for live budgets.

DESIGN DECISION: `spent` is seeded on create and recomputed on every
update, whether or not the amount changed. Transaction edits never touch
budgets directly, so a budget's cached `spent` may lag until the next
update or refresh.

KNOWN RACE: two concurrent updates of the same budget both read, both
recompute and the last write wins. Both writers compute `spent` from the
same transaction store, so the loser only loses an amount change, never
a stale sum.
"""

from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

import structlog

from fintrack.audit import AuditLogger
from fintrack.budgets.aggregator import BudgetAggregator
from fintrack.errors import DuplicateBudgetError, NotFoundError
from fintrack.models.ledger import Budget
from fintrack.models.period import DateWindow, PeriodFilter
from fintrack.services.storage import (
    DuplicateError,
    LedgerStorageInterface,
    RecordNotFoundError,
)
from fintrack.validation import InputValidator, parse_entity_id


logger = structlog.get_logger(__name__)


class BudgetManager:
    """Creates, reads, updates, deletes and lists live budgets."""

    def __init__(
        self,
        storage: LedgerStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        aggregator: Optional[BudgetAggregator] = None,
    ):
        self._storage = storage
        self._audit = audit_logger or AuditLogger()
        self._aggregator = aggregator or BudgetAggregator(storage)

    async def _owned(self, user_id: str, budget_id: Any) -> Budget:
        budget = await self._storage.get_budget(parse_entity_id(budget_id, "budget"))
        if budget is None or budget.user_id != user_id:
            raise NotFoundError("budget")
        return budget

    async def _refresh_spent(self, budget: Budget) -> Decimal:
        return await self._aggregator.compute_spent(
            budget.user_id,
            budget.category,
            budget.period,
        )

    async def create(
        self,
        user_id: str,
        category: Any,
        amount: Any,
        month: Any,
        year: Any,
        correlation_id: Optional[UUID] = None,
    ) -> Budget:
        """
        Create a budget for one category and calendar month.

        `spent` is seeded from the expenses already recorded in that month.

        Raises:
            ValidationError: If any field is missing or invalid
            DuplicateBudgetError: If the user already budgets this
                category for this month
        """
        validator = InputValidator()
        user_id = validator.check_user_id(user_id)
        category = validator.check_category(category)
        amount = validator.check_amount(amount)
        month = validator.check_month(month)
        year = validator.check_year(year)
        validator.raise_if_invalid()

        spent = await self._aggregator.compute_spent(
            user_id, category, DateWindow.for_month(year, month)
        )
        budget = Budget(
            user_id=user_id,
            category=category,
            amount=amount,
            month=month,
            year=year,
            spent=spent,
        )

        try:
            await self._storage.create_budget(budget)
        except DuplicateError:
            await self._audit.log_budget_duplicate_rejected(
                user_id=user_id,
                category=category,
                month=month,
                year=year,
                correlation_id=correlation_id,
            )
            raise DuplicateBudgetError(category, month, year)

        await self._audit.log_budget_created(
            user_id=user_id,
            budget_id=budget.id,
            category=category,
            month=month,
            year=year,
            amount=str(amount),
            spent=str(spent),
            correlation_id=correlation_id,
        )
        return budget

    async def get(
        self,
        user_id: str,
        budget_id: Any,
        refresh: bool = False,
    ) -> Budget:
        """
        Fetch one of the user's budgets.

        With `refresh`, `spent` is recomputed and written back first.

        Raises:
            NotFoundError: If the budget doesn't exist or isn't the user's
        """
        budget = await self._owned(user_id, budget_id)
        if not refresh:
            return budget

        spent = await self._refresh_spent(budget)
        if spent != budget.spent:
            budget = budget.model_copy(update={"spent": spent})
            try:
                await self._storage.update_budget(budget)
            except RecordNotFoundError:
                raise NotFoundError("budget")
        return budget

    async def update(
        self,
        user_id: str,
        budget_id: Any,
        new_amount: Any = None,
        correlation_id: Optional[UUID] = None,
    ) -> Budget:
        """
        Recompute `spent` and optionally replace the amount.

        Raises:
            NotFoundError: If the budget doesn't exist or isn't the user's
            ValidationError: If new_amount is given and not positive
        """
        amount = None
        if new_amount is not None:
            validator = InputValidator()
            amount = validator.check_amount(new_amount)
            validator.raise_if_invalid()

        budget = await self._owned(user_id, budget_id)
        spent = await self._refresh_spent(budget)

        changes = {"spent": spent, "updated_at": datetime.now()}
        if amount is not None:
            changes["amount"] = amount
        updated = budget.model_copy(update=changes)

        try:
            await self._storage.update_budget(updated)
        except RecordNotFoundError:
            # Deleted or archived between read and write
            raise NotFoundError("budget")

        await self._audit.log_budget_updated(
            user_id=user_id,
            budget_id=updated.id,
            amount=str(updated.amount),
            spent=str(updated.spent),
            amount_changed=amount is not None and amount != budget.amount,
            correlation_id=correlation_id,
        )
        return updated

    async def delete(
        self,
        user_id: str,
        budget_id: Any,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Delete one of the user's budgets.

        Raises:
            NotFoundError: If the budget doesn't exist or isn't the user's
        """
        budget = await self._owned(user_id, budget_id)
        if not await self._storage.delete_budget(budget.id):
            raise NotFoundError("budget")
        await self._audit.log_budget_deleted(
            user_id=user_id,
            budget_id=budget.id,
            correlation_id=correlation_id,
        )

    async def list(
        self,
        user_id: str,
        filters: Optional[PeriodFilter] = None,
    ) -> list[Budget]:
        """
        List the user's budgets, ordered (year, month).

        Without a month or date range the current calendar month is used.
        """
        filters = filters or PeriodFilter()
        if not filters.has_period:
            today = datetime.now()
            filters = filters.model_copy(update={"month": today.month, "year": today.year})
        budgets = await self._storage.find_budgets(user_id, filters)
        logger.debug("budgets_listed", user_id=user_id, count=len(budgets))
        return budgets
