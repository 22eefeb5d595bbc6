"""
Transaction Service

Owner-scoped CRUD over the transaction store plus period analytics.

Transaction mutations never touch budgets. A budget's cached `spent`
catches up the next time that budget is updated or refreshed.
"""

from collections import defaultdict
from datetime import datetime
from decimal import Decimal
from typing import Any, Optional
from uuid import UUID

from fintrack.audit import AuditLogger
from fintrack.config import AppSettings, get_settings
from fintrack.errors import NotFoundError
from fintrack.models.audit import AuditEventType
from fintrack.models.ledger import (
    DailyStat,
    Transaction,
    TransactionAnalytics,
    TransactionType,
)
from fintrack.models.period import DateWindow, PeriodFilter
from fintrack.services.storage import (
    RecordNotFoundError,
    TransactionQuery,
    TransactionStorageInterface,
)
from fintrack.validation import InputValidator, parse_entity_id


ZERO = Decimal("0")

UPDATABLE_FIELDS = ("type", "category", "amount", "description", "date")


class TransactionService:
    """Records, edits, lists and summarizes a user's transactions."""

    def __init__(
        self,
        storage: TransactionStorageInterface,
        audit_logger: Optional[AuditLogger] = None,
        settings: Optional[AppSettings] = None,
    ):
        self._storage = storage
        self._audit = audit_logger or AuditLogger()
        self._settings = settings or get_settings().app

    async def _owned(self, user_id: str, transaction_id: Any) -> Transaction:
        transaction = await self._storage.get_transaction(
            parse_entity_id(transaction_id, "transaction")
        )
        if transaction is None or transaction.user_id != user_id:
            raise NotFoundError("transaction")
        return transaction

    async def _log(
        self,
        event_type: AuditEventType,
        transaction: Transaction,
        correlation_id: Optional[UUID],
    ) -> None:
        await self._audit.log_transaction_changed(
            event_type=event_type,
            user_id=transaction.user_id,
            transaction_id=transaction.id,
            category=transaction.category,
            amount=str(transaction.amount),
            correlation_id=correlation_id,
        )

    async def create(
        self,
        user_id: str,
        type: Any,
        category: Any,
        amount: Any,
        description: Any = None,
        date: Any = None,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Record a transaction. `date` defaults to now.

        Raises:
            ValidationError: If type, category or amount is missing or invalid
        """
        validator = InputValidator()
        user_id = validator.check_user_id(user_id)
        tx_type = validator.check_transaction_type(type)
        category = validator.check_category(category)
        amount = validator.check_amount(amount, allow_zero=True)
        description = validator.check_description(description)
        moment = validator.check_date(date) if date is not None else datetime.now()
        validator.raise_if_invalid()

        transaction = Transaction(
            user_id=user_id,
            type=tx_type,
            category=category,
            amount=amount,
            description=description,
            date=moment,
        )
        await self._storage.save_transaction(transaction)
        await self._log(AuditEventType.TRANSACTION_CREATED, transaction, correlation_id)
        return transaction

    async def get(self, user_id: str, transaction_id: Any) -> Transaction:
        """
        Raises:
            NotFoundError: If the transaction doesn't exist or isn't the user's
        """
        return await self._owned(user_id, transaction_id)

    async def update(
        self,
        user_id: str,
        transaction_id: Any,
        correlation_id: Optional[UUID] = None,
        **changes: Any,
    ) -> Transaction:
        """
        Partially update a transaction.

        Only type, category, amount, description and date can change;
        keys with a None value are ignored.

        Raises:
            NotFoundError: If the transaction doesn't exist or isn't the user's
            ValidationError: If a changed field is invalid
        """
        validator = InputValidator()
        unknown = sorted(set(changes) - set(UPDATABLE_FIELDS))
        for field in unknown:
            validator.add_issue(field, "not_updatable", f"Field '{field}' cannot be updated")

        cleaned = {}
        if changes.get("type") is not None:
            cleaned["type"] = validator.check_transaction_type(changes["type"])
        if changes.get("category") is not None:
            cleaned["category"] = validator.check_category(changes["category"])
        if changes.get("amount") is not None:
            cleaned["amount"] = validator.check_amount(changes["amount"], allow_zero=True)
        if changes.get("description") is not None:
            cleaned["description"] = validator.check_description(changes["description"])
        if changes.get("date") is not None:
            cleaned["date"] = validator.check_date(changes["date"])
        validator.raise_if_invalid()

        transaction = await self._owned(user_id, transaction_id)
        cleaned["updated_at"] = datetime.now()
        updated = transaction.model_copy(update=cleaned)
        try:
            await self._storage.update_transaction(updated)
        except RecordNotFoundError:
            raise NotFoundError("transaction")

        await self._log(AuditEventType.TRANSACTION_UPDATED, updated, correlation_id)
        return updated

    async def delete(
        self,
        user_id: str,
        transaction_id: Any,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """
        Raises:
            NotFoundError: If the transaction doesn't exist or isn't the user's
        """
        transaction = await self._owned(user_id, transaction_id)
        if not await self._storage.delete_transaction(transaction.id):
            raise NotFoundError("transaction")
        await self._log(AuditEventType.TRANSACTION_DELETED, transaction, correlation_id)

    async def list(
        self,
        user_id: str,
        type: Any = None,
        category: Optional[str] = None,
        month: Any = None,
        year: Any = None,
        limit: Any = None,
        skip: Any = None,
    ) -> tuple[list[Transaction], int]:
        """
        A page of the user's transactions, newest first, and the total.

        Raises:
            ValidationError: If type, month/year, limit or skip is invalid
        """
        validator = InputValidator()
        tx_type = validator.check_transaction_type(type) if type is not None else None
        window = None
        if month is not None or year is not None:
            month = validator.check_month(month)
            year = validator.check_year(year)
            if month is not None and year is not None:
                window = DateWindow.for_month(year, month)
        limit = validator.check_limit(limit)
        skip = validator.check_skip(skip)
        validator.raise_if_invalid()

        category = category.strip() if isinstance(category, str) and category.strip() else None
        query = TransactionQuery(
            user_id=user_id,
            type=tx_type,
            categories=(category,) if category else None,
            date_from=window.start if window else None,
            date_to=window.end if window else None,
        )
        limit = self._settings.clamp_page_size(limit, self._settings.transaction_page_size)
        rows = await self._storage.find_transactions(query, limit=limit, offset=skip)
        total = await self._storage.count_transactions(query)
        return rows, total

    async def analytics(
        self,
        user_id: str,
        filters: Optional[PeriodFilter] = None,
    ) -> TransactionAnalytics:
        """
        Income, expenses and their breakdowns for a period.

        Without a month or date range the current calendar month is used.
        """
        filters = filters or PeriodFilter()
        window = filters.lookup_window()
        if window is None:
            today = datetime.now()
            window = DateWindow.for_month(today.year, today.month)

        transactions = await self._storage.find_transactions(
            TransactionQuery(
                user_id=user_id,
                categories=(filters.category,) if filters.category else None,
                date_from=window.start,
                date_to=window.end,
            )
        )
        return summarize(transactions, window, currency=self._settings.currency)


def summarize(
    transactions: list[Transaction],
    window: DateWindow,
    currency: str = "USD",
) -> TransactionAnalytics:
    """Fold transactions into period totals."""
    income = ZERO
    expenses = ZERO
    by_category: dict[str, Decimal] = defaultdict(lambda: ZERO)
    by_day: dict = {}

    for transaction in transactions:
        day = by_day.setdefault(
            transaction.date.date(), DailyStat(day=transaction.date.date())
        )
        if transaction.type == TransactionType.INCOME:
            income += transaction.amount
            day.income += transaction.amount
        else:
            expenses += transaction.amount
            day.expense += transaction.amount
            by_category[transaction.category] += transaction.amount

    return TransactionAnalytics(
        window=window,
        income=income,
        expenses=expenses,
        savings=income - expenses,
        category_breakdown=dict(sorted(by_category.items())),
        daily_stats=[by_day[d] for d in sorted(by_day)],
        transaction_count=len(transactions),
        currency=currency,
    )
