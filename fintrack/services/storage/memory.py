"""
In-Memory Storage Implementation

Default backend for development and the backend every test runs on.
Rows are kept in dicts keyed by id; callers always receive copies so a
mutated model never leaks back into storage without an explicit update.

commit_archive has no await between its checks and its two writes, so on
a single event loop no other coroutine can observe the archive half done.
"""

from typing import Optional
from uuid import UUID

from fintrack.models.audit import AuditEvent
from fintrack.models.ledger import Budget, BudgetHistory, Transaction
from fintrack.models.period import PeriodFilter
from fintrack.services.storage.interface import (
    AuditStorageInterface,
    DuplicateError,
    LedgerStorageInterface,
    RecordNotFoundError,
    TransactionQuery,
)


def _month_order(row) -> tuple[int, int]:
    return (row.year, row.month)


class InMemoryLedgerStorage(LedgerStorageInterface):
    """Dict-backed ledger storage."""

    def __init__(self):
        self._transactions: dict[UUID, Transaction] = {}
        self._budgets: dict[UUID, Budget] = {}
        self._history: dict[UUID, BudgetHistory] = {}

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def save_transaction(self, transaction: Transaction) -> Transaction:
        self._transactions[transaction.id] = transaction.model_copy(deep=True)
        return transaction

    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        stored = self._transactions.get(transaction_id)
        return stored.model_copy(deep=True) if stored else None

    async def update_transaction(self, transaction: Transaction) -> Transaction:
        if transaction.id not in self._transactions:
            raise RecordNotFoundError(f"Transaction not found: {transaction.id}")
        self._transactions[transaction.id] = transaction.model_copy(deep=True)
        return transaction

    async def delete_transaction(self, transaction_id: UUID) -> bool:
        return self._transactions.pop(transaction_id, None) is not None

    def _matching_transactions(self, query: TransactionQuery) -> list[Transaction]:
        matches = [t for t in self._transactions.values() if query.matches(t)]
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
        return [t.model_copy(deep=True) for t in matches[offset:end]]

    async def count_transactions(self, query: TransactionQuery) -> int:
        return len(self._matching_transactions(query))

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    def _find_by_key(self, budget: Budget) -> Optional[Budget]:
        for stored in self._budgets.values():
            if stored.key == budget.key:
                return stored
        return None

    async def create_budget(self, budget: Budget) -> Budget:
        if self._find_by_key(budget) is not None:
            raise DuplicateError(
                f"Budget exists for {budget.category} {budget.year}-{budget.month:02d}"
            )
        self._budgets[budget.id] = budget.model_copy(deep=True)
        return budget

    async def get_budget(self, budget_id: UUID) -> Optional[Budget]:
        stored = self._budgets.get(budget_id)
        return stored.model_copy(deep=True) if stored else None

    async def update_budget(self, budget: Budget) -> Budget:
        if budget.id not in self._budgets:
            raise RecordNotFoundError(f"Budget not found: {budget.id}")
        self._budgets[budget.id] = budget.model_copy(deep=True)
        return budget

    async def delete_budget(self, budget_id: UUID) -> bool:
        return self._budgets.pop(budget_id, None) is not None

    async def find_budgets(
        self,
        user_id: str,
        period: PeriodFilter,
    ) -> list[Budget]:
        budgets = [
            b.model_copy(deep=True)
            for b in self._budgets.values()
            if b.user_id == user_id and period.accepts(b.category, b.month, b.year)
        ]
        budgets.sort(key=_month_order)
        return budgets

    # -------------------------------------------------------------------------
    # History
    # -------------------------------------------------------------------------

    def _matching_history(
        self,
        user_id: str,
        period: PeriodFilter,
    ) -> list[BudgetHistory]:
        rows = [
            h for h in self._history.values()
            if h.user_id == user_id and period.accepts(h.category, h.month, h.year)
        ]
        rows.sort(key=_month_order)
        return rows

    async def find_history(
        self,
        user_id: str,
        period: PeriodFilter,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[BudgetHistory]:
        rows = self._matching_history(user_id, period)
        end = offset + limit if limit is not None else None
        # History rows are frozen, no copy needed
        return rows[offset:end]

    async def count_history(self, user_id: str, period: PeriodFilter) -> int:
        return len(self._matching_history(user_id, period))

    async def commit_archive(self, history: BudgetHistory, budget_id: UUID) -> None:
        if budget_id not in self._budgets:
            raise RecordNotFoundError(f"Budget not found: {budget_id}")
        self._history[history.id] = history
        del self._budgets[budget_id]


class InMemoryAuditStorage(AuditStorageInterface):
    """List-backed audit log."""

    def __init__(self):
        self._events: list[AuditEvent] = []

    async def append_event(self, event: AuditEvent) -> bool:
        self._events.append(event)
        return True

    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        events = [e for e in self._events if e.correlation_id == correlation_id]
        events.sort(key=lambda e: e.timestamp)
        return events

    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        events = sorted(self._events, key=lambda e: e.timestamp, reverse=True)
        return events[:limit]
