"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract interface for storage operations.
This allows us to:
1. Run the whole engine against in-memory storage in tests
2. Keep Google Sheets (or a real database later) behind the same calls
3. Keep budget arithmetic decoupled from storage implementation

The interface is intentionally simple - we're not building a full ORM.
Filtering is expressed with TransactionQuery and PeriodFilter so every
backend selects exactly the same rows.
"""

from abc import ABC, abstractmethod
from datetime import datetime
from typing import Optional
from uuid import UUID

from pydantic import BaseModel, ConfigDict, field_validator

from fintrack.models.audit import AuditEvent
from fintrack.models.ledger import (
    Budget,
    BudgetHistory,
    Transaction,
    TransactionType,
)
from fintrack.models.period import PeriodFilter, to_naive_utc


class TransactionQuery(BaseModel):
    """
    Filter over one user's transactions.

    `categories` of None means any category; an empty tuple matches
    nothing. Both date bounds are inclusive.
    """
    model_config = ConfigDict(frozen=True)

    user_id: str
    type: Optional[TransactionType] = None
    categories: Optional[tuple[str, ...]] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None

    @field_validator('date_from', 'date_to')
    @classmethod
    def normalize_timezone(cls, v: Optional[datetime]) -> Optional[datetime]:
        if v is None:
            return v
        return to_naive_utc(v)

    def matches(self, transaction: Transaction) -> bool:
        if transaction.user_id != self.user_id:
            return False
        if self.type is not None and transaction.type != self.type:
            return False
        if self.categories is not None and transaction.category not in self.categories:
            return False
        if self.date_from is not None and transaction.date < self.date_from:
            return False
        if self.date_to is not None and transaction.date > self.date_to:
            return False
        return True


class TransactionStorageInterface(ABC):
    """
    Abstract interface for the Transaction Store.

    The store is the source of truth for monetary facts; budgets only
    ever cache sums computed from it.
    """

    @abstractmethod
    async def save_transaction(self, transaction: Transaction) -> Transaction:
        """
        Persist a new transaction.

        Raises:
            StorageError: If save fails
        """
        pass

    @abstractmethod
    async def get_transaction(self, transaction_id: UUID) -> Optional[Transaction]:
        """Retrieve a transaction by ID, or None."""
        pass

    @abstractmethod
    async def update_transaction(self, transaction: Transaction) -> Transaction:
        """
        Replace a stored transaction.

        Raises:
            RecordNotFoundError: If the transaction doesn't exist
        """
        pass

    @abstractmethod
    async def delete_transaction(self, transaction_id: UUID) -> bool:
        """Delete a transaction. Returns False if it didn't exist."""
        pass

    @abstractmethod
    async def find_transactions(
        self,
        query: TransactionQuery,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[Transaction]:
        """
        List matching transactions, newest first.

        Args:
            query: Row filter
            limit: Maximum number of results (None for all)
            offset: Number of results to skip
        """
        pass

    @abstractmethod
    async def count_transactions(self, query: TransactionQuery) -> int:
        """Count matching transactions, ignoring pagination."""
        pass


class BudgetStorageInterface(ABC):
    """Abstract interface for live budgets."""

    @abstractmethod
    async def create_budget(self, budget: Budget) -> Budget:
        """
        Insert a budget.

        Raises:
            DuplicateError: If (user_id, category, month, year) is taken
        """
        pass

    @abstractmethod
    async def get_budget(self, budget_id: UUID) -> Optional[Budget]:
        """Retrieve a budget by ID, or None."""
        pass

    @abstractmethod
    async def update_budget(self, budget: Budget) -> Budget:
        """
        Replace a stored budget.

        Raises:
            RecordNotFoundError: If the budget doesn't exist
        """
        pass

    @abstractmethod
    async def delete_budget(self, budget_id: UUID) -> bool:
        """Delete a budget. Returns False if it didn't exist."""
        pass

    @abstractmethod
    async def find_budgets(
        self,
        user_id: str,
        period: PeriodFilter,
    ) -> list[Budget]:
        """List a user's budgets passing the filter, ordered (year, month)."""
        pass


class HistoryStorageInterface(ABC):
    """
    Abstract interface for archived budget history.

    History rows are written only through commit_archive and are never
    modified afterwards.
    """

    @abstractmethod
    async def find_history(
        self,
        user_id: str,
        period: PeriodFilter,
        limit: Optional[int] = None,
        offset: int = 0,
    ) -> list[BudgetHistory]:
        """List a user's history rows passing the filter, ordered (year, month)."""
        pass

    @abstractmethod
    async def count_history(self, user_id: str, period: PeriodFilter) -> int:
        """Count history rows passing the filter, ignoring pagination."""
        pass


class LedgerStorageInterface(
    TransactionStorageInterface,
    BudgetStorageInterface,
    HistoryStorageInterface,
):
    """
    Everything the budget engine persists, plus the archive unit of work.
    """

    @abstractmethod
    async def commit_archive(self, history: BudgetHistory, budget_id: UUID) -> None:
        """
        Insert the history row and delete the live budget as one unit.

        Backends with transactions apply both or neither. Backends
        without them must compensate on failure and raise
        ArchiveIncompleteError when the data is left inconsistent.

        Raises:
            RecordNotFoundError: If the budget no longer exists
            ArchiveIncompleteError: If compensation failed
            ArchiveRolledBackError: If the archive failed and was undone
            StorageError: If the archive failed before writing anything
        """
        pass


class AuditStorageInterface(ABC):
    """
    Abstract interface for audit log storage.

    Audit logs are append-only - we never delete or modify them.
    """

    @abstractmethod
    async def append_event(self, event: AuditEvent) -> bool:
        """
        Append an audit event to the log.

        Returns:
            True if logged successfully
        """
        pass

    @abstractmethod
    async def get_events_by_correlation_id(
        self,
        correlation_id: UUID,
    ) -> list[AuditEvent]:
        """Get all events for a correlation ID, in chronological order."""
        pass

    @abstractmethod
    async def get_recent_events(
        self,
        limit: int = 100,
    ) -> list[AuditEvent]:
        """Get the most recent audit events (newest first)."""
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class RecordNotFoundError(StorageError):
    """Entity not found in storage."""
    pass


class DuplicateError(StorageError):
    """Attempted to insert a row whose unique key is already taken."""
    pass


class ConnectionError(StorageError):
    """Could not connect to storage backend."""
    pass


class ArchiveIncompleteError(StorageError):
    """
    An archive stopped between its two steps and could not be undone.

    `history_id` and `budget_id` identify the rows left behind.
    """

    def __init__(self, message: str, history_id: UUID, budget_id: UUID):
        super().__init__(message)
        self.history_id = history_id
        self.budget_id = budget_id


class ArchiveRolledBackError(StorageError):
    """
    An archive failed after its first step and the first step was undone.

    No history row remains and the budget is still live.
    """

    def __init__(self, message: str, history_id: UUID, budget_id: UUID):
        super().__init__(message)
        self.history_id = history_id
        self.budget_id = budget_id
