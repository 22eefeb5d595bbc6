"""
Budget Aggregator

Computes how much a user spent in one category over a closed interval.
The transaction store is the source of truth; `Budget.spent` is only ever
a cached result of this computation.

Sums are exact Decimal additions. An empty match set sums to zero.
"""

from decimal import Decimal
from typing import Iterable

from fintrack.models.ledger import Transaction, TransactionType
from fintrack.models.period import DateWindow
from fintrack.services.storage import TransactionQuery, TransactionStorageInterface


ZERO = Decimal("0")


def sum_expenses(
    transactions: Iterable[Transaction],
    category: str,
    window: DateWindow,
) -> Decimal:
    """Sum expense amounts of `category` dated inside `window`."""
    total = ZERO
    for transaction in transactions:
        if (
            transaction.is_expense
            and transaction.category == category
            and window.contains(transaction.date)
        ):
            total += transaction.amount
    return total


class BudgetAggregator:
    """Storage-backed spend aggregation."""

    def __init__(self, storage: TransactionStorageInterface):
        self._storage = storage

    async def compute_spent(
        self,
        user_id: str,
        category: str,
        window: DateWindow,
    ) -> Decimal:
        """
        Total expenses for (user, category) with start <= date <= end.

        Raises:
            StorageError: If the transaction store can't be read
        """
        query = TransactionQuery(
            user_id=user_id,
            type=TransactionType.EXPENSE,
            categories=(category,),
            date_from=window.start,
            date_to=window.end,
        )
        transactions = await self._storage.find_transactions(query)
        return sum_expenses(transactions, category, window)
