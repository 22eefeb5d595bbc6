"""
History Derivation

Pure functions that turn budget numbers into history rows. Used both when
archiving a budget and when a history query finds nothing archived and
falls back to live budgets.
"""

from decimal import Decimal
from typing import Iterable

from fintrack.budgets.aggregator import sum_expenses
from fintrack.models.ledger import (
    Budget,
    BudgetStatus,
    DerivedBudgetHistory,
    Transaction,
)
from fintrack.models.period import DateWindow


OVER_THRESHOLD = Decimal("100")
MET_THRESHOLD = Decimal("90")


def compute_utilization(spent: Decimal, amount: Decimal) -> tuple[float, BudgetStatus]:
    """
    Utilization percentage and its status band.

    A zero amount gives 0% and UNDER rather than a division error.
    """
    if amount == 0:
        return 0.0, BudgetStatus.UNDER

    ratio = spent * 100 / amount
    if ratio > OVER_THRESHOLD:
        status = BudgetStatus.OVER
    elif ratio >= MET_THRESHOLD:
        status = BudgetStatus.MET
    else:
        status = BudgetStatus.UNDER
    return float(ratio), status


def derive_history(
    budgets: Iterable[Budget],
    transactions: Iterable[Transaction],
    window: DateWindow,
) -> list[DerivedBudgetHistory]:
    """
    History-shaped rows for live budgets, as seen through `window`.

    Each budget only counts its own category inside the overlap of its
    month with the window. A budget whose month misses the window
    entirely gets spent 0.
    """
    transactions = list(transactions)
    rows = []
    for budget in budgets:
        effective = budget.period.intersect(window)
        if effective is None:
            spent = Decimal("0")
        else:
            spent = sum_expenses(transactions, budget.category, effective)
        utilization, status = compute_utilization(spent, budget.amount)
        rows.append(DerivedBudgetHistory(
            id=DerivedBudgetHistory.synthetic_id(budget.category, budget.year, budget.month),
            user_id=budget.user_id,
            category=budget.category,
            budgeted_amount=budget.amount,
            spent_amount=spent,
            month=budget.month,
            year=budget.year,
            status=status,
            utilization_percentage=utilization,
        ))
    rows.sort(key=lambda row: (row.year, row.month))
    return rows
