"""Live budget package: spend aggregation and budget CRUD."""

from fintrack.budgets.aggregator import BudgetAggregator, sum_expenses
from fintrack.budgets.manager import BudgetManager

__all__ = ["BudgetAggregator", "BudgetManager", "sum_expenses"]
