"""
Tests for spend aggregation and utilization.
"""

from datetime import datetime, timedelta, timezone
from decimal import Decimal

from fintrack.budgets import BudgetAggregator, sum_expenses
from fintrack.history import compute_utilization
from fintrack.models.ledger import BudgetStatus, TransactionType
from fintrack.models.period import DateWindow


MARCH = DateWindow.for_month(2024, 3)


class TestBudgetAggregator:
    """Storage-backed spend sums."""

    def test_sums_matching_expenses(self, run, storage, add_transaction):
        add_transaction("50.00")
        add_transaction("30.00", when=datetime(2024, 3, 20))
        aggregator = BudgetAggregator(storage)
        assert run(aggregator.compute_spent("user-1", "Food", MARCH)) == Decimal("80.00")

    def test_empty_match_is_zero(self, run, storage):
        aggregator = BudgetAggregator(storage)
        assert run(aggregator.compute_spent("user-1", "Food", MARCH)) == Decimal("0")

    def test_ignores_other_categories_users_types_and_months(self, run, storage, add_transaction):
        add_transaction("10.00")
        add_transaction("99.00", category="Rent")
        add_transaction("99.00", user_id="user-2")
        add_transaction("99.00", type=TransactionType.INCOME)
        add_transaction("99.00", when=datetime(2024, 4, 1))
        add_transaction("99.00", when=datetime(2024, 2, 29, 23, 59, 59))
        aggregator = BudgetAggregator(storage)
        assert run(aggregator.compute_spent("user-1", "Food", MARCH)) == Decimal("10.00")

    def test_window_bounds_are_inclusive(self, run, storage, add_transaction):
        add_transaction("1.00", when=datetime(2024, 3, 1, 0, 0))
        add_transaction("2.00", when=datetime(2024, 3, 31, 23, 59, 59, 999000))
        aggregator = BudgetAggregator(storage)
        assert run(aggregator.compute_spent("user-1", "Food", MARCH)) == Decimal("3.00")

    def test_offset_aware_transaction_dates(self, run, storage, add_transaction):
        add_transaction("12.00", when=datetime(2024, 3, 5, 10, tzinfo=timezone.utc))
        plus_three = timezone(timedelta(hours=3))
        add_transaction("8.00", when=datetime(2024, 4, 1, 1, tzinfo=plus_three))
        add_transaction("99.00", when=datetime(2024, 3, 1, 1, tzinfo=plus_three))
        aggregator = BudgetAggregator(storage)
        assert run(aggregator.compute_spent("user-1", "Food", MARCH)) == Decimal("20.00")

    def test_sum_is_exact(self, run, storage, add_transaction):
        for _ in range(10):
            add_transaction("0.10")
        aggregator = BudgetAggregator(storage)
        assert run(aggregator.compute_spent("user-1", "Food", MARCH)) == Decimal("1.00")


class TestSumExpenses:
    """The pure helper shared with history derivation."""

    def test_filters_by_window(self, add_transaction):
        inside = add_transaction("5.00", when=datetime(2024, 3, 15))
        outside = add_transaction("7.00", when=datetime(2024, 3, 5))
        window = DateWindow.for_range(datetime(2024, 3, 10), datetime(2024, 3, 20))
        assert sum_expenses([inside, outside], "Food", window) == Decimal("5.00")


class TestComputeUtilization:
    """Status thresholds."""

    def test_over(self):
        assert compute_utilization(Decimal("120"), Decimal("100")) == (120.0, BudgetStatus.OVER)

    def test_exactly_full_is_met(self):
        assert compute_utilization(Decimal("100"), Decimal("100")) == (100.0, BudgetStatus.MET)

    def test_ninety_percent_is_met(self):
        assert compute_utilization(Decimal("90"), Decimal("100")) == (90.0, BudgetStatus.MET)

    def test_just_below_ninety_is_under(self):
        utilization, status = compute_utilization(Decimal("89.99"), Decimal("100"))
        assert status == BudgetStatus.UNDER
        assert utilization == 89.99

    def test_half_is_under(self):
        assert compute_utilization(Decimal("50"), Decimal("100")) == (50.0, BudgetStatus.UNDER)

    def test_zero_amount_is_zero_percent(self):
        assert compute_utilization(Decimal("75"), Decimal("0")) == (0.0, BudgetStatus.UNDER)

    def test_just_over_full_is_over(self):
        _, status = compute_utilization(Decimal("100.01"), Decimal("100"))
        assert status == BudgetStatus.OVER
