"""
Tests for the Transaction Service and period analytics.
"""

import pytest
from datetime import date, datetime
from decimal import Decimal

from fintrack.budgets import BudgetManager
from fintrack.config import AppSettings
from fintrack.errors import NotFoundError, ValidationError
from fintrack.models.ledger import TransactionType
from fintrack.models.period import PeriodFilter
from fintrack.transactions import TransactionService


@pytest.fixture
def service(storage, audit_logger, app_settings):
    return TransactionService(storage, audit_logger, app_settings)


class TestTransactionCrud:
    """Owner-scoped create, read, update and delete."""

    def test_create(self, run, service):
        tx = run(service.create(
            "user-1", "expense", "Food", "12.50",
            description="Lunch", date="2024-03-10T12:00:00",
        ))
        assert tx.type == TransactionType.EXPENSE
        assert tx.amount == Decimal("12.50")
        assert tx.date == datetime(2024, 3, 10, 12, 0)
        assert run(service.get("user-1", tx.id)).description == "Lunch"

    def test_create_defaults_date_to_now(self, run, service):
        before = datetime.now()
        tx = run(service.create("user-1", "income", "Salary", 1000))
        assert tx.date >= before

    def test_create_accepts_plain_date(self, run, service):
        tx = run(service.create("user-1", "expense", "Food", 5, date=date(2024, 3, 1)))
        assert tx.date == datetime(2024, 3, 1)

    def test_create_with_utc_suffix(self, run, service):
        tx = run(service.create("user-1", "expense", "Food", 5, date="2024-03-05T10:00:00Z"))
        assert tx.date == datetime(2024, 3, 5, 10, 0)
        assert tx.date.tzinfo is None

    def test_create_with_offset_is_converted_to_utc(self, run, service):
        tx = run(service.create("user-1", "expense", "Food", 5, date="2024-03-01T01:00:00+02:00"))
        assert tx.date == datetime(2024, 2, 29, 23, 0)

    def test_create_reports_every_bad_field(self, run, service):
        with pytest.raises(ValidationError) as exc_info:
            run(service.create("user-1", "transfer", "", None, date="yesterday"))
        assert {issue.field for issue in exc_info.value.issues} == {
            "type",
            "category",
            "amount",
            "date",
        }

    def test_get_other_users_transaction_is_not_found(self, run, service):
        tx = run(service.create("user-1", "expense", "Food", 5))
        with pytest.raises(NotFoundError):
            run(service.get("user-2", tx.id))

    def test_partial_update(self, run, service):
        tx = run(service.create("user-1", "expense", "Food", 5, date=datetime(2024, 3, 1)))
        updated = run(service.update("user-1", tx.id, amount="7.25", category="Transport"))
        assert updated.amount == Decimal("7.25")
        assert updated.category == "Transport"
        assert updated.date == datetime(2024, 3, 1)
        assert run(service.get("user-1", tx.id)).category == "Transport"

    def test_update_with_aware_date(self, run, service):
        tx = run(service.create("user-1", "expense", "Food", 5, date=datetime(2024, 3, 1)))
        updated = run(service.update("user-1", tx.id, date="2024-03-20T08:15:00Z"))
        assert updated.date == datetime(2024, 3, 20, 8, 15)
        rows, total = run(service.list("user-1", month=3, year=2024))
        assert total == 1

    def test_update_rejects_unknown_fields(self, run, service):
        tx = run(service.create("user-1", "expense", "Food", 5))
        with pytest.raises(ValidationError) as exc_info:
            run(service.update("user-1", tx.id, owner="user-2"))
        assert exc_info.value.issues[0].issue_type == "not_updatable"

    def test_delete(self, run, service):
        tx = run(service.create("user-1", "expense", "Food", 5))
        with pytest.raises(NotFoundError):
            run(service.delete("user-2", tx.id))
        run(service.delete("user-1", tx.id))
        with pytest.raises(NotFoundError):
            run(service.get("user-1", tx.id))

    def test_mutations_do_not_touch_budgets(self, run, service, storage, audit_logger):
        manager = BudgetManager(storage, audit_logger)
        budget = run(manager.create("user-1", "Food", 100, 3, 2024))
        run(service.create("user-1", "expense", "Food", 60, date=datetime(2024, 3, 5)))
        assert run(storage.get_budget(budget.id)).spent == Decimal("0")
        assert run(manager.update("user-1", budget.id)).spent == Decimal("60")


class TestTransactionList:
    """Listing, filtering and pagination."""

    def test_newest_first_with_total(self, run, service):
        for day in (1, 3, 2):
            run(service.create("user-1", "expense", "Food", day, date=datetime(2024, 3, day)))
        rows, total = run(service.list("user-1", limit=2))
        assert [tx.date.day for tx in rows] == [3, 2]
        assert total == 3

    def test_skip(self, run, service):
        for day in (1, 2, 3):
            run(service.create("user-1", "expense", "Food", day, date=datetime(2024, 3, day)))
        rows, total = run(service.list("user-1", limit=2, skip=2))
        assert [tx.date.day for tx in rows] == [1]
        assert total == 3

    def test_filters(self, run, service):
        run(service.create("user-1", "expense", "Food", 1, date=datetime(2024, 3, 1)))
        run(service.create("user-1", "income", "Salary", 1, date=datetime(2024, 3, 1)))
        run(service.create("user-1", "expense", "Food", 1, date=datetime(2024, 4, 1)))
        run(service.create("user-2", "expense", "Food", 1, date=datetime(2024, 3, 1)))
        rows, total = run(service.list("user-1", type="expense", category="Food", month=3, year=2024))
        assert total == 1
        assert rows[0].date == datetime(2024, 3, 1)

    def test_string_pagination_is_coerced(self, run, service):
        for day in (1, 2, 3):
            run(service.create("user-1", "expense", "Food", day, date=datetime(2024, 3, day)))
        rows, total = run(service.list("user-1", limit="2", skip="1"))
        assert [tx.date.day for tx in rows] == [2, 1]
        assert total == 3

    @pytest.mark.parametrize(
        "limit, skip, field",
        [
            ("ten", None, "limit"),
            (0, None, "limit"),
            (None, "-1", "skip"),
            (None, "first", "skip"),
        ],
    )
    def test_bad_pagination_is_rejected(self, run, service, limit, skip, field):
        with pytest.raises(ValidationError) as exc_info:
            run(service.list("user-1", limit=limit, skip=skip))
        assert [issue.field for issue in exc_info.value.issues] == [field]

    def test_month_without_year_is_rejected(self, run, service):
        with pytest.raises(ValidationError):
            run(service.list("user-1", month=3))


class TestTransactionAnalytics:
    """Period totals and breakdowns."""

    def test_month_summary(self, run, service):
        run(service.create("user-1", "income", "Salary", "1000.00", date=datetime(2024, 3, 1, 9)))
        run(service.create("user-1", "expense", "Food", "45.50", date=datetime(2024, 3, 1, 13)))
        run(service.create("user-1", "expense", "Rent", "600.00", date=datetime(2024, 3, 2)))
        run(service.create("user-1", "expense", "Food", "4.50", date=datetime(2024, 3, 2)))
        run(service.create("user-1", "expense", "Food", "999", date=datetime(2024, 4, 1)))

        analytics = run(service.analytics("user-1", PeriodFilter(month=3, year=2024)))
        assert analytics.income == Decimal("1000.00")
        assert analytics.expenses == Decimal("650.00")
        assert analytics.savings == Decimal("350.00")
        assert analytics.category_breakdown == {
            "Food": Decimal("50.00"),
            "Rent": Decimal("600.00"),
        }
        assert analytics.transaction_count == 4
        assert [(d.day, d.income, d.expense) for d in analytics.daily_stats] == [
            (date(2024, 3, 1), Decimal("1000.00"), Decimal("45.50")),
            (date(2024, 3, 2), Decimal("0"), Decimal("604.50")),
        ]

    def test_range_summary(self, run, service):
        run(service.create("user-1", "expense", "Food", 10, date=datetime(2024, 3, 10, 20)))
        run(service.create("user-1", "expense", "Food", 10, date=datetime(2024, 3, 11)))
        analytics = run(service.analytics(
            "user-1",
            PeriodFilter(start_date=datetime(2024, 3, 1), end_date=datetime(2024, 3, 10)),
        ))
        assert analytics.expenses == Decimal("10")

    def test_empty_period(self, run, service):
        analytics = run(service.analytics("user-1"))
        assert analytics.transaction_count == 0
        assert analytics.currency == "USD"
        assert analytics.savings == Decimal("0")
        assert analytics.daily_stats == []

    def test_currency_label_comes_from_settings(self, run, storage, audit_logger):
        service = TransactionService(storage, audit_logger, AppSettings(currency="EUR"))
        analytics = run(service.analytics("user-1", PeriodFilter(month=3, year=2024)))
        assert analytics.currency == "EUR"
