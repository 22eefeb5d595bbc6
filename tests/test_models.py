"""
Tests for fintrack models

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests for flows (against in-memory storage)
3. No real API calls in tests (Google Sheets is faked)
"""

import pytest
from datetime import datetime, timedelta, timezone
from decimal import Decimal
from uuid import uuid4

from fintrack.models.ledger import (
    DEFAULT_CATEGORIES,
    Budget,
    BudgetHistory,
    BudgetStatus,
    DerivedBudgetHistory,
    OperationResult,
    Transaction,
    TransactionType,
    ValidationIssue,
)
from fintrack.models.period import DateWindow
from fintrack.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)


class TestLedgerModels:
    """Tests for transaction, budget and history Pydantic models."""

    def test_transaction_creation(self):
        """Test Transaction model creation."""
        tx = Transaction(
            user_id="user-1",
            type=TransactionType.EXPENSE,
            category="Food",
            amount=Decimal("12.50"),
            date=datetime(2024, 3, 1, 9, 30),
        )
        assert tx.is_expense
        assert tx.amount == Decimal("12.50")
        assert tx.description == ""

    def test_transaction_strips_whitespace(self):
        """Test that whitespace is stripped from category."""
        tx = Transaction(
            user_id="user-1",
            type=TransactionType.INCOME,
            category="  Salary  ",
            amount=Decimal("100"),
        )
        assert tx.category == "Salary"
        assert not tx.is_expense

    def test_transaction_date_is_stored_as_naive_utc(self):
        """Offset-aware dates are converted to UTC and stripped."""
        tx = Transaction(
            user_id="user-1",
            type=TransactionType.EXPENSE,
            category="Food",
            amount=Decimal("1"),
            date=datetime(2024, 3, 1, 1, 30, tzinfo=timezone(timedelta(hours=2))),
        )
        assert tx.date == datetime(2024, 2, 29, 23, 30)
        assert tx.date.tzinfo is None

    def test_transaction_rejects_negative_amount(self):
        """Amounts must be non-negative."""
        with pytest.raises(ValueError):
            Transaction(
                user_id="user-1",
                type=TransactionType.EXPENSE,
                category="Food",
                amount=Decimal("-1.00"),
            )

    def test_budget_period_covers_whole_month(self):
        """A budget's period runs from midnight on the 1st to 23:59:59.999 on the last day."""
        budget = Budget(
            user_id="user-1",
            category="Food",
            amount=Decimal("200"),
            month=2,
            year=2024,
        )
        assert budget.period.start == datetime(2024, 2, 1)
        assert budget.period.end == datetime(2024, 2, 29, 23, 59, 59, 999000)
        assert budget.spent == Decimal("0")

    def test_budget_key(self):
        budget = Budget(
            user_id="user-1",
            category="Rent",
            amount=Decimal("900"),
            month=12,
            year=2023,
        )
        assert budget.key == ("user-1", "Rent", 12, 2023)

    def test_budget_month_bounds(self):
        """Month must be 1-12."""
        with pytest.raises(ValueError):
            Budget(
                user_id="user-1",
                category="Food",
                amount=Decimal("200"),
                month=13,
                year=2024,
            )

    def test_budget_history_is_immutable(self):
        """Archived history cannot be modified in place."""
        history = BudgetHistory(
            user_id="user-1",
            category="Food",
            budgeted_amount=Decimal("100"),
            spent_amount=Decimal("50"),
            month=1,
            year=2024,
            status=BudgetStatus.UNDER,
            utilization_percentage=50.0,
        )
        assert history.derived is False
        with pytest.raises(ValueError):
            history.spent_amount = Decimal("60")

    def test_derived_history_synthetic_id(self):
        assert DerivedBudgetHistory.synthetic_id("Food", 2024, 3) == "Food-2024-3"


class TestDateWindow:
    """Tests for closed timestamp windows."""

    def test_for_range_pushes_end_to_end_of_day(self):
        window = DateWindow.for_range(datetime(2024, 1, 15), datetime(2024, 1, 20))
        assert window.start == datetime(2024, 1, 15)
        assert window.end == datetime(2024, 1, 20, 23, 59, 59, 999000)

    def test_window_order_validation(self):
        with pytest.raises(ValueError, match="Window end cannot be before start"):
            DateWindow(start=datetime(2024, 2, 1), end=datetime(2024, 1, 1))

    def test_intersect_partial_overlap(self):
        month = DateWindow.for_month(2023, 11)
        query = DateWindow.for_range(datetime(2023, 11, 15), datetime(2024, 2, 10))
        overlap = month.intersect(query)
        assert overlap.start == datetime(2023, 11, 15)
        assert overlap.end == datetime(2023, 11, 30, 23, 59, 59, 999000)

    def test_aware_window_intersects_month(self):
        query = DateWindow(
            start=datetime(2024, 3, 15, tzinfo=timezone.utc),
            end=datetime(2024, 4, 5, tzinfo=timezone.utc),
        )
        overlap = DateWindow.for_month(2024, 3).intersect(query)
        assert overlap.start == datetime(2024, 3, 15)
        assert overlap.end == datetime(2024, 3, 31, 23, 59, 59, 999000)

    def test_intersect_disjoint(self):
        assert DateWindow.for_month(2024, 1).intersect(DateWindow.for_month(2024, 3)) is None

    def test_contains_is_inclusive(self):
        window = DateWindow.for_month(2024, 1)
        assert window.contains(datetime(2024, 1, 1))
        assert window.contains(datetime(2024, 1, 31, 23, 59, 59, 999000))
        assert not window.contains(datetime(2024, 2, 1))


class TestOperationResult:
    """Tests for the boundary result model."""

    def test_to_response_dict_drops_unset_fields(self):
        result = OperationResult(success=True, message="ok")
        assert result.to_response_dict() == {"success": True, "message": "ok"}

    def test_to_response_dict_serializes_issues(self):
        result = OperationResult(
            success=False,
            error_code="validation_error",
            issues=[ValidationIssue(field="amount", issue_type="missing", message="Amount is required")],
        )
        payload = result.to_response_dict()
        assert payload["error_code"] == "validation_error"
        assert payload["issues"][0]["field"] == "amount"

    def test_to_response_dict_serializes_money_as_text(self):
        budget = Budget(
            user_id="user-1",
            category="Food",
            amount=Decimal("200.00"),
            month=3,
            year=2024,
        )
        payload = OperationResult(success=True, data=budget).to_response_dict()
        assert payload["data"]["amount"] == "200.00"


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.BUDGET_CREATED,
            description="Budget created",
        )
        assert event.event_type == AuditEventType.BUDGET_CREATED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.BUDGET_DELETED,
            user_id="user-1",
            description="Budget deleted",
            details={"key": "value"},
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "budget_deleted"
        assert log_dict["user_id"] == "user-1"
        assert log_dict["details"] == {"key": "value"}

    def test_audit_event_to_sheets_row(self):
        """Test conversion to spreadsheet row."""
        event = AuditEvent(
            event_type=AuditEventType.BUDGET_ARCHIVED,
            user_id="user-1",
            description="Budget archived",
        )
        row = event.to_sheets_row()
        assert len(row) == 12
        assert row[2] == "budget_archived"
        assert row[4] == "user-1"
        assert row[11] == "False"

    def test_audit_event_builder_budget_created(self):
        """Test the budget created builder."""
        budget_id = uuid4()
        correlation_id = uuid4()
        event = AuditEventBuilder.budget_created(
            user_id="user-1",
            budget_id=budget_id,
            category="Food",
            month=3,
            year=2024,
            amount="200.00",
            spent="80.00",
            correlation_id=correlation_id,
        )
        assert event.event_type == AuditEventType.BUDGET_CREATED
        assert event.entity_id == budget_id
        assert event.correlation_id == correlation_id
        assert event.details["spent"] == "80.00"
        assert event.is_user_action

    def test_audit_event_builder_partial_failure_is_critical(self):
        event = AuditEventBuilder.archive_partial_failure(
            user_id="user-1",
            history_id=uuid4(),
            budget_id=uuid4(),
            error_message="delete failed",
        )
        assert event.severity == AuditSeverity.CRITICAL
        assert event.error_message == "delete failed"

    def test_audit_event_builder_history_derived(self):
        event = AuditEventBuilder.history_queried(
            user_id="user-1",
            result_count=2,
            total=2,
            derived=True,
            filters={"month": 3, "year": 2024},
        )
        assert event.event_type == AuditEventType.HISTORY_DERIVED


class TestCategories:
    """Tests for the default category list."""

    def test_all_categories_exist(self):
        assert DEFAULT_CATEGORIES == (
            "Food",
            "Rent",
            "Transport",
            "Entertainment",
            "Shopping",
            "Bills",
            "Healthcare",
            "Education",
            "Other",
        )


if __name__ == "__main__":
    pytest.main([__file__, "-v"])
