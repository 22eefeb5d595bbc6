"""
Core Ledger Models

These models define the schemas for everything the budget engine reads
and writes: transactions, live budgets, archived budget history and the
structured results handed back to the presentation layer.

DESIGN DECISION: Money is always Decimal. Sums are exact; rounding only
ever happens when a value is displayed. Utilization is the one float in
the system because it is a ratio, not money.
"""

from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, ConfigDict, Field, field_validator

from fintrack.models.period import DateWindow, to_naive_utc


# =============================================================================
# ENUMS
# =============================================================================

class TransactionType(str, Enum):
    """Direction of a transaction."""
    INCOME = "income"
    EXPENSE = "expense"


class BudgetStatus(str, Enum):
    """
    Utilization band of an archived (or derived) budget.

    MET covers the 90-100% band: at or above 90% and not above 100%.
    """
    UNDER = "under"
    MET = "met"
    OVER = "over"


# Categories offered by the client. Category itself stays free-form text.
DEFAULT_CATEGORIES = (
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


# =============================================================================
# TRANSACTIONS
# =============================================================================

class Transaction(BaseModel):
    """
    A single dated, typed and categorized money movement.

    Owned by exactly one user. Deleting a transaction never touches
    budgets; their cached `spent` catches up on the next refresh.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(
        default_factory=uuid4,
        description="Unique transaction ID"
    )
    user_id: str = Field(
        ...,
        min_length=1,
        description="Owner reference"
    )
    type: TransactionType
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        decimal_places=2,
        description="Amount (currency is a display label only)"
    )
    description: str = Field(
        default="",
        max_length=500,
    )
    date: datetime = Field(
        default_factory=datetime.now,
        description="When the money moved"
    )
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @field_validator('date')
    @classmethod
    def store_in_utc(cls, v: datetime) -> datetime:
        return to_naive_utc(v)

    @property
    def is_expense(self) -> bool:
        return self.type == TransactionType.EXPENSE


# =============================================================================
# BUDGETS
# =============================================================================

class Budget(BaseModel):
    """
    A live monthly spending ceiling for one category.

    At most one budget exists per (user_id, category, month, year).
    `spent` is a cache derived from transactions; it is refreshed on
    create and update and may lag behind transaction edits in between.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    id: UUID = Field(default_factory=uuid4)
    user_id: str = Field(..., min_length=1)
    category: str = Field(
        ...,
        min_length=1,
        max_length=100,
    )
    amount: Decimal = Field(
        ...,
        ge=0,
        decimal_places=2,
        description="Budgeted ceiling"
    )
    month: int = Field(..., ge=1, le=12)
    year: int = Field(..., ge=1000, le=9999)
    spent: Decimal = Field(
        default=Decimal("0"),
        ge=0,
        description="Derived expense total for the budget period"
    )
    created_at: datetime = Field(default_factory=datetime.now)
    updated_at: datetime = Field(default_factory=datetime.now)

    @property
    def period(self) -> DateWindow:
        """The calendar month this budget covers."""
        return DateWindow.for_month(self.year, self.month)

    @property
    def key(self) -> tuple[str, str, int, int]:
        """Uniqueness key."""
        return (self.user_id, self.category, self.month, self.year)


class HistoryRecordBase(BaseModel):
    """Fields shared by archived and derived history rows."""

    user_id: str
    category: str
    budgeted_amount: Decimal
    spent_amount: Decimal
    month: int = Field(..., ge=1, le=12)
    year: int
    status: BudgetStatus
    utilization_percentage: float = Field(..., ge=0)


class BudgetHistory(HistoryRecordBase):
    """
    Immutable snapshot of a budget, written once by the archive operation.

    Never updated in place.
    """
    model_config = ConfigDict(frozen=True)

    id: UUID = Field(default_factory=uuid4)
    archived_at: datetime = Field(default_factory=datetime.now)
    derived: bool = False


class DerivedBudgetHistory(HistoryRecordBase):
    """
    History-shaped view synthesized from a live budget at query time.

    Not persisted. The id is the composite "{category}-{year}-{month}".
    """
    model_config = ConfigDict(frozen=True)

    id: str
    derived: bool = True

    @staticmethod
    def synthetic_id(category: str, year: int, month: int) -> str:
        return f"{category}-{year}-{month}"


# =============================================================================
# ANALYTICS
# =============================================================================

class DailyStat(BaseModel):
    """Income and expense totals for one calendar day."""

    day: date
    income: Decimal = Decimal("0")
    expense: Decimal = Decimal("0")


class TransactionAnalytics(BaseModel):
    """Spend breakdown for a period."""

    window: DateWindow
    income: Decimal
    expenses: Decimal
    savings: Decimal
    category_breakdown: dict[str, Decimal] = Field(default_factory=dict)
    daily_stats: list[DailyStat] = Field(default_factory=list)
    transaction_count: int = Field(ge=0)
    currency: str = Field(
        default="USD",
        description="Display label for every amount above"
    )


# =============================================================================
# VALIDATION AND OPERATION RESULTS
# =============================================================================

class ValidationIssue(BaseModel):
    """A single problem found in client input."""

    field: str = Field(
        ...,
        description="Field with the issue"
    )
    issue_type: str = Field(
        ...,
        description="Type of issue (e.g., 'missing', 'invalid_value')"
    )
    message: str = Field(
        ...,
        description="Human-readable description of the issue"
    )
    severity: str = Field(
        default="error",
        pattern="^(error|warning)$",
    )


class OperationResult(BaseModel):
    """
    Structured outcome of one operation, as handed to the API layer.

    `count` and `total` are only set for list operations. `error_code`
    is one of validation_error, duplicate_budget, not_found,
    internal_error.
    """

    success: bool
    data: Any = None
    count: Optional[int] = None
    total: Optional[int] = None
    message: Optional[str] = None
    error_code: Optional[str] = None
    issues: list[ValidationIssue] = Field(default_factory=list)

    def to_response_dict(self) -> dict:
        """JSON-safe dict with unset optional keys dropped."""
        payload = self.model_dump(mode="json", exclude_none=True)
        if not self.issues:
            payload.pop("issues", None)
        return payload
