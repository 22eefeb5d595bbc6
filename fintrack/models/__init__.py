"""
Data Models Package

This package contains all Pydantic models used by the budget engine.
All data flowing through the system must conform to these schemas.
"""

from fintrack.models.period import (
    DateWindow,
    HistoryFilter,
    MonthSpan,
    PeriodFilter,
    end_of_day,
    month_end,
    month_spans_for_range,
    month_start,
)
from fintrack.models.ledger import (
    DEFAULT_CATEGORIES,
    Budget,
    BudgetHistory,
    BudgetStatus,
    DailyStat,
    DerivedBudgetHistory,
    HistoryRecordBase,
    OperationResult,
    Transaction,
    TransactionAnalytics,
    TransactionType,
    ValidationIssue,
)
from fintrack.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Period models
    "DateWindow",
    "HistoryFilter",
    "MonthSpan",
    "PeriodFilter",
    "end_of_day",
    "month_end",
    "month_spans_for_range",
    "month_start",
    # Ledger models
    "DEFAULT_CATEGORIES",
    "Budget",
    "BudgetHistory",
    "BudgetStatus",
    "DailyStat",
    "DerivedBudgetHistory",
    "HistoryRecordBase",
    "OperationResult",
    "Transaction",
    "TransactionAnalytics",
    "TransactionType",
    "ValidationIssue",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
