"""
Audit Models

Every mutation of a budget, history row or transaction is recorded as an
AuditEvent. Events are also the only trace of a half-finished archive on
backends without transactions, so they carry enough detail to repair the
data by hand.

DESIGN DECISION: Audit logs are append-only. We never delete or modify them.
"""

from datetime import datetime
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """Types of events we audit."""
    # Transactions
    TRANSACTION_CREATED = "transaction_created"
    TRANSACTION_UPDATED = "transaction_updated"
    TRANSACTION_DELETED = "transaction_deleted"

    # Live budgets
    BUDGET_CREATED = "budget_created"
    BUDGET_UPDATED = "budget_updated"
    BUDGET_DELETED = "budget_deleted"
    BUDGET_DUPLICATE_REJECTED = "budget_duplicate_rejected"

    # Archive
    BUDGET_ARCHIVED = "budget_archived"
    ARCHIVE_COMPENSATED = "archive_compensated"
    ARCHIVE_PARTIAL_FAILURE = "archive_partial_failure"

    # History queries
    HISTORY_QUERIED = "history_queried"
    HISTORY_DERIVED = "history_derived"

    # Input and system
    VALIDATION_FAILED = "validation_failed"
    SYSTEM_ERROR = "system_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """A single audit event."""

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=datetime.now,
        description="When the event occurred"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Who and what
    user_id: Optional[str] = Field(
        default=None,
        description="User the event belongs to"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'budget', 'transaction', 'history')"
    )
    entity_id: Optional[UUID] = Field(
        default=None,
        description="ID of the entity this event relates to"
    )

    # Correlation - for tracking related events
    correlation_id: Optional[UUID] = Field(
        default=None,
        description="ID to correlate related events (e.g., both steps of one archive)"
    )

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    # Error information (if applicable)
    error_code: Optional[str] = None
    error_message: Optional[str] = None

    is_user_action: bool = Field(
        default=False,
        description="Was this triggered by a user action?"
    )

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "user_id": self.user_id,
            "entity_type": self.entity_type,
            "entity_id": str(self.entity_id) if self.entity_id else None,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_code": self.error_code,
            "error_message": self.error_message,
            "is_user_action": self.is_user_action,
        }

    def to_sheets_row(self) -> list:
        """
        Convert to a row suitable for Google Sheets storage.

        Returns columns in order:
        [event_id, timestamp, event_type, severity, user_id, entity_type,
         entity_id, correlation_id, description, details_json,
         error_message, is_user_action]
        """
        import json

        return [
            str(self.event_id),
            self.timestamp.isoformat(),
            self.event_type.value,
            self.severity.value,
            self.user_id or "",
            self.entity_type or "",
            str(self.entity_id) if self.entity_id else "",
            str(self.correlation_id) if self.correlation_id else "",
            self.description,
            json.dumps(self.details, default=str) if self.details else "",
            self.error_message or "",
            str(self.is_user_action),
        ]


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.budget_created(budget, correlation_id)
        event = AuditEventBuilder.budget_archived(history, budget_id, correlation_id)
    """

    @staticmethod
    def transaction_changed(
        event_type: AuditEventType,
        user_id: str,
        transaction_id: UUID,
        category: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        verb = event_type.value.split("_")[-1]
        return AuditEvent(
            event_type=event_type,
            user_id=user_id,
            entity_type="transaction",
            entity_id=transaction_id,
            correlation_id=correlation_id,
            description=f"Transaction {verb}: {category} {amount}",
            details={
                "category": category,
                "amount": amount,
            },
            is_user_action=True,
        )

    @staticmethod
    def budget_created(
        user_id: str,
        budget_id: UUID,
        category: str,
        month: int,
        year: int,
        amount: str,
        spent: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_CREATED,
            user_id=user_id,
            entity_type="budget",
            entity_id=budget_id,
            correlation_id=correlation_id,
            description=f"Budget created: {category} {year}-{month:02d}",
            details={
                "category": category,
                "month": month,
                "year": year,
                "amount": amount,
                "spent": spent,
            },
            is_user_action=True,
        )

    @staticmethod
    def budget_updated(
        user_id: str,
        budget_id: UUID,
        amount: str,
        spent: str,
        amount_changed: bool,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_UPDATED,
            user_id=user_id,
            entity_type="budget",
            entity_id=budget_id,
            correlation_id=correlation_id,
            description="Budget updated" if amount_changed else "Budget spent refreshed",
            details={
                "amount": amount,
                "spent": spent,
                "amount_changed": amount_changed,
            },
            is_user_action=True,
        )

    @staticmethod
    def budget_deleted(
        user_id: str,
        budget_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_DELETED,
            user_id=user_id,
            entity_type="budget",
            entity_id=budget_id,
            correlation_id=correlation_id,
            description="Budget deleted",
            is_user_action=True,
        )

    @staticmethod
    def budget_duplicate_rejected(
        user_id: str,
        category: str,
        month: int,
        year: int,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_DUPLICATE_REJECTED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="budget",
            correlation_id=correlation_id,
            description=f"Duplicate budget rejected: {category} {year}-{month:02d}",
            details={
                "category": category,
                "month": month,
                "year": year,
            },
            error_code="duplicate_budget",
            is_user_action=True,
        )

    @staticmethod
    def budget_archived(
        user_id: str,
        history_id: UUID,
        budget_id: UUID,
        status: str,
        utilization: float,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.BUDGET_ARCHIVED,
            user_id=user_id,
            entity_type="history",
            entity_id=history_id,
            correlation_id=correlation_id,
            description=f"Budget archived as {status} ({utilization:.1f}%)",
            details={
                "budget_id": str(budget_id),
                "status": status,
                "utilization_percentage": utilization,
            },
            is_user_action=True,
        )

    @staticmethod
    def archive_compensated(
        user_id: str,
        history_id: UUID,
        budget_id: UUID,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ARCHIVE_COMPENSATED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            entity_type="history",
            entity_id=history_id,
            correlation_id=correlation_id,
            description="Archive rolled back: history row removed after budget delete failed",
            details={"budget_id": str(budget_id)},
            error_message=error_message,
        )

    @staticmethod
    def archive_partial_failure(
        user_id: str,
        history_id: UUID,
        budget_id: UUID,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ARCHIVE_PARTIAL_FAILURE,
            severity=AuditSeverity.CRITICAL,
            user_id=user_id,
            entity_type="history",
            entity_id=history_id,
            correlation_id=correlation_id,
            description="Archive left orphaned history: budget still live",
            details={"budget_id": str(budget_id)},
            error_message=error_message,
        )

    @staticmethod
    def history_queried(
        user_id: str,
        result_count: int,
        total: int,
        derived: bool,
        filters: dict,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=(
                AuditEventType.HISTORY_DERIVED
                if derived
                else AuditEventType.HISTORY_QUERIED
            ),
            user_id=user_id,
            entity_type="history",
            correlation_id=correlation_id,
            description=(
                f"History query returned {result_count} of {total} "
                f"{'derived' if derived else 'archived'} rows"
            ),
            details={
                "result_count": result_count,
                "total": total,
                "filters": filters,
            },
        )

    @staticmethod
    def validation_failed(
        operation: str,
        issues: list[dict],
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.VALIDATION_FAILED,
            severity=AuditSeverity.WARNING,
            user_id=user_id,
            correlation_id=correlation_id,
            description=f"{operation} rejected with {len(issues)} issues",
            details={
                "operation": operation,
                "issues": issues,
            },
            error_code="validation_error",
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_code="internal_error",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )
