"""
Audit Logger

DESIGN DECISION: Every mutation of money-related data is logged.
This provides:
1. Complete traceability of budgets, archives and transactions
2. Debugging capability
3. The only record of an archive left half done on Sheets

The audit logger:
- Is async to not block main flow
- Gracefully handles failures (doesn't crash the app if logging fails)
- Supports correlation IDs to trace related events
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from fintrack.models.audit import AuditEvent, AuditEventBuilder, AuditEventType
from fintrack.models.ledger import ValidationIssue
from fintrack.services.storage import AuditStorageInterface


# Configure structlog for local logging
structlog.configure(
    processors=[
        structlog.stdlib.filter_by_level,
        structlog.stdlib.add_logger_name,
        structlog.stdlib.add_log_level,
        structlog.stdlib.PositionalArgumentsFormatter(),
        structlog.processors.TimeStamper(fmt="iso"),
        structlog.processors.StackInfoRenderer(),
        structlog.processors.format_exc_info,
        structlog.processors.UnicodeDecoder(),
        structlog.processors.JSONRenderer()
    ],
    wrapper_class=structlog.stdlib.BoundLogger,
    context_class=dict,
    logger_factory=structlog.stdlib.LoggerFactory(),
    cache_logger_on_first_use=True,
)


def configure_logging(level: str = "INFO") -> None:
    """Route stdlib logging (and so structlog) to stdout at `level`."""
    logging.basicConfig(
        format="%(message)s",
        stream=sys.stdout,
        level=getattr(logging, level.upper(), logging.INFO),
    )


class AuditLogger:
    """
    Central audit logging service.

    Logs events both to:
    1. Structured local log (for debugging)
    2. Audit storage (for persistence), when one is configured
    """

    def __init__(
        self,
        storage: Optional[AuditStorageInterface] = None,
    ):
        """
        Initialize audit logger.

        Args:
            storage: Storage backend for persistence.
                    If None, only logs locally.
        """
        self._storage = storage
        self._logger = structlog.get_logger("fintrack.audit")

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Always logs locally. Persists to storage if available.

        Returns True if storage write succeeded (or no storage configured).
        """
        log_dict = event.to_log_dict()

        if event.severity.value == "critical":
            self._logger.critical("audit_event", **log_dict)
        elif event.severity.value == "error":
            self._logger.error("audit_event", **log_dict)
        elif event.severity.value == "warning":
            self._logger.warning("audit_event", **log_dict)
        else:
            self._logger.info("audit_event", **log_dict)

        if self._storage:
            try:
                return await self._storage.append_event(event)
            except Exception as e:
                # Log failure but don't raise
                self._logger.error(
                    "audit_storage_failed",
                    error=str(e),
                    event_id=str(event.event_id),
                )
                return False

        return True

    # -------------------------------------------------------------------------
    # Transactions
    # -------------------------------------------------------------------------

    async def log_transaction_changed(
        self,
        event_type: AuditEventType,
        user_id: str,
        transaction_id: UUID,
        category: str,
        amount: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.transaction_changed(
            event_type=event_type,
            user_id=user_id,
            transaction_id=transaction_id,
            category=category,
            amount=amount,
            correlation_id=correlation_id,
        )
        await self.log(event)

    # -------------------------------------------------------------------------
    # Budgets
    # -------------------------------------------------------------------------

    async def log_budget_created(
        self,
        user_id: str,
        budget_id: UUID,
        category: str,
        month: int,
        year: int,
        amount: str,
        spent: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.budget_created(
            user_id=user_id,
            budget_id=budget_id,
            category=category,
            month=month,
            year=year,
            amount=amount,
            spent=spent,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_budget_updated(
        self,
        user_id: str,
        budget_id: UUID,
        amount: str,
        spent: str,
        amount_changed: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.budget_updated(
            user_id=user_id,
            budget_id=budget_id,
            amount=amount,
            spent=spent,
            amount_changed=amount_changed,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_budget_deleted(
        self,
        user_id: str,
        budget_id: UUID,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.budget_deleted(
            user_id=user_id,
            budget_id=budget_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_budget_duplicate_rejected(
        self,
        user_id: str,
        category: str,
        month: int,
        year: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.budget_duplicate_rejected(
            user_id=user_id,
            category=category,
            month=month,
            year=year,
            correlation_id=correlation_id,
        )
        await self.log(event)

    # -------------------------------------------------------------------------
    # Archive and history
    # -------------------------------------------------------------------------

    async def log_budget_archived(
        self,
        user_id: str,
        history_id: UUID,
        budget_id: UUID,
        status: str,
        utilization: float,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.budget_archived(
            user_id=user_id,
            history_id=history_id,
            budget_id=budget_id,
            status=status,
            utilization=utilization,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_archive_compensated(
        self,
        user_id: str,
        history_id: UUID,
        budget_id: UUID,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.archive_compensated(
            user_id=user_id,
            history_id=history_id,
            budget_id=budget_id,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_archive_partial_failure(
        self,
        user_id: str,
        history_id: UUID,
        budget_id: UUID,
        error_message: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.archive_partial_failure(
            user_id=user_id,
            history_id=history_id,
            budget_id=budget_id,
            error_message=error_message,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_history_queried(
        self,
        user_id: str,
        result_count: int,
        total: int,
        derived: bool,
        filters: dict,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        event = AuditEventBuilder.history_queried(
            user_id=user_id,
            result_count=result_count,
            total=total,
            derived=derived,
            filters=filters,
            correlation_id=correlation_id,
        )
        await self.log(event)

    # -------------------------------------------------------------------------
    # Failures
    # -------------------------------------------------------------------------

    async def log_validation_failed(
        self,
        operation: str,
        issues: list[ValidationIssue],
        user_id: Optional[str] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log rejected input."""
        event = AuditEventBuilder.validation_failed(
            operation=operation,
            issues=[issue.model_dump() for issue in issues],
            user_id=user_id,
            correlation_id=correlation_id,
        )
        await self.log(event)

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an error."""
        event = AuditEventBuilder.system_error(
            error_type=error_type,
            error_message=error_message,
            details=details,
            correlation_id=correlation_id,
        )
        await self.log(event)


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    Use this at the start of a new user action (e.g., archiving a budget).
    Pass it through all subsequent operations.
    """
    return uuid4()
