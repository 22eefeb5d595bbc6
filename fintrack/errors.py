"""
Domain Errors

Every operation in the budget engine fails with one of these error kinds.
The FinanceService boundary translates them into structured results; the
`code` attribute is what the transport layer maps onto a status code.

Ownership and existence share NotFoundError: a budget owned by another
user is reported exactly like a budget that does not exist.
"""

from typing import Optional

from fintrack.models.ledger import ValidationIssue


class FinanceError(Exception):
    """Base class for all domain errors."""

    code = "internal_error"

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class ValidationError(FinanceError):
    """A required field is missing or malformed."""

    code = "validation_error"

    def __init__(
        self,
        message: str,
        issues: Optional[list[ValidationIssue]] = None,
    ):
        super().__init__(message)
        self.issues = issues or []

    @classmethod
    def from_issues(cls, issues: list[ValidationIssue]) -> "ValidationError":
        """Build a single error whose message lists every issue."""
        message = "; ".join(issue.message for issue in issues)
        return cls(message or "Invalid input", issues)


class DuplicateBudgetError(FinanceError):
    """A budget already exists for this (user, category, month, year)."""

    code = "duplicate_budget"

    def __init__(self, category: str, month: int, year: int):
        super().__init__(
            f"Budget already exists for {category} in {year}-{month:02d}"
        )
        self.category = category
        self.month = month
        self.year = year


class NotFoundError(FinanceError):
    """The entity does not exist or is not owned by the caller."""

    code = "not_found"

    def __init__(self, entity: str):
        super().__init__(f"{entity.capitalize()} not found")
        self.entity = entity
