"""
Input Validation

DESIGN DECISION: Client input is validated before any storage call.

Every check appends a ValidationIssue instead of raising on the first
problem, so one rejected request reports all of its bad fields at once.
Only when the issue list is complete is a single ValidationError raised.

IMPORTANT: Validation NEVER silently fixes issues. Whitespace is stripped
and amounts are brought to two decimal places only when no cent is lost;
anything else is reported.
"""

from datetime import date, datetime, time
from decimal import Decimal, InvalidOperation
from typing import Any, Optional, TypeVar
from uuid import UUID

from pydantic import BaseModel
from pydantic import ValidationError as PydanticValidationError

from fintrack.errors import NotFoundError, ValidationError
from fintrack.models.ledger import TransactionType, ValidationIssue
from fintrack.models.period import to_naive_utc


CENT = Decimal("0.01")

FilterModel = TypeVar("FilterModel", bound=BaseModel)


class InputValidator:
    """
    Collects issues for raw budget and transaction input.

    Each `check_*` method returns the cleaned value, or None after
    recording an issue.
    """

    def __init__(self):
        self.issues: list[ValidationIssue] = []

    def add_issue(self, field: str, issue_type: str, message: str) -> None:
        self.issues.append(ValidationIssue(
            field=field,
            issue_type=issue_type,
            message=message,
        ))

    def raise_if_invalid(self) -> None:
        if self.issues:
            raise ValidationError.from_issues(self.issues)

    # -------------------------------------------------------------------------
    # Field checks
    # -------------------------------------------------------------------------

    def check_user_id(self, value: Any) -> Optional[str]:
        if not isinstance(value, str) or not value.strip():
            self.add_issue("user_id", "missing", "An authenticated user is required")
            return None
        return value.strip()

    def check_category(self, value: Any) -> Optional[str]:
        if value is None or (isinstance(value, str) and not value.strip()):
            self.add_issue("category", "missing", "Category is required")
            return None
        if not isinstance(value, str):
            self.add_issue("category", "invalid_type", "Category must be text")
            return None
        value = value.strip()
        if len(value) > 100:
            self.add_issue("category", "invalid_value", "Category must be at most 100 characters")
            return None
        return value

    def check_amount(
        self,
        value: Any,
        field: str = "amount",
        allow_zero: bool = False,
    ) -> Optional[Decimal]:
        if value is None or value == "":
            self.add_issue(field, "missing", f"{field.capitalize()} is required")
            return None
        if isinstance(value, bool):
            self.add_issue(field, "invalid_type", f"{field.capitalize()} must be a number")
            return None
        try:
            amount = Decimal(str(value).strip())
        except InvalidOperation:
            self.add_issue(field, "invalid_type", f"{field.capitalize()} must be a number")
            return None
        if not amount.is_finite():
            self.add_issue(field, "invalid_value", f"{field.capitalize()} must be a finite number")
            return None
        if amount < 0 or (amount == 0 and not allow_zero):
            bound = "zero or more" if allow_zero else "greater than zero"
            self.add_issue(field, "invalid_value", f"{field.capitalize()} must be {bound}")
            return None
        quantized = amount.quantize(CENT)
        if quantized != amount:
            self.add_issue(field, "invalid_value", f"{field.capitalize()} cannot have more than 2 decimal places")
            return None
        return quantized

    def _check_int(self, value: Any, field: str) -> Optional[int]:
        if value is None or value == "":
            self.add_issue(field, "missing", f"{field.capitalize()} is required")
            return None
        if isinstance(value, bool):
            self.add_issue(field, "invalid_type", f"{field.capitalize()} must be a whole number")
            return None
        if isinstance(value, int):
            return value
        try:
            return int(str(value).strip())
        except ValueError:
            self.add_issue(field, "invalid_type", f"{field.capitalize()} must be a whole number")
            return None

    def check_month(self, value: Any) -> Optional[int]:
        month = self._check_int(value, "month")
        if month is not None and not 1 <= month <= 12:
            self.add_issue("month", "invalid_value", "Month must be between 1 and 12")
            return None
        return month

    def check_year(self, value: Any) -> Optional[int]:
        year = self._check_int(value, "year")
        if year is not None and not 1000 <= year <= 9999:
            self.add_issue("year", "invalid_value", "Year must have four digits")
            return None
        return year

    def check_limit(self, value: Any) -> Optional[int]:
        if value is None or value == "":
            return None
        limit = self._check_int(value, "limit")
        if limit is not None and limit < 1:
            self.add_issue("limit", "invalid_value", "Limit must be at least 1")
            return None
        return limit

    def check_skip(self, value: Any) -> int:
        if value is None or value == "":
            return 0
        skip = self._check_int(value, "skip")
        if skip is not None and skip < 0:
            self.add_issue("skip", "invalid_value", "Skip cannot be negative")
            return 0
        return skip or 0

    def check_transaction_type(self, value: Any) -> Optional[TransactionType]:
        if value is None or value == "":
            self.add_issue("type", "missing", "Transaction type is required")
            return None
        try:
            return TransactionType(str(value).strip().lower())
        except ValueError:
            self.add_issue("type", "invalid_value", "Transaction type must be 'income' or 'expense'")
            return None

    def check_date(self, value: Any, field: str = "date") -> Optional[datetime]:
        """Accept a datetime, a date or an ISO string; store naive UTC."""
        if isinstance(value, datetime):
            return to_naive_utc(value)
        if isinstance(value, date):
            return datetime.combine(value, time.min)
        if isinstance(value, str):
            text = value.strip()
            # fromisoformat only learned the "Z" suffix in 3.11
            if text.endswith(("Z", "z")):
                text = text[:-1] + "+00:00"
            try:
                return to_naive_utc(datetime.fromisoformat(text))
            except ValueError:
                pass
        self.add_issue(field, "invalid_type", f"{field.capitalize()} must be an ISO date")
        return None

    def check_description(self, value: Any) -> str:
        if value is None:
            return ""
        if not isinstance(value, str):
            self.add_issue("description", "invalid_type", "Description must be text")
            return ""
        value = value.strip()
        if len(value) > 500:
            self.add_issue("description", "invalid_value", "Description must be at most 500 characters")
        return value


# =============================================================================
# FILTERS
# =============================================================================

def issues_from_pydantic(error: PydanticValidationError) -> list[ValidationIssue]:
    """Flatten pydantic errors into ValidationIssues."""
    issues = []
    for detail in error.errors():
        field = ".".join(str(part) for part in detail.get("loc", ())) or "filters"
        message = detail.get("msg", "Invalid value")
        # model_validator errors come through as "Value error, <text>"
        if message.startswith("Value error, "):
            message = message[len("Value error, "):]
        issues.append(ValidationIssue(
            field=field,
            issue_type=detail.get("type", "invalid_value"),
            message=message,
        ))
    return issues


def parse_filter(model_cls: type[FilterModel], data: Optional[dict]) -> FilterModel:
    """
    Build a filter model from raw query parameters.

    Keys whose value is None are dropped so callers can pass every
    parameter through unconditionally.

    Raises:
        ValidationError: If the parameters don't form a valid filter
    """
    cleaned = {k: v for k, v in (data or {}).items() if v is not None}
    try:
        return model_cls.model_validate(cleaned)
    except PydanticValidationError as e:
        raise ValidationError.from_issues(issues_from_pydantic(e))


def parse_entity_id(value: Any, entity: str) -> UUID:
    """
    Coerce a client-supplied id to a UUID.

    An id that can't name any row is reported the same way as a row
    that doesn't exist.
    """
    if isinstance(value, UUID):
        return value
    try:
        return UUID(str(value))
    except ValueError:
        raise NotFoundError(entity)
