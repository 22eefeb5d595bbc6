"""Input validation package."""

from fintrack.validation.validator import (
    InputValidator,
    issues_from_pydantic,
    parse_entity_id,
    parse_filter,
)

__all__ = ["InputValidator", "issues_from_pydantic", "parse_entity_id", "parse_filter"]
