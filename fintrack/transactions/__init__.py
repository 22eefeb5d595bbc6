"""Transaction package."""

from fintrack.transactions.service import TransactionService, summarize

__all__ = ["TransactionService", "summarize"]
