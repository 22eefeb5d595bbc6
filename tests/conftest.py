"""
Shared fixtures.

Every test runs against in-memory storage; the Google Sheets backend is
exercised through a fake worksheet client in its own module.
"""

import asyncio
from datetime import datetime
from decimal import Decimal

import pytest

from fintrack.audit import AuditLogger
from fintrack.config import AppSettings
from fintrack.models.ledger import Transaction, TransactionType
from fintrack.services.storage import InMemoryAuditStorage, InMemoryLedgerStorage


def run_async(coro):
    """Run a coroutine to completion on a fresh event loop."""
    loop = asyncio.new_event_loop()
    try:
        return loop.run_until_complete(coro)
    finally:
        loop.close()


@pytest.fixture
def run():
    return run_async


@pytest.fixture
def storage():
    return InMemoryLedgerStorage()


@pytest.fixture
def audit_storage():
    return InMemoryAuditStorage()


@pytest.fixture
def audit_logger(audit_storage):
    return AuditLogger(audit_storage)


@pytest.fixture
def app_settings():
    return AppSettings(
        history_page_size=50,
        transaction_page_size=50,
        max_page_size=500,
    )


@pytest.fixture
def add_transaction(storage):
    """Insert a transaction directly into storage."""

    def _add(
        amount,
        category="Food",
        when=datetime(2024, 3, 10, 12, 0),
        type=TransactionType.EXPENSE,
        user_id="user-1",
    ) -> Transaction:
        transaction = Transaction(
            user_id=user_id,
            type=type,
            category=category,
            amount=Decimal(str(amount)),
            date=when,
        )
        run_async(storage.save_transaction(transaction))
        return transaction

    return _add
