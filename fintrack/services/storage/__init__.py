"""
Storage Services Package

Provides abstract interfaces and concrete implementations for data storage.
The in-memory backend is the default; Google Sheets is the persistent one.
"""

from fintrack.services.storage.interface import (
    ArchiveIncompleteError,
    ArchiveRolledBackError,
    AuditStorageInterface,
    BudgetStorageInterface,
    ConnectionError,
    DuplicateError,
    HistoryStorageInterface,
    LedgerStorageInterface,
    RecordNotFoundError,
    StorageError,
    TransactionQuery,
    TransactionStorageInterface,
)
from fintrack.services.storage.memory import (
    InMemoryAuditStorage,
    InMemoryLedgerStorage,
)
from fintrack.services.storage.google_sheets import (
    GoogleSheetsAuditStorage,
    GoogleSheetsClient,
    GoogleSheetsLedgerStorage,
)

__all__ = [
    # Interfaces
    "AuditStorageInterface",
    "BudgetStorageInterface",
    "HistoryStorageInterface",
    "LedgerStorageInterface",
    "TransactionQuery",
    "TransactionStorageInterface",
    # Exceptions
    "ArchiveIncompleteError",
    "ArchiveRolledBackError",
    "ConnectionError",
    "DuplicateError",
    "RecordNotFoundError",
    "StorageError",
    # In-memory implementation
    "InMemoryAuditStorage",
    "InMemoryLedgerStorage",
    # Google Sheets implementation
    "GoogleSheetsAuditStorage",
    "GoogleSheetsClient",
    "GoogleSheetsLedgerStorage",
]
