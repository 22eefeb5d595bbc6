"""
fintrack - Personal Finance Budget Engine

Tracks income and expense transactions, keeps monthly category budgets
in sync with what was actually spent, and archives closed budgets into
an immutable history.

DESIGN PRINCIPLES:
1. Transactions are the source of truth; budget `spent` is a cache
2. Money is Decimal end to end
3. Archived history is never modified
4. Every mutation is auditable
5. Storage layer is swappable
"""

__version__ = "1.0.0"
__author__ = "fintrack Team"
