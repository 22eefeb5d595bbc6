"""Budget archive and history package."""

from fintrack.history.derivation import compute_utilization, derive_history
from fintrack.history.engine import HistoryEngine, HistoryPage

__all__ = ["HistoryEngine", "HistoryPage", "compute_utilization", "derive_history"]
