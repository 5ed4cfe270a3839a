"""Reconciliation - per-date comparison of source totals and ledger totals."""

from portfolio_engines.reconciliation.checker import ReconciliationChecker
from portfolio_engines.reconciliation.domain import (
    DEFAULT_TOLERANCE,
    ReconciliationLine,
    ReconciliationReport,
)

__all__ = [
    "DEFAULT_TOLERANCE",
    "ReconciliationChecker",
    "ReconciliationLine",
    "ReconciliationReport",
]
