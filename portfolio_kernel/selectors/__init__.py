"""Read-only selectors."""

from portfolio_kernel.selectors.ledger_selector import LedgerSelector

__all__ = ["LedgerSelector"]
