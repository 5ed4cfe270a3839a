"""Kernel services: ledger stores and per-owner locking."""

from portfolio_kernel.services.memory_store import InMemoryLedgerStore
from portfolio_kernel.services.owner_locks import OwnerLockRegistry, default_lock_registry
from portfolio_kernel.services.sql_store import SqlLedgerStore

__all__ = [
    "InMemoryLedgerStore",
    "OwnerLockRegistry",
    "SqlLedgerStore",
    "default_lock_registry",
]
