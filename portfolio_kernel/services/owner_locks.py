"""
OwnerLockRegistry -- in-process serialization of runs per owner.

Responsibility:
    Hands out one lock per owner so that two imports (or an import and an
    allocation) for the same owner never interleave inside a process.  Runs
    for different owners proceed in parallel.  Cross-process serialization
    on PostgreSQL is the advisory lock taken by SqlLedgerStore.atomic.

Failure modes:
    - ImportInProgressError when ``timeout`` elapses before the lock frees.
"""

import threading
from collections.abc import Iterator
from contextlib import contextmanager
from uuid import UUID

from portfolio_kernel.exceptions import ImportInProgressError
from portfolio_kernel.logging_config import get_logger

logger = get_logger("services.owner_locks")


class OwnerLockRegistry:
    """One ``threading.Lock`` per owner id, created on first use."""

    def __init__(self) -> None:
        self._locks: dict[UUID, threading.Lock] = {}
        self._guard = threading.Lock()

    def _lock_for(self, owner_id: UUID) -> threading.Lock:
        with self._guard:
            lock = self._locks.get(owner_id)
            if lock is None:
                lock = self._locks[owner_id] = threading.Lock()
            return lock

    def is_held(self, owner_id: UUID) -> bool:
        return self._lock_for(owner_id).locked()

    @contextmanager
    def hold(self, owner_id: UUID, timeout: float | None = None) -> Iterator[None]:
        """Hold the owner's lock; ``timeout=None`` waits indefinitely."""
        lock = self._lock_for(owner_id)
        acquired = lock.acquire(timeout=-1 if timeout is None else timeout)
        if not acquired:
            logger.warning(
                "owner_lock_timeout",
                extra={"owner_id": str(owner_id), "timeout_seconds": timeout},
            )
            raise ImportInProgressError(str(owner_id), timeout)
        try:
            yield
        finally:
            lock.release()


_default_registry = OwnerLockRegistry()


def default_lock_registry() -> OwnerLockRegistry:
    """Process-wide registry shared by services that are not given one."""
    return _default_registry
