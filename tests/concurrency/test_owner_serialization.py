"""
Per-owner serialization of imports and allocations.

Runs against InMemoryLedgerStore with real threads.  The store itself does
not serialize owners; OwnerLockRegistry does.
"""

import threading
import time
from concurrent.futures import ThreadPoolExecutor
from contextlib import contextmanager
from dataclasses import replace
from datetime import date
from decimal import Decimal

import pytest

from portfolio_config import EngineSettings, ImportSettings
from portfolio_kernel.domain.dtos import DateRange
from portfolio_kernel.exceptions import ImportInProgressError
from portfolio_kernel.services.memory_store import InMemoryLedgerStore
from portfolio_services.allocation_service import (
    ExplicitPercentageBasis,
    ProRataAllocationService,
)
from portfolio_services.payout_import_service import PayoutImportService
from tests.reports import HISTORICAL_HEADER, build_report, historical_row

YEAR = DateRange(date(2024, 1, 1), date(2024, 12, 31))

REPORT = build_report(
    HISTORICAL_HEADER,
    historical_row("01/15/2024", "Payout", paid="1000"),
    historical_row("01/15/2024", "Reserva", listing="Loft Centro", amount="600"),
    historical_row("01/15/2024", "Reserva", listing="Casa Búzios", amount="400"),
)


class CountingStore(InMemoryLedgerStore):
    """Records how many units of work overlap per owner."""

    def __init__(self) -> None:
        super().__init__()
        self._count_lock = threading.Lock()
        self.active: dict = {}
        self.max_active: dict = {}

    @contextmanager
    def atomic(self, owner_id):
        with self._count_lock:
            self.active[owner_id] = self.active.get(owner_id, 0) + 1
            self.max_active[owner_id] = max(
                self.max_active.get(owner_id, 0), self.active[owner_id]
            )
        try:
            time.sleep(0.005)
            with super().atomic(owner_id):
                yield
        finally:
            with self._count_lock:
                self.active[owner_id] -= 1


def _with_timeout(seconds):
    return replace(EngineSettings(), imports=ImportSettings(lock_timeout_seconds=seconds))


@pytest.fixture
def counting_store(owner_id, other_owner_id, make_property):
    store = CountingStore()
    for owner in (owner_id, other_owner_id):
        make_property(store, owner, "Loft Centro")
        make_property(store, owner, "Casa Búzios")
    return store


class TestOwnerLockTimeout:
    def test_import_times_out_while_owner_busy(
        self, counting_store, owner_id, lock_registry, deterministic_clock
    ):
        service = PayoutImportService(
            counting_store,
            clock=deterministic_clock,
            settings=_with_timeout(0.05),
            lock_registry=lock_registry,
        )

        with lock_registry.hold(owner_id):
            with pytest.raises(ImportInProgressError) as exc_info:
                service.import_report(REPORT, owner_id)

        assert exc_info.value.code == "IMPORT_IN_PROGRESS"
        assert counting_store.list_entries(owner_id, None, YEAR) == []

    def test_other_owner_not_blocked(
        self, counting_store, owner_id, other_owner_id, lock_registry, deterministic_clock
    ):
        service = PayoutImportService(
            counting_store,
            clock=deterministic_clock,
            settings=_with_timeout(0.05),
            lock_registry=lock_registry,
        )

        with lock_registry.hold(owner_id):
            outcome = service.import_report(REPORT, other_owner_id)

        assert outcome.entry_count == 2

    def test_delete_allocation_waits_for_owner_lock(
        self, counting_store, owner_id, lock_registry
    ):
        allocator = ProRataAllocationService(
            counting_store, settings=_with_timeout(0.05), lock_registry=lock_registry
        )
        loft = next(
            e.entity_id for e in counting_store.list_entities(owner_id) if e.name == "Loft Centro"
        )
        result = allocator.allocate(
            owner_id,
            Decimal("10"),
            ExplicitPercentageBasis({loft: Decimal("100")}),
            effective_date=date(2024, 2, 1),
        )
        parent_id = result.parents[0].entry_id

        with lock_registry.hold(owner_id):
            with pytest.raises(ImportInProgressError):
                allocator.delete_allocation(owner_id, parent_id)

        assert counting_store.get_entry(owner_id, parent_id) is not None
        assert allocator.delete_allocation(owner_id, parent_id) == 2

    def test_lock_released_after_timeout(self, lock_registry, owner_id):
        holder_ready = threading.Event()
        release = threading.Event()

        def holder():
            with lock_registry.hold(owner_id):
                holder_ready.set()
                release.wait(5)

        thread = threading.Thread(target=holder)
        thread.start()
        holder_ready.wait(5)
        with pytest.raises(ImportInProgressError):
            with lock_registry.hold(owner_id, timeout=0.01):
                pass
        release.set()
        thread.join(5)

        with lock_registry.hold(owner_id, timeout=1):
            assert lock_registry.is_held(owner_id)
        assert not lock_registry.is_held(owner_id)


class TestConcurrentRuns:
    def test_same_owner_imports_serialized(
        self, counting_store, owner_id, lock_registry, deterministic_clock
    ):
        service = PayoutImportService(
            counting_store,
            clock=deterministic_clock,
            settings=_with_timeout(None),
            lock_registry=lock_registry,
        )

        with ThreadPoolExecutor(max_workers=8) as pool:
            outcomes = list(pool.map(lambda _: service.import_report(REPORT, owner_id), range(8)))

        assert counting_store.max_active[owner_id] == 1
        assert all(o.reconciliation.passed for o in outcomes)
        entries = counting_store.list_entries(owner_id, None, YEAR)
        assert sorted(e.amount for e in entries) == [Decimal("400"), Decimal("600")]

    def test_different_owners_run_in_parallel(
        self, counting_store, owner_id, other_owner_id, lock_registry, deterministic_clock
    ):
        service = PayoutImportService(
            counting_store,
            clock=deterministic_clock,
            settings=_with_timeout(None),
            lock_registry=lock_registry,
        )
        owners = [owner_id, other_owner_id] * 4

        with ThreadPoolExecutor(max_workers=8) as pool:
            list(pool.map(lambda owner: service.import_report(REPORT, owner), owners))

        for owner in (owner_id, other_owner_id):
            assert counting_store.max_active[owner] == 1
            assert len(counting_store.list_entries(owner, None, YEAR)) == 2

    def test_allocation_and_import_share_owner_lock(
        self, counting_store, owner_id, lock_registry, deterministic_clock
    ):
        settings = _with_timeout(None)
        importer = PayoutImportService(
            counting_store,
            clock=deterministic_clock,
            settings=settings,
            lock_registry=lock_registry,
        )
        allocator = ProRataAllocationService(
            counting_store, settings=settings, lock_registry=lock_registry
        )
        loft = next(
            e.entity_id for e in counting_store.list_entities(owner_id) if e.name == "Loft Centro"
        )
        basis = ExplicitPercentageBasis({loft: Decimal("100")})

        def run(index):
            if index % 2:
                return importer.import_report(REPORT, owner_id)
            return allocator.allocate(
                owner_id, Decimal("10"), basis, effective_date=date(2024, 2, 1)
            )

        with ThreadPoolExecutor(max_workers=6) as pool:
            list(pool.map(run, range(6)))

        assert counting_store.max_active[owner_id] == 1
