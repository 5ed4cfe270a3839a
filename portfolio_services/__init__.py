"""
portfolio_services -- Stateful orchestration over engines and the kernel.

Services own the unit of work: they take the per-owner lock, open
``LedgerStore.atomic`` and compose the pure engines with persistence.
"""

from portfolio_services.allocation_service import (
    AllocationLine,
    AllocationPlan,
    AllocationResult,
    ExplicitPercentageBasis,
    ProRataAllocationService,
    RevenueShareBasis,
)
from portfolio_services.entity_resolver import EntityResolver, Resolution, ResolutionMethod
from portfolio_services.payout_import_service import (
    ImportOutcome,
    ImportPreview,
    PayoutImportService,
)
from portfolio_services.range_replacement import RangeReplacementService, ReplacementResult
from portfolio_services.reconciliation_service import ReconciliationService

__all__ = [
    "AllocationLine",
    "AllocationPlan",
    "AllocationResult",
    "EntityResolver",
    "ExplicitPercentageBasis",
    "ImportOutcome",
    "ImportPreview",
    "PayoutImportService",
    "ProRataAllocationService",
    "RangeReplacementService",
    "ReconciliationService",
    "ReplacementResult",
    "Resolution",
    "ResolutionMethod",
    "RevenueShareBasis",
]
