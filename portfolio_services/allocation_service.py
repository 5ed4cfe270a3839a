"""
portfolio_services.allocation_service -- Pro-rata expense and tax allocation.

Responsibility:
    Splits a lump-sum expense or tax across properties and persists it as
    one consolidated parent entry (no property) with one child per
    property.  The split basis is either each property's revenue over a
    reference period read from the ledger (RevenueShareBasis) or explicit
    percentages (ExplicitPercentageBasis).  A liability may be spread over
    N monthly installments, each its own parent with its own children.

Architecture position:
    Services -- composes the pure ProportionalDistributor with a
    LedgerStore.  ``preview`` / ``plan`` never write.

Invariants enforced:
    - Children of a parent sum exactly to the parent amount.
    - Installment parents sum exactly to the liability.
    - Zero-amount children are not persisted.
    - Deleting a parent removes all of its children.
    - Zero reference revenue falls back to an equal split.

Failure modes:
    - ValueError: non-positive amount, installments < 1, or no target
      properties.
    - LedgerEntryNotFoundError: ``delete_allocation`` on an unknown parent.
"""

from __future__ import annotations

from collections.abc import Mapping, Sequence
from dataclasses import dataclass
from datetime import date
from decimal import Decimal
from uuid import UUID

from portfolio_config import EngineSettings, get_active_config
from portfolio_engines.distribution import (
    DistributionResult,
    DistributionWeight,
    ProportionalDistributor,
    WeightBasis,
)
from portfolio_kernel.domain.dtos import (
    DateRange,
    EntryKind,
    LedgerEntryInfo,
    SourceTag,
)
from portfolio_kernel.domain.repository import LedgerStore
from portfolio_kernel.exceptions import LedgerEntryNotFoundError
from portfolio_kernel.logging_config import LogContext, get_logger
from portfolio_kernel.services.owner_locks import OwnerLockRegistry, default_lock_registry

logger = get_logger("services.allocation")


# =============================================================================
# Bases
# =============================================================================


@dataclass(frozen=True)
class RevenueShareBasis:
    """Weights are each property's revenue over ``date_range``."""

    date_range: DateRange

    @classmethod
    def for_month(cls, year: int, month: int) -> RevenueShareBasis:
        return cls(DateRange.month(year, month))

    @classmethod
    def trailing(cls, anchor: date, days: int) -> RevenueShareBasis:
        return cls(DateRange.trailing_days(anchor, days))


@dataclass(frozen=True)
class ExplicitPercentageBasis:
    """Fixed percentages per property; properties left out share the remainder."""

    percentages: Mapping[UUID, Decimal]

    def __post_init__(self) -> None:
        for entity_id, pct in self.percentages.items():
            if pct < 0:
                raise ValueError(f"Negative percentage {pct} for {entity_id}")


AllocationBasis = RevenueShareBasis | ExplicitPercentageBasis


# =============================================================================
# Plans and results
# =============================================================================


@dataclass(frozen=True)
class AllocationLine:
    entity_id: UUID
    weight: Decimal
    percentage: Decimal
    amount: Decimal


@dataclass(frozen=True)
class AllocationPlan:
    """How a sum would be split, before anything is written."""

    total: Decimal
    lines: tuple[AllocationLine, ...]
    equal_split: bool

    def amount_for(self, entity_id: UUID) -> Decimal:
        for line in self.lines:
            if line.entity_id == entity_id:
                return line.amount
        return Decimal("0")


@dataclass(frozen=True)
class AllocationResult:
    parents: tuple[LedgerEntryInfo, ...]
    children: tuple[LedgerEntryInfo, ...]
    plan: AllocationPlan

    @property
    def parent_ids(self) -> tuple[UUID, ...]:
        return tuple(p.entry_id for p in self.parents)

    def children_of(self, parent_id: UUID) -> tuple[LedgerEntryInfo, ...]:
        return tuple(c for c in self.children if c.parent_entry_id == parent_id)


# =============================================================================
# Service
# =============================================================================


class ProRataAllocationService:
    """
    Allocate lump sums across properties.

    Usage:
        service = ProRataAllocationService(store)
        result = service.allocate(
            owner_id, Decimal("300.00"),
            RevenueShareBasis.for_month(2024, 3),
            effective_date=date(2024, 4, 10),
            source_tag=SourceTag.TAX_PRORATA,
        )
    """

    def __init__(
        self,
        store: LedgerStore,
        distributor: ProportionalDistributor | None = None,
        *,
        settings: EngineSettings | None = None,
        lock_registry: OwnerLockRegistry | None = None,
    ):
        self.store = store
        self.settings = settings or get_active_config()
        self.distributor = distributor or ProportionalDistributor(
            decimal_places=self.settings.imports.decimal_places
        )
        self.lock_registry = lock_registry or default_lock_registry()

    def plan(
        self,
        owner_id: UUID,
        amount: Decimal,
        basis: AllocationBasis,
        entity_ids: Sequence[UUID] | None = None,
    ) -> AllocationPlan:
        """Compute the split of ``amount`` without writing."""
        targets = self._targets(owner_id, basis, entity_ids)
        result = self._distribute(owner_id, amount, basis, targets)
        return _plan_from(result)

    preview = plan

    def default_basis(self, owner_id: UUID, anchor: date) -> RevenueShareBasis:
        """Revenue over the owner's lookback window ending the day before ``anchor``."""
        days = self.settings.for_owner(owner_id).allocation.expense_lookback_days
        return RevenueShareBasis.trailing(anchor, days)

    def allocate(
        self,
        owner_id: UUID,
        amount: Decimal,
        basis: AllocationBasis | None = None,
        *,
        effective_date: date,
        source_tag: SourceTag | str = SourceTag.EXPENSE_PRORATA,
        entity_ids: Sequence[UUID] | None = None,
        installments: int | None = None,
        currency: str | None = None,
        description: str | None = None,
    ) -> AllocationResult:
        """Persist a parent entry per installment with one child per property.

        Without a ``basis`` the split follows revenue over the configured
        lookback window before ``effective_date``.
        """
        if amount <= 0:
            raise ValueError(f"Allocation amount must be positive, got {amount}")
        settings = self.settings.for_owner(owner_id)
        installments = installments or settings.allocation.default_installments
        if installments < 1:
            raise ValueError(f"installments must be at least 1, got {installments}")
        currency = (currency or settings.imports.default_currency).upper()
        tag = getattr(source_tag, "value", source_tag)
        if basis is None:
            basis = self.default_basis(owner_id, effective_date)

        with LogContext.bind(owner_id=owner_id):
            targets = self._targets(owner_id, basis, entity_ids)

            # Installment amounts are themselves an equal split of the liability
            installment_amounts = self.distributor.distribute(
                total=amount,
                weights=[DistributionWeight(i) for i in range(installments)],
                basis=WeightBasis.VALUE,
            )

            parents: list[LedgerEntryInfo] = []
            children: list[LedgerEntryInfo] = []
            first_plan: AllocationPlan | None = None

            with self.lock_registry.hold(
                owner_id, timeout=settings.imports.lock_timeout_seconds
            ):
                with self.store.atomic(owner_id):
                    for number, share in enumerate(installment_amounts.shares):
                        result = self._distribute(owner_id, share.amount, basis, targets)
                        plan = _plan_from(result)
                        if first_plan is None:
                            first_plan = plan
                        label = description or f"{tag} allocation"
                        if installments > 1:
                            label = f"{label} ({number + 1}/{installments})"
                        parent = LedgerEntryInfo(
                            owner_id=owner_id,
                            entity_id=None,
                            kind=EntryKind.EXPENSE,
                            amount=share.amount,
                            currency=currency,
                            effective_date=add_months(effective_date, number),
                            source_tag=tag,
                            description=label,
                        )
                        batch = [
                            LedgerEntryInfo(
                                owner_id=owner_id,
                                entity_id=line.entity_id,
                                kind=EntryKind.EXPENSE,
                                amount=line.amount,
                                currency=currency,
                                effective_date=parent.effective_date,
                                source_tag=tag,
                                parent_entry_id=parent.entry_id,
                                description=label,
                            )
                            for line in plan.lines
                            if line.amount != 0
                        ]
                        self.store.insert_entries([parent, *batch])
                        parents.append(parent)
                        children.extend(batch)

            logger.info(
                "allocation_created",
                extra={
                    "source_tag": tag,
                    "amount": amount,
                    "installments": installments,
                    "parent_count": len(parents),
                    "child_count": len(children),
                },
            )
            return AllocationResult(
                parents=tuple(parents),
                children=tuple(children),
                plan=first_plan,
            )

    def delete_allocation(self, owner_id: UUID, parent_id: UUID) -> int:
        """Remove a parent entry and all of its children; returns rows removed."""
        timeout = self.settings.for_owner(owner_id).imports.lock_timeout_seconds
        with self.lock_registry.hold(owner_id, timeout=timeout):
            with self.store.atomic(owner_id):
                if self.store.get_entry(owner_id, parent_id) is None:
                    raise LedgerEntryNotFoundError(str(parent_id), str(owner_id))
                deleted = self.store.delete_entries(owner_id, [parent_id])
        logger.info(
            "allocation_deleted",
            extra={"parent_entry_id": str(parent_id), "deleted_count": deleted},
        )
        return deleted

    # ------------------------------------------------------------------
    # Internals
    # ------------------------------------------------------------------

    def _targets(
        self,
        owner_id: UUID,
        basis: AllocationBasis,
        entity_ids: Sequence[UUID] | None,
    ) -> list[UUID]:
        if entity_ids is not None:
            targets = list(dict.fromkeys(entity_ids))
        elif isinstance(basis, ExplicitPercentageBasis):
            targets = list(basis.percentages)
        else:
            targets = [
                e.entity_id for e in self.store.list_entities(owner_id) if e.is_active
            ]
        if not targets:
            raise ValueError("No target properties for allocation")
        return targets

    def _distribute(
        self,
        owner_id: UUID,
        amount: Decimal,
        basis: AllocationBasis,
        targets: Sequence[UUID],
    ) -> DistributionResult:
        if isinstance(basis, ExplicitPercentageBasis):
            weights = [
                DistributionWeight(entity_id, basis.percentages.get(entity_id))
                for entity_id in targets
            ]
            return self.distributor.distribute(
                total=amount, weights=weights, basis=WeightBasis.PERCENT
            )

        revenue = self.store.revenue_by_entity(owner_id, basis.date_range)
        weights = [
            DistributionWeight(entity_id, max(revenue.get(entity_id, Decimal("0")), Decimal("0")))
            for entity_id in targets
        ]
        return self.distributor.distribute(
            total=amount, weights=weights, basis=WeightBasis.VALUE
        )


def _plan_from(result: DistributionResult) -> AllocationPlan:
    return AllocationPlan(
        total=result.total,
        lines=tuple(
            AllocationLine(
                entity_id=share.share_key,
                weight=share.effective_weight,
                percentage=result.percentage_for(share.share_key),
                amount=share.amount,
            )
            for share in result.shares
        ),
        equal_split=result.equal_split,
    )


def add_months(day: date, months: int) -> date:
    """Same day ``months`` later, clamped to the end of the target month."""
    month_index = day.month - 1 + months
    year = day.year + month_index // 12
    month = month_index % 12 + 1
    last_day = DateRange.month(year, month).end.day
    return date(year, month, min(day.day, last_day))
