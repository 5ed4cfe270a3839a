"""
Module: portfolio_engines.distribution
Responsibility:
    Split a monetary total across an ordered set of weighted shares so that
    the shares add up to the total exactly.  One primitive serves payout
    attribution, tax pro-rata and expense splitting.

Architecture position:
    Engines -- pure calculation layer, zero I/O.
    May only import portfolio_kernel domain/db types and logging.

Invariants enforced:
    - sum(shares) == total exactly, for any weights and any total.
    - len(shares) == len(weights), in input order.
    - Rounding: each share is quantized ROUND_HALF_UP to the currency's
      decimal places; the residual goes to a single rounding target (the
      last entry with a non-zero effective weight).  If that residual would
      carry the rounding target across zero, all other shares are
      recomputed rounding toward zero.

Weight bases:
    VALUE    Weights are amounts (revenue, reservation values).  Entries
             without an explicit weight count as zero.
    PERCENT  Weights are percentages of an implied 100.  A shortfall below
             100 goes to the entries without an explicit weight, split
             equally; if every entry has one, the shortfall is spread
             equally across all entries.  Above 100, weights are normalized
             down proportionally and implicit entries get nothing.

    In both bases an all-zero weight set is split equally.

Failure modes:
    - ValueError on an empty weight set.
    - ValueError on a negative weight.

Usage:
    from decimal import Decimal
    from portfolio_engines.distribution import (
        DistributionWeight, ProportionalDistributor, WeightBasis,
    )

    result = ProportionalDistributor().distribute(
        total=Decimal("300.00"),
        weights=[
            DistributionWeight("A", Decimal("40")),
            DistributionWeight("B", Decimal("40")),
            DistributionWeight("C"),
        ],
        basis=WeightBasis.PERCENT,
    )
    # A=120.00, B=120.00, C=60.00
"""

from __future__ import annotations

from collections.abc import Hashable, Sequence
from dataclasses import dataclass
from decimal import ROUND_DOWN, ROUND_HALF_UP, Decimal
from enum import Enum
from typing import Any

from portfolio_engines.tracer import traced_engine
from portfolio_kernel.db.types import CURRENCY_DECIMAL_PLACES, round_money
from portfolio_kernel.logging_config import get_logger

logger = get_logger("engines.distribution")

HUNDRED = Decimal("100")


class WeightBasis(str, Enum):
    """How weights are interpreted."""

    VALUE = "value"
    PERCENT = "percent"


@dataclass(frozen=True)
class DistributionWeight:
    """
    One participant in a distribution.

    ``weight=None`` means no explicit weight (the entry may receive a
    percentage top-up but otherwise counts as zero).
    """

    share_key: Hashable
    weight: Decimal | None = None

    def __post_init__(self) -> None:
        if self.weight is not None and self.weight < 0:
            raise ValueError(
                f"Weight for {self.share_key!r} must be non-negative, got {self.weight}"
            )


@dataclass(frozen=True)
class DistributionShare:
    """A participant's effective weight and the amount it receives."""

    share_key: Hashable
    effective_weight: Decimal
    amount: Decimal


@dataclass(frozen=True)
class DistributionResult:
    """Outcome of a distribution; shares are in input order."""

    total: Decimal
    basis: WeightBasis
    shares: tuple[DistributionShare, ...]
    equal_split: bool = False

    @property
    def total_distributed(self) -> Decimal:
        return sum((s.amount for s in self.shares), Decimal("0"))

    def amount_for(self, share_key: Any) -> Decimal:
        return sum(
            (s.amount for s in self.shares if s.share_key == share_key), Decimal("0")
        )

    def as_dict(self) -> dict[Any, Decimal]:
        out: dict[Any, Decimal] = {}
        for share in self.shares:
            out[share.share_key] = out.get(share.share_key, Decimal("0")) + share.amount
        return out

    def percentage_for(self, share_key: Any) -> Decimal:
        """Share of the total effective weight, as a percentage."""
        weight_sum = sum((s.effective_weight for s in self.shares), Decimal("0"))
        if weight_sum == 0:
            return Decimal("0")
        weight = sum(
            (s.effective_weight for s in self.shares if s.share_key == share_key),
            Decimal("0"),
        )
        return weight * HUNDRED / weight_sum


class ProportionalDistributor:
    """
    Pure distributor.  Stateless apart from the decimal places it rounds to.

    Usage:
        distributor = ProportionalDistributor(decimal_places=2)
        result = distributor.distribute(total=..., weights=[...])
    """

    def __init__(self, decimal_places: int = CURRENCY_DECIMAL_PLACES):
        self.decimal_places = decimal_places

    @traced_engine(
        "proportional_distribution", "1.0",
        fingerprint_fields=("total", "weights", "basis"),
    )
    def distribute(
        self,
        total: Decimal,
        weights: Sequence[DistributionWeight],
        basis: WeightBasis = WeightBasis.VALUE,
    ) -> DistributionResult:
        """Split ``total`` across ``weights``; shares sum to ``total`` exactly."""
        if not weights:
            raise ValueError("Cannot distribute over an empty weight set")

        basis = WeightBasis(basis)
        effective = self._effective_weights(weights, basis)

        equal_split = sum(effective, Decimal("0")) == 0
        if equal_split:
            effective = [Decimal("1")] * len(weights)

        amounts = self._apportion(total, effective, ROUND_HALF_UP)
        target = self._rounding_target(effective)
        if total != 0 and amounts[target] != 0 and (amounts[target] < 0) != (total < 0):
            amounts = self._apportion(total, effective, ROUND_DOWN)

        shares = tuple(
            DistributionShare(share_key=w.share_key, effective_weight=eff, amount=amt)
            for w, eff, amt in zip(weights, effective, amounts)
        )

        logger.debug(
            "distribution_computed",
            extra={
                "total": str(total),
                "basis": basis.value,
                "share_count": len(shares),
                "equal_split": equal_split,
            },
        )

        return DistributionResult(
            total=total, basis=basis, shares=shares, equal_split=equal_split
        )

    def _effective_weights(
        self, weights: Sequence[DistributionWeight], basis: WeightBasis
    ) -> list[Decimal]:
        if basis == WeightBasis.VALUE:
            return [w.weight if w.weight is not None else Decimal("0") for w in weights]

        explicit = sum(
            (w.weight for w in weights if w.weight is not None), Decimal("0")
        )
        if explicit >= HUNDRED:
            return [w.weight if w.weight is not None else Decimal("0") for w in weights]

        shortfall = HUNDRED - explicit
        implicit = [i for i, w in enumerate(weights) if w.weight is None]
        if implicit:
            top_up = shortfall / len(implicit)
            return [w.weight if w.weight is not None else top_up for w in weights]

        top_up = shortfall / len(weights)
        return [w.weight + top_up for w in weights]

    @staticmethod
    def _rounding_target(effective: Sequence[Decimal]) -> int:
        for i in range(len(effective) - 1, -1, -1):
            if effective[i] != 0:
                return i
        return len(effective) - 1

    def _apportion(
        self, total: Decimal, effective: Sequence[Decimal], rounding: str
    ) -> list[Decimal]:
        weight_sum = sum(effective, Decimal("0"))
        target = self._rounding_target(effective)

        amounts: list[Decimal] = []
        allocated = Decimal("0")
        for i, weight in enumerate(effective):
            if i == target:
                amounts.append(Decimal("0"))
                continue
            amount = round_money(total * weight / weight_sum, self.decimal_places, rounding)
            amounts.append(amount)
            allocated += amount

        amounts[target] = total - allocated
        return amounts
